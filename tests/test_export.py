"""
Tests for integer device export and the stimulator hand-off.
"""

from __future__ import annotations

import logging

import numpy as np
import pytest

from PTME.SMM import errors
from PTME.SGM.export_bridge import DeviceDestination, get_stim_values, send_to_device
from PTME.SGM.train_builder import fixed_rate, from_amp_duration_arrays
from PTME.SGM.waveform import biphasic


class DummyStimulator:
    """Records every call instead of talking to hardware."""

    def __init__(self):
        self.calls = []

    def prepare_and_send_data(self, channel_0b, amplitudes, durations, destination):
        self.calls.append(("new", channel_0b, amplitudes, durations, destination))

    def prepare_and_append_data(self, channel_0b, amplitudes, durations, destination):
        self.calls.append(("append", channel_0b, amplitudes, durations, destination))


def test_stim_values_units_and_dtypes():
    amps, durs = get_stim_values(fixed_rate(40))
    assert amps.dtype == np.int32
    assert durs.dtype == np.uint64
    np.testing.assert_array_equal(amps, [-1000, 1000, 0])
    np.testing.assert_array_equal(durs, [100, 100, 24800])


def test_stim_values_round_trip_exactly():
    pt = from_amp_duration_arrays([1.5, -0.25, 0.0], [40e-6, 1e-3, 0.5], amp_units="mA")
    amps, durs = get_stim_values(pt)
    np.testing.assert_array_equal(amps / 1000, pt.amplitudes)
    np.testing.assert_array_equal(durs / 1e6, pt.durations)


def test_stim_values_voltage_train_in_microvolts():
    amps, _ = get_stim_values(fixed_rate(40, waveform=biphasic(0.5, amp_units="V")))
    np.testing.assert_array_equal(amps, [-500_000, 500_000, 0])


def test_amplitude_overflow():
    pt = from_amp_duration_arrays([3000.0], [20e-6], amp_units="mA")
    with pytest.raises(errors.AmplitudeOutOfRange):
        get_stim_values(pt)


def test_off_grid_duration_is_refused():
    pt = fixed_rate(40)
    # corrupt the private buffer to simulate a train built outside the engine
    pt._dur_buf = np.array([100e-6, 110e-6, 24.8e-3])
    with pytest.raises(errors.DurationNotQuantized):
        get_stim_values(pt)


def test_sub_microsecond_durations_are_refused():
    pt = from_amp_duration_arrays([1.0, 0.0], [0.5e-6, 1.5e-6], min_time_dt=0.5e-6)
    with pytest.raises(errors.DurationNotQuantized, match="index 0"):
        get_stim_values(pt)


def test_fine_grid_on_whole_microseconds_exports():
    pt = from_amp_duration_arrays([1.0, 0.0], [1e-6, 3e-6], min_time_dt=0.5e-6)
    _, durs = get_stim_values(pt)
    np.testing.assert_array_equal(durs, [1, 3])


def test_send_new_to_current_channel():
    device = DummyStimulator()
    pt = fixed_rate(40, n_pulses=2)
    send_to_device(device, 1, pt)

    assert len(device.calls) == 1
    mode, channel_0b, amps, durs, destination = device.calls[0]
    assert (mode, channel_0b, destination) == ("new", 0, DeviceDestination.CURRENT)
    expected_amps, expected_durs = get_stim_values(pt)
    np.testing.assert_array_equal(amps, expected_amps)
    np.testing.assert_array_equal(durs, expected_durs)


def test_send_append_with_sync_mirror():
    device = DummyStimulator()
    send_to_device(device, 3, fixed_rate(40), mode="append", mirror_to_sync=True)

    assert [c[0] for c in device.calls] == ["append", "append"]
    assert [c[1] for c in device.calls] == [2, 2]
    assert device.calls[0][4] is DeviceDestination.CURRENT
    assert device.calls[1][4] is DeviceDestination.SYNC
    np.testing.assert_array_equal(device.calls[1][2], [1, 1, 0])
    np.testing.assert_array_equal(device.calls[1][3], device.calls[0][3])


def test_send_voltage_train():
    device = DummyStimulator()
    send_to_device(device, 2, fixed_rate(40, waveform=biphasic(amp_units="mV")))
    assert device.calls[0][4] is DeviceDestination.VOLTAGE


@pytest.mark.parametrize("kwargs", [
    {"channel_1b": 0},
    {"channel_1b": 1.0},
    {"channel_1b": 1, "mode": "replace"},
])
def test_send_rejects_bad_arguments_before_any_call(kwargs):
    device = DummyStimulator()
    with pytest.raises(errors.InvalidOption):
        send_to_device(device, train=fixed_rate(40), **kwargs)
    assert device.calls == []


def test_send_logs_at_info(caplog):
    caplog.set_level(logging.INFO, logger="PTME.SGM.export_bridge")
    send_to_device(DummyStimulator(), 1, fixed_rate(40))
    assert "channel 1" in caplog.text
