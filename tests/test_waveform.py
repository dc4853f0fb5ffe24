"""
Tests for waveform templates.
"""

from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from PTME.SMM import errors
from PTME.SMM.units import OutputKind
from PTME.SGM.waveform import WaveformTemplate, biphasic, default_waveform, monophasic


def test_default_waveform_is_cathodic_first_biphasic():
    wf = default_waveform()
    np.testing.assert_array_equal(wf.amplitudes, [-1.0, 1.0])
    np.testing.assert_allclose(wf.durations, [100e-6, 100e-6])
    assert wf.output_kind is OutputKind.CURRENT
    assert wf.total_duration == pytest.approx(200e-6)
    assert len(wf) == 2


def test_biphasic_with_units_and_interphase_gap():
    wf = biphasic(2, 0.1, amp_units="mA", dur_units="ms", interphase_gap=0.05)
    np.testing.assert_allclose(wf.amplitudes, [-2000.0, 0.0, 2000.0])
    np.testing.assert_allclose(wf.durations, [100e-6, 50e-6, 100e-6])


def test_anodic_first():
    np.testing.assert_array_equal(biphasic(cathodic_first=False).amplitudes, [1.0, -1.0])


def test_voltage_template():
    wf = monophasic(0.5, 200, amp_units="V", dur_units="us")
    assert wf.output_kind is OutputKind.VOLTAGE
    np.testing.assert_allclose(wf.amplitudes, [500.0])
    np.testing.assert_allclose(wf.durations, [200e-6])


def test_template_is_immutable():
    wf = default_waveform()
    with pytest.raises(ValueError):
        wf.amplitudes[0] = 5.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        wf.amp_units = "mV"


def test_template_copies_its_input():
    amps = np.array([1.0, -1.0])
    wf = WaveformTemplate(amps, [1e-4, 1e-4])
    amps[0] = 99.0
    assert wf.amplitudes[0] == 1.0


def test_invalid_templates():
    with pytest.raises(errors.LengthMismatch):
        WaveformTemplate([1.0, 2.0], [1e-4])
    with pytest.raises(errors.NegativeDuration):
        WaveformTemplate([1.0], [-1e-4])
    with pytest.raises(errors.ValidationError):
        WaveformTemplate([], [])
    with pytest.raises(errors.UnknownUnit):
        WaveformTemplate([1.0], [1e-4], amp_units="W")


def test_equality_compares_values():
    assert biphasic() == default_waveform()
    assert biphasic(2) != default_waveform()
    assert biphasic(amp_units="mV") != biphasic(amp_units="uA")
