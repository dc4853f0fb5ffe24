"""
Tests for sample-and-hold expansion and GCD time-step inference.
"""

from __future__ import annotations

import numpy as np
import pytest

from PTME.SMM import errors
from PTME.SGM.pulse_train import PulseTrain
from PTME.SGM.train_builder import fixed_rate, from_amp_duration_arrays
from PTME.SVM.sampler import (
    SampledArray,
    get_dt_for_durations,
    get_dt_for_patterns,
    get_sampled_array,
)

US = 1e-6


def test_gcd_of_distinct_durations():
    assert get_dt_for_durations([0.0001, 0.0004, 0.00015]) == pytest.approx(50 * US, rel=1e-12)


def test_gcd_ignores_zero_durations():
    assert get_dt_for_durations([0.0, 1e-4, 3e-4]) == pytest.approx(1e-4, rel=1e-12)


def test_gcd_needs_a_positive_duration():
    with pytest.raises(errors.ValidationError):
        get_dt_for_durations([0.0, 0.0])
    with pytest.raises(errors.ValidationError):
        get_dt_for_durations([])


def test_gcd_across_patterns():
    a = from_amp_duration_arrays([1.0], [40 * US])
    b = from_amp_duration_arrays([1.0], [60 * US])
    assert get_dt_for_patterns(a, b) == pytest.approx(20 * US, rel=1e-12)
    with pytest.raises(errors.ValidationError):
        get_dt_for_patterns()


def test_auto_dt_sample_and_hold():
    pt = from_amp_duration_arrays([1.0, 0.0], [40 * US, 60 * US])
    out = get_sampled_array(pt)
    assert isinstance(out, SampledArray)
    assert out.dt == pytest.approx(20 * US, rel=1e-12)
    np.testing.assert_array_equal(out.amplitude, [1, 1, 0, 0, 0])
    assert out.time is None


def test_explicit_dt_with_time_axis():
    pt = from_amp_duration_arrays([1.0, 0.0], [40 * US, 60 * US])
    out = get_sampled_array(pt, dt=20 * US, include_time=True)
    np.testing.assert_allclose(out.time, np.arange(5) * 20 * US)
    assert out.amplitude.size * out.dt == pytest.approx(pt.total_duration, abs=1e-12)


def test_sample_count_matches_total_duration():
    pt = fixed_rate(40, n_pulses=3)
    out = get_sampled_array(pt)
    assert out.dt == pytest.approx(100 * US, rel=1e-12)
    assert out.amplitude.size == 750
    assert out.amplitude.sum() == pytest.approx(0.0)


@pytest.mark.parametrize("dt", [40 * US, 30 * US, 10 * US])
def test_incompatible_dt(dt):
    pt = from_amp_duration_arrays([1.0, 0.0], [40 * US, 60 * US])
    with pytest.raises(errors.DtNotCompatible):
        get_sampled_array(pt, dt=dt)


def test_bad_dt_values():
    pt = fixed_rate(40)
    with pytest.raises(errors.InvalidOption):
        get_sampled_array(pt, dt="fast")
    with pytest.raises(errors.InvalidOption):
        get_sampled_array(pt, dt=0)


def test_exact_multiple_check_does_not_use_float_modulo():
    pt = from_amp_duration_arrays([1.0], [0.3], min_time_dt=0.1)
    out = get_sampled_array(pt, dt=0.1)
    np.testing.assert_array_equal(out.amplitude, [1, 1, 1])


def test_output_units():
    pt = from_amp_duration_arrays([1.0, -2.0], [20 * US, 20 * US], amp_units="mA")
    np.testing.assert_allclose(get_sampled_array(pt, output_current_units="mA").amplitude, [1, -2])
    np.testing.assert_allclose(get_sampled_array(pt).amplitude, [1000, -2000])


def test_output_units_of_the_wrong_family():
    current = fixed_rate(40)
    with pytest.raises(errors.UnitFamilyMismatch):
        get_sampled_array(current, output_voltage_units="mV")
    with pytest.raises(errors.UnitFamilyMismatch):
        get_sampled_array(current, output_current_units="mV")


def test_empty_train_samples_on_min_time_dt():
    out = get_sampled_array(PulseTrain(), include_time=True)
    assert out.amplitude.size == 0
    assert out.dt == pytest.approx(20 * US, rel=1e-12)
    assert out.time.size == 0
