"""
Tests for unit conversion and the error taxonomy.
"""

from __future__ import annotations

import numpy as np
import pytest

from PTME.SMM import errors
from PTME.SMM.units import (
    OutputKind,
    amplitudes_to_output_units,
    scale_amplitudes,
    scale_duration,
    scale_durations,
    unit_family,
)


def test_current_units_scale_to_microamps():
    np.testing.assert_allclose(scale_amplitudes([1, 2], "mA"), [1000.0, 2000.0])
    np.testing.assert_allclose(scale_amplitudes([500], "nA"), [0.5])
    np.testing.assert_allclose(scale_amplitudes(3, "uA"), [3.0])


def test_voltage_units_scale_to_millivolts():
    np.testing.assert_allclose(scale_amplitudes([1.5], "V"), [1500.0])
    np.testing.assert_allclose(scale_amplitudes([250], "uV"), [0.25])


def test_micro_sign_and_case_are_accepted():
    np.testing.assert_array_equal(scale_amplitudes([7], "µA"), scale_amplitudes([7], "uA"))
    np.testing.assert_array_equal(scale_amplitudes([7], "UA"), scale_amplitudes([7], "uA"))
    np.testing.assert_array_equal(scale_durations([7], "µs"), scale_durations([7], "us"))


def test_unknown_unit_token():
    with pytest.raises(errors.UnknownUnit):
        scale_amplitudes([1], "kA")
    with pytest.raises(errors.UnknownUnit):
        scale_durations([1], "min")
    with pytest.raises(errors.UnknownUnit):
        unit_family(None)


def test_family_mismatch_against_declared_output_kind():
    with pytest.raises(errors.UnitFamilyMismatch):
        scale_amplitudes([1], "mV", OutputKind.CURRENT)
    with pytest.raises(errors.UnitFamilyMismatch):
        scale_amplitudes([1], "mA", OutputKind.VOLTAGE)


def test_unit_family_classification():
    assert unit_family("mA") is OutputKind.CURRENT
    assert unit_family("uV") is OutputKind.VOLTAGE
    assert OutputKind.CURRENT.canonical_units == "uA"
    assert OutputKind.VOLTAGE.canonical_units == "mV"


def test_durations_scale_to_seconds():
    np.testing.assert_allclose(scale_durations([1, 2], "ms"), [0.001, 0.002])
    np.testing.assert_allclose(scale_durations([20], "us"), [20e-6])
    assert scale_duration(5, "ms") == pytest.approx(0.005)


def test_conversion_never_mutates_input():
    amps = np.array([1.0, 2.0])
    out = scale_amplitudes(amps, "mA")
    out[0] = -1
    np.testing.assert_array_equal(amps, [1.0, 2.0])


def test_output_units_round_trip():
    canonical = scale_amplitudes([1.0, -2.5], "mA")
    np.testing.assert_allclose(
        amplitudes_to_output_units(canonical, OutputKind.CURRENT, output_current_units="mA"),
        [1.0, -2.5],
    )
    np.testing.assert_allclose(
        amplitudes_to_output_units([1000.0], OutputKind.VOLTAGE, output_voltage_units="V"),
        [1.0],
    )


def test_output_units_default_to_canonical():
    np.testing.assert_allclose(amplitudes_to_output_units([3.0], OutputKind.CURRENT), [3.0])


def test_output_units_reject_the_other_family():
    with pytest.raises(errors.UnitFamilyMismatch):
        amplitudes_to_output_units([1.0], OutputKind.CURRENT, output_voltage_units="mV")
    with pytest.raises(errors.UnitFamilyMismatch):
        amplitudes_to_output_units([1.0], OutputKind.VOLTAGE, output_current_units="uA")
    with pytest.raises(errors.UnitFamilyMismatch):
        amplitudes_to_output_units([1.0], OutputKind.CURRENT, output_current_units="V")


@pytest.mark.parametrize("cls, family", [
    (errors.LengthMismatch, errors.ValidationError),
    (errors.UnknownOption, errors.ValidationError),
    (errors.RateTooHigh, errors.ResolutionError),
    (errors.DtNotCompatible, errors.ResolutionError),
    (errors.BoundaryExpansionNotAllowed, errors.BoundaryPolicyError),
])
def test_error_taxonomy(cls, family):
    assert issubclass(cls, family)
    assert issubclass(cls, errors.PulseTrainError)
    assert issubclass(cls, ValueError)
