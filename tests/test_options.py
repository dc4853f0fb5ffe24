"""
Tests for the typed option structures.
"""

from __future__ import annotations

import dataclasses

import pytest

from PTME.SMM import errors
from PTME.SMM.units import OutputKind
from PTME.SQM.rounding import RoundingMode, RoundingPolicy
from PTME.SGM.options import (
    ExpandOptions,
    OutputUnits,
    RateOptions,
    SyncOptions,
    TrainOptions,
    parse_options,
)
from PTME.SGM.waveform import biphasic


def test_defaults():
    opts = TrainOptions()
    assert opts.amp_units == "uA"
    assert opts.dur_units == "s"
    assert opts.min_time_dt == 20e-6
    assert opts.waveform is None
    assert opts.rounding_policy.mode is RoundingMode.NEAREST
    assert opts.output_kind is OutputKind.CURRENT


def test_parse_options_splits_keyword_bag():
    train_opts, rate_opts = parse_options(
        {"amp_units": "mA", "n_pulses": 3, "train_rate": 2.0}, TrainOptions, RateOptions
    )
    assert train_opts.amp_units == "mA"
    assert rate_opts.n_pulses == 3
    assert rate_opts.train_rate == 2.0


def test_unknown_option_is_rejected():
    with pytest.raises(errors.UnknownOption, match="n_puls"):
        parse_options({"n_puls": 3}, TrainOptions, RateOptions)


def test_waveform_units_win():
    opts = TrainOptions(amp_units="uA", waveform=biphasic(amp_units="mV"))
    assert opts.effective_amp_units == "mV"
    assert opts.output_kind is OutputKind.VOLTAGE


@pytest.mark.parametrize("kwargs, exc", [
    ({"min_time_dt": 0}, errors.InvalidOption),
    ({"amp_units": "W"}, errors.UnknownUnit),
    ({"dur_units": "h"}, errors.UnknownUnit),
    ({"waveform": [1, 2]}, errors.InvalidOption),
    ({"rounding_policy": "nearest"}, errors.InvalidOption),
])
def test_invalid_train_options(kwargs, exc):
    with pytest.raises(exc):
        TrainOptions(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {"n_pulses": 3, "pulses_duration": 1.0},
    {"train_rate": 1.0, "n_trains": 2, "trains_duration": 4.0},
    {"n_trains": 2},
    {"trains_duration": 4.0},
    {"n_pulses": 0},
    {"n_pulses": 2.0},
    {"n_pulses": True},
    {"pulses_duration": -1.0},
    {"train_rate": float("nan")},
])
def test_invalid_rate_options(kwargs):
    with pytest.raises(errors.InvalidOption):
        RateOptions(**kwargs)


def test_expand_and_sync_options():
    assert ExpandOptions().allow_expanding_time is None
    with pytest.raises(errors.InvalidOption):
        ExpandOptions(allow_expanding_time="yes")
    assert SyncOptions().sync_amplitude == 1.0
    with pytest.raises(errors.InvalidOption):
        SyncOptions(sync_amplitude=float("inf"))


def test_output_units_family_checks():
    OutputUnits(output_current_units="mA", output_voltage_units="V")
    with pytest.raises(errors.UnitFamilyMismatch):
        OutputUnits(output_current_units="mV")
    with pytest.raises(errors.UnitFamilyMismatch):
        OutputUnits(output_voltage_units="nA")


def test_options_are_frozen():
    opts = TrainOptions(rounding_policy=RoundingPolicy(RoundingMode.FLOOR))
    with pytest.raises(dataclasses.FrozenInstanceError):
        opts.min_time_dt = 1e-6
