# =============================================================================
# options.py — SGM Typed Option Structures
# =============================================================================
#
# Every public operation that takes "name = value" options collects them into
# one of the frozen dataclasses below.  Options are validated eagerly, in
# __post_init__, before any array is touched — a bad option never leaves a
# half-built train behind.
#
# parse_options() splits a keyword bag across several option types and
# REJECTS unknown keys (UnknownOption) instead of silently ignoring them.
#
#   TrainOptions   — construction: units, time base, rounding, waveform
#   RateOptions    — fixed_rate(): pulse / train counts and durations
#   ExpandOptions  — left/right duration expansion
#   SyncOptions    — create_sync_signal()
#   OutputUnits    — sampled-array presentation units

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any

import numpy as np

from PTME.SMM.constants import CURRENT_UNITS, DEFAULT_MIN_TIME_DT, TIME_UNITS
from PTME.SMM.errors import InvalidOption, UnitFamilyMismatch, UnknownOption
from PTME.SMM.units import OutputKind, scale_durations, unit_family
from PTME.SQM.rounding import RoundingPolicy, dt_to_ns
from PTME.SGM.waveform import WaveformTemplate


def _is_count(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _check_count(name: str, value) -> None:
    if value is None:
        return
    if not _is_count(value) or value < 1:
        raise InvalidOption(f"{name} must be an integer >= 1, got {value!r}")


def _check_positive(name: str, value) -> None:
    if value is None:
        return
    try:
        ok = math.isfinite(value) and value > 0
    except TypeError:
        ok = False
    if not ok:
        raise InvalidOption(f"{name} must be a positive finite number, got {value!r}")


def _check_dur_units(dur_units: str) -> None:
    scale_durations(0.0, dur_units)     # raises UnknownUnit


# ── Construction ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TrainOptions:
    """
    Options shared by every train constructor.

    Attributes:
        rounding_policy: how durations are snapped to the grid
        amp_units:       units of user amplitudes (ignored for amplitudes
                         when a waveform is given — its units win)
        dur_units:       units of user durations / times
        min_time_dt:     hardware time step in SECONDS, fixed for the
                         lifetime of the train
        waveform:        template for from_times() / fixed_rate();
                         None = default biphasic
    """
    rounding_policy: RoundingPolicy = field(default_factory=RoundingPolicy)
    amp_units:       str = CURRENT_UNITS
    dur_units:       str = TIME_UNITS
    min_time_dt:     float = DEFAULT_MIN_TIME_DT
    waveform:        WaveformTemplate | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.rounding_policy, RoundingPolicy):
            raise InvalidOption(
                f"rounding_policy must be a RoundingPolicy, got {type(self.rounding_policy).__name__}"
            )
        if self.waveform is not None and not isinstance(self.waveform, WaveformTemplate):
            raise InvalidOption(
                f"waveform must be a WaveformTemplate, got {type(self.waveform).__name__}"
            )
        unit_family(self.amp_units)
        _check_dur_units(self.dur_units)
        dt_to_ns(self.min_time_dt)

    @property
    def effective_amp_units(self) -> str:
        return self.waveform.amp_units if self.waveform is not None else self.amp_units

    @property
    def output_kind(self) -> OutputKind:
        return unit_family(self.effective_amp_units)


# ── fixed_rate() ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RateOptions:
    """
    Pulse / train repetition for fixed_rate().

    -----------  1/train_rate
    | | |     | | |      | | |    <= n_pulses per train
    ---  1/rate

    Count and duration for the same level are mutually exclusive.
    Durations are in the TrainOptions dur_units.
    """
    n_pulses:        int | None = None
    pulses_duration: float | None = None
    train_rate:      float | None = None
    n_trains:        int | None = None
    trains_duration: float | None = None

    def __post_init__(self) -> None:
        _check_count("n_pulses", self.n_pulses)
        _check_count("n_trains", self.n_trains)
        _check_positive("pulses_duration", self.pulses_duration)
        _check_positive("trains_duration", self.trains_duration)
        _check_positive("train_rate", self.train_rate)

        if self.n_pulses is not None and self.pulses_duration is not None:
            raise InvalidOption("Specify either n_pulses or pulses_duration, not both")
        if self.n_trains is not None and self.trains_duration is not None:
            raise InvalidOption("Specify either n_trains or trains_duration, not both")
        if self.train_rate is None and (self.n_trains is not None or self.trains_duration is not None):
            raise InvalidOption("n_trains / trains_duration require 'train_rate' to be specified")


# ── Expansion ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExpandOptions:
    """
    Options for left/right duration expansion.

    Attributes:
        mask:                 which segments to expand; None = nonzero amplitudes
        allow_expanding_time: may the boundary segment grow total duration?
                              None = direction default (left False, right True)
        dur_units:            units of the expansion time
    """
    mask:                 Any = None
    allow_expanding_time: bool | None = None
    dur_units:            str = TIME_UNITS

    def __post_init__(self) -> None:
        if self.allow_expanding_time is not None and not isinstance(self.allow_expanding_time, bool):
            raise InvalidOption("allow_expanding_time must be True, False or None")
        _check_dur_units(self.dur_units)


# ── Sync signal ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SyncOptions:
    simplify_output: bool = True
    sync_amplitude:  float = 1.0

    def __post_init__(self) -> None:
        try:
            ok = math.isfinite(self.sync_amplitude)
        except TypeError:
            ok = False
        if not ok:
            raise InvalidOption(f"sync_amplitude must be a finite number, got {self.sync_amplitude!r}")


# ── Sampling ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OutputUnits:
    """Presentation units for get_sampled_array(); None = canonical."""
    output_current_units: str | None = None
    output_voltage_units: str | None = None

    def __post_init__(self) -> None:
        if self.output_current_units and unit_family(self.output_current_units) is not OutputKind.CURRENT:
            raise UnitFamilyMismatch(
                f"output_current_units must be a current unit, got {self.output_current_units!r}"
            )
        if self.output_voltage_units and unit_family(self.output_voltage_units) is not OutputKind.VOLTAGE:
            raise UnitFamilyMismatch(
                f"output_voltage_units must be a voltage unit, got {self.output_voltage_units!r}"
            )


# ── Keyword-bag parsing ──────────────────────────────────────────────────────

def parse_options(options: dict, *option_types: type) -> tuple:
    """
    Split a keyword bag across option dataclasses.

    Args:
        options:      {name: value} as received by a public entry point
        option_types: dataclass types to populate, in order

    Returns:
        Tuple with one instance per option type.

    Raises:
        UnknownOption if any key belongs to none of the option types.
    """
    names_per_type = [{f.name for f in fields(t) if f.init} for t in option_types]
    valid = set().union(*names_per_type)
    unknown = sorted(set(options) - valid)
    if unknown:
        raise UnknownOption(
            f"Unrecognized option(s): {unknown}\n"
            f"Valid options: {sorted(valid)}"
        )
    return tuple(
        t(**{k: v for k, v in options.items() if k in names})
        for t, names in zip(option_types, names_per_type)
    )
