# =============================================================================
# units.py — SMM Unit Conversion
# =============================================================================
#
# Converts user-supplied amplitude / duration arrays into the canonical units
# defined in SMM/constants.py, and canonical amplitudes back out to a
# requested presentation unit.
#
#   amplitude : {V, mV, uV}  → mV        {mA, uA, nA} → uA
#   duration  : {s, ms, us}  → s
#
# All scale factors are powers of 1000.  Tokens are case-insensitive and the
# micro sign may be written as "u" or "µ".
#
# Pure functions — nothing here mutates its inputs.

from __future__ import annotations

from enum import Enum

import numpy as np

from PTME.SMM.constants import (
    CURRENT_UNITS, VOLTAGE_UNITS,
    CURRENT_UNIT_SCALE, VOLTAGE_UNIT_SCALE, TIME_UNIT_SCALE,
)
from PTME.SMM.errors import UnknownUnit, UnitFamilyMismatch


class OutputKind(Enum):
    """What the stimulator drives: exactly one of current or voltage."""
    CURRENT = "current"
    VOLTAGE = "voltage"

    @property
    def canonical_units(self) -> str:
        return CURRENT_UNITS if self is OutputKind.CURRENT else VOLTAGE_UNITS


def _normalise_token(token: str) -> str:
    if not isinstance(token, str):
        raise UnknownUnit(f"Unit must be a string, got {token!r}")
    return token.strip().replace("µ", "u").replace("μ", "u").lower()


def unit_family(amp_units: str) -> OutputKind:
    """Classify an amplitude unit token as current or voltage."""
    key = _normalise_token(amp_units)
    if key in CURRENT_UNIT_SCALE:
        return OutputKind.CURRENT
    if key in VOLTAGE_UNIT_SCALE:
        return OutputKind.VOLTAGE
    raise UnknownUnit(
        f"Unrecognized amplitude units: {amp_units!r}\n"
        f"Valid units: {sorted(CURRENT_UNIT_SCALE) + sorted(VOLTAGE_UNIT_SCALE)}"
    )


def _check_family(amp_units: str, output_kind: OutputKind | None) -> OutputKind:
    family = unit_family(amp_units)
    if output_kind is not None and family is not output_kind:
        raise UnitFamilyMismatch(
            f"Amplitude units {amp_units!r} are {family.value} units, "
            f"but the train is a {output_kind.value} train"
        )
    return family


# ── Into canonical units ─────────────────────────────────────────────────────

def scale_amplitudes(
    amplitudes,
    amp_units: str,
    output_kind: OutputKind | None = None,
) -> np.ndarray:
    """
    Convert amplitudes from `amp_units` into canonical uA / mV.

    Args:
        amplitudes:  scalar or array-like
        amp_units:   unit token, e.g. "mA", "uV"
        output_kind: when given, the token must belong to this family

    Returns:
        New float64 array (never a view of the input).
    """
    family = _check_family(amp_units, output_kind)
    key    = _normalise_token(amp_units)
    table  = CURRENT_UNIT_SCALE if family is OutputKind.CURRENT else VOLTAGE_UNIT_SCALE
    return np.array(amplitudes, dtype=np.float64, ndmin=1) * table[key]


def scale_durations(durations, dur_units: str) -> np.ndarray:
    """Convert durations (or times) from `dur_units` into seconds."""
    key = _normalise_token(dur_units)
    if key not in TIME_UNIT_SCALE:
        raise UnknownUnit(
            f"Unrecognized time units: {dur_units!r}\n"
            f"Valid units: {sorted(TIME_UNIT_SCALE)}"
        )
    return np.array(durations, dtype=np.float64, ndmin=1) * TIME_UNIT_SCALE[key]


def scale_duration(duration: float, dur_units: str) -> float:
    """Scalar convenience wrapper around scale_durations()."""
    return float(scale_durations(duration, dur_units)[0])


# ── Out of canonical units ───────────────────────────────────────────────────

def amplitudes_to_output_units(
    amplitudes,
    output_kind: OutputKind,
    output_current_units: str | None = None,
    output_voltage_units: str | None = None,
) -> np.ndarray:
    """
    Rescale canonical amplitudes into a presentation unit.

    A current train only accepts `output_current_units`, a voltage train only
    `output_voltage_units`.  Passing neither returns canonical units.
    """
    if output_kind is OutputKind.CURRENT:
        if output_voltage_units:
            raise UnitFamilyMismatch("For a current stimulus not expecting voltage units")
        target = output_current_units or CURRENT_UNITS
    else:
        if output_current_units:
            raise UnitFamilyMismatch("For a voltage stimulus not expecting current units")
        target = output_voltage_units or VOLTAGE_UNITS

    family = _check_family(target, output_kind)
    key    = _normalise_token(target)
    table  = CURRENT_UNIT_SCALE if family is OutputKind.CURRENT else VOLTAGE_UNIT_SCALE
    return np.array(amplitudes, dtype=np.float64, ndmin=1) / table[key]
