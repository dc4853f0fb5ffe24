# =============================================================================
# rounding.py — SQM Duration Quantizer
# =============================================================================
#
# Snaps raw durations onto the hardware time grid:  every duration leaving
# this module is an exact integer multiple of `min_time_dt`.
#
# TIMING GUARANTEE:
#   All grid arithmetic is done on INTEGER NANOSECONDS.
#     d_ns  = rint(d  * 1e9)
#     dt_ns = rint(dt * 1e9)
#     steps = policy(d_ns, dt_ns)          ← integer division, never float mod
#     d'    = steps * dt_ns / 1e9
#   Floating modulo near the precision boundary gives false negatives
#   (0.3 % 0.1 != 0) — never use it for "is this a multiple" checks.
#
# Rounding is controlled by a RoundingPolicy, an owned configuration object
# that every PulseTrain clones along with its arrays.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum

import numpy as np

from PTME.SMM.constants import NS_PER_S
from PTME.SMM.errors import (
    DurationNotQuantized, InvalidOption, NegativeDuration, ValidationError,
)

logger = logging.getLogger(__name__)


class RoundingMode(Enum):
    NEAREST = "nearest"    # half-step rounds away from zero
    FLOOR   = "floor"
    CEIL    = "ceil"
    STRICT  = "strict"     # refuse anything not already on the grid


# ── Integer-nanosecond helpers ───────────────────────────────────────────────

def to_ns(values) -> np.ndarray:
    """Seconds → int64 nanoseconds (rounded to the nearest ns)."""
    return np.rint(np.asarray(values, dtype=np.float64) * NS_PER_S).astype(np.int64)


def dt_to_ns(dt: float) -> int:
    """
    Validate a grid step and return it in integer nanoseconds.

    Raises InvalidOption for non-finite, non-positive or sub-nanosecond steps.
    """
    try:
        dt = float(dt)
    except (TypeError, ValueError):
        raise InvalidOption(f"Time step must be a number, got {dt!r}") from None
    if not math.isfinite(dt) or dt <= 0:
        raise InvalidOption(f"Time step must be a positive number of seconds, got {dt!r}")
    dt_ns = int(round(dt * NS_PER_S))
    if dt_ns < 1:
        raise InvalidOption(f"Time step {dt!r} s is below the 1 ns engine resolution")
    return dt_ns


def is_multiple_of(values, dt: float) -> np.ndarray:
    """Element-wise: is each duration an exact multiple of `dt`?"""
    return to_ns(values) % dt_to_ns(dt) == 0


def steps_to_seconds(steps, dt_ns: int) -> np.ndarray:
    return np.asarray(steps, dtype=np.int64) * dt_ns / NS_PER_S


def _apply_mode(d_ns: np.ndarray, dt_ns: int, mode: RoundingMode) -> np.ndarray:
    if mode is RoundingMode.FLOOR:
        return d_ns // dt_ns
    if mode is RoundingMode.CEIL:
        return -(-d_ns // dt_ns)
    if mode is RoundingMode.NEAREST:
        # d_ns is non-negative here, so "half up" == "half away from zero"
        return (2 * d_ns + dt_ns) // (2 * dt_ns)
    # STRICT
    off_grid = d_ns % dt_ns != 0
    if np.any(off_grid):
        first = int(np.flatnonzero(off_grid)[0])
        raise DurationNotQuantized(
            f"Duration {d_ns[first] / NS_PER_S!r} s (index {first}) is not a multiple "
            f"of {dt_ns / NS_PER_S!r} s and the rounding policy is STRICT"
        )
    return d_ns // dt_ns


# ── Policy ───────────────────────────────────────────────────────────────────

@dataclass
class RoundingPolicy:
    """
    How raw durations are snapped onto the min_time_dt grid.

    Attributes:
        mode:                rounding rule for every segment
        zero_amplitude_mode: optional separate rule for zero-amplitude
                             segments, e.g. FLOOR so gaps give way and
                             pulses keep their width.  None = use `mode`.
    """
    mode:                RoundingMode = RoundingMode.NEAREST
    zero_amplitude_mode: RoundingMode | None = None

    def __post_init__(self) -> None:
        self.mode = RoundingMode(self.mode)
        if self.zero_amplitude_mode is not None:
            self.zero_amplitude_mode = RoundingMode(self.zero_amplitude_mode)

    def clone(self) -> "RoundingPolicy":
        return replace(self)


# ── Quantizer ────────────────────────────────────────────────────────────────

class DurationQuantizer:
    """
    Applies a RoundingPolicy to duration arrays and single periods.

    Usage:
        q = DurationQuantizer(RoundingPolicy(RoundingMode.NEAREST))
        d = q.get_rounded_durations([1.1e-4, 3e-4], [1.0, 0.0], 20e-6)
        dt = q.quantize_period(1 / 40, 20e-6)      # 0.025
    """

    def __init__(self, policy: RoundingPolicy | None = None) -> None:
        self.policy = policy if policy is not None else RoundingPolicy()

    def to_steps(self, durations, amplitudes, min_time_dt: float) -> np.ndarray:
        """
        Quantize durations and return them as integer step counts.

        Args:
            durations:   seconds, each >= 0
            amplitudes:  paired amplitudes (same length) or None
            min_time_dt: grid step in seconds

        Returns:
            int64 array of multiples of min_time_dt.
        """
        dt_ns     = dt_to_ns(min_time_dt)
        durations = np.asarray(durations, dtype=np.float64).reshape(-1)
        if not np.all(np.isfinite(durations)):
            raise ValidationError("Durations must be finite")
        if np.any(durations < 0):
            raise NegativeDuration(
                f"Durations must be >= 0, got minimum {durations.min()!r} s"
            )

        d_ns  = to_ns(durations)
        steps = _apply_mode(d_ns, dt_ns, self.policy.mode)

        zero_mode = self.policy.zero_amplitude_mode
        if zero_mode is not None and amplitudes is not None and durations.size:
            is_zero = np.asarray(amplitudes, dtype=np.float64).reshape(-1) == 0
            if np.any(is_zero):
                steps[is_zero] = _apply_mode(d_ns[is_zero], dt_ns, zero_mode)

        if amplitudes is not None and durations.size:
            lost = (steps == 0) & (d_ns > 0) & (np.asarray(amplitudes).reshape(-1) != 0)
            if np.any(lost):
                logger.warning(
                    "%d nonzero-amplitude segment(s) rounded to zero duration "
                    "(min_time_dt=%g s)", int(lost.sum()), min_time_dt,
                )
        return steps

    def get_rounded_durations(self, durations, amplitudes, min_time_dt: float) -> np.ndarray:
        """Quantize durations; returns seconds (float64), each a multiple of min_time_dt."""
        dt_ns   = dt_to_ns(min_time_dt)
        steps   = self.to_steps(durations, amplitudes, min_time_dt)
        rounded = steps_to_seconds(steps, dt_ns)

        moved = int(np.count_nonzero(steps * dt_ns != to_ns(durations)))
        if moved:
            logger.debug("Quantized %d of %d duration(s) onto a %g s grid (%s)",
                         moved, rounded.size, min_time_dt, self.policy.mode.value)
        return rounded

    def quantize_period(self, period: float, min_time_dt: float) -> float:
        """
        Quantize a single period (e.g. 1/rate) onto the grid.

        Returns 0.0 when the period collapses to zero steps.  Callers MUST
        treat 0.0 as a fatal resolution error, never use it as a period.
        """
        dt_ns = dt_to_ns(min_time_dt)
        period = float(period)
        if not math.isfinite(period) or period < 0:
            raise InvalidOption(f"Period must be a finite non-negative number, got {period!r}")
        steps = int(_apply_mode(to_ns([period]), dt_ns, self.policy.mode)[0])
        return steps * dt_ns / NS_PER_S
