# =============================================================================
# sampler.py — SVM Sample-and-Hold Materializer
# =============================================================================
#
# Turns a PulseTrain into a flat, fixed-step sample array for analysis and
# plotting collaborators (never for the device — see SGM/export_bridge.py).
#
#   segments : [ a0 for d0 ][ a1 for d1 ][ a2 for d2 ]
#   samples  :  a0 a0 a0 a0  a1 a1        a2 a2 a2
#               |<- d0/dt ->|
#
# Step inference ("auto"):
#   The coarsest dt that exactly divides every distinct duration is their
#   GREATEST COMMON DIVISOR, computed on integer nanoseconds:
#
#       [100 us, 400 us, 150 us]  →  gcd(100000, 400000, 150000) ns  =  50 us
#
# Every compatibility check is an integer-ns modulo.  Floating modulo gives
# false negatives near the precision boundary and is never used here.

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from PTME.SMM.constants import NS_PER_S
from PTME.SMM.errors import DtNotCompatible, InvalidOption, ValidationError
from PTME.SMM.units import amplitudes_to_output_units
from PTME.SQM.rounding import dt_to_ns, to_ns
from PTME.SGM.options import OutputUnits
from PTME.SGM.pulse_train import PulseTrain


class SampledArray(NamedTuple):
    amplitude: np.ndarray          # one value per sample, in the output units
    dt:        float               # sample step in seconds
    time:      np.ndarray | None   # i * dt, only when include_time=True


def get_dt_for_durations(durations) -> float:
    """
    Largest step (seconds) that exactly divides every positive duration.

    Zero-duration segments are ignored.  Raises ValidationError when there
    is no positive duration to take a GCD over.

    >>> get_dt_for_durations([0.0001, 0.0004, 0.00015])
    5e-05
    """
    d_ns = np.unique(to_ns(np.asarray(durations, dtype=np.float64).reshape(-1)))
    d_ns = d_ns[d_ns > 0]
    if d_ns.size == 0:
        raise ValidationError("Cannot infer a time step: no positive durations")
    return int(np.gcd.reduce(d_ns)) / NS_PER_S


def get_dt_for_patterns(*trains: PulseTrain) -> float:
    """Shared step for sampling several trains on one common time grid."""
    if not trains:
        raise ValidationError("get_dt_for_patterns() needs at least one pulse train")
    return get_dt_for_durations(np.concatenate([np.unique(t.durations) for t in trains]))


def _resolve_dt_ns(train: PulseTrain, dt) -> int:
    if isinstance(dt, str):
        if dt != "auto":
            raise InvalidOption(f"dt must be a number of seconds or 'auto', got {dt!r}")
        if not np.any(train.durations > 0):
            return dt_to_ns(train.min_time_dt)
        return int(to_ns(get_dt_for_durations(train.durations)))
    return dt_to_ns(dt)


def get_sampled_array(
    train: PulseTrain,
    dt: float | str = "auto",
    output_current_units: str | None = None,
    output_voltage_units: str | None = None,
    include_time: bool = False,
) -> SampledArray:
    """
    Sample-and-hold expansion of a train.

    Parameters
    ----------
    train : PulseTrain
    dt : float or "auto"
        Sample step in seconds.  Must be a multiple of the train's
        min_time_dt, and every duration must be a multiple of it.
        "auto" picks the GCD of the durations.
    output_current_units, output_voltage_units : str, optional
        Presentation units; only the one matching the train's output kind
        may be given.
    include_time : bool
        Also return the sample times i*dt.

    Returns
    -------
    SampledArray(amplitude, dt, time)

    Raises
    ------
    DtNotCompatible     dt off the min_time_dt grid, or a duration not a multiple of dt
    UnitFamilyMismatch  output units of the wrong family
    """
    units = OutputUnits(output_current_units, output_voltage_units)
    amplitudes = amplitudes_to_output_units(
        train.amplitudes, train.output_kind,
        units.output_current_units, units.output_voltage_units,
    )

    dt_ns     = _resolve_dt_ns(train, dt)
    min_dt_ns = dt_to_ns(train.min_time_dt)
    if dt_ns % min_dt_ns != 0:
        raise DtNotCompatible(
            f"Sample step {dt_ns / NS_PER_S!r} s is not a multiple of "
            f"min_time_dt ({train.min_time_dt!r} s)"
        )

    d_ns = to_ns(train.durations)
    off  = d_ns % dt_ns != 0
    if np.any(off):
        i = int(np.flatnonzero(off)[0])
        raise DtNotCompatible(
            f"Duration {train.durations[i]!r} s (index {i}) is not a multiple of "
            f"the sample step {dt_ns / NS_PER_S!r} s"
        )

    counts  = d_ns // dt_ns
    samples = np.repeat(amplitudes, counts)
    step    = dt_ns / NS_PER_S
    time    = np.arange(samples.size) * step if include_time else None
    return SampledArray(samples, step, time)
