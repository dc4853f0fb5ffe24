# =============================================================================
# validate.py — SVM Pulse Train Invariant Checker
# =============================================================================
#
# Answers one question before a train is handed to a device:  is this train
# internally consistent?  Every check is reported, not just the first one
# that fails, so the verdict lists all reasons at once.
#
#   [1] lengths   — amplitudes, durations, start/stop times agree on N
#   [2] values    — amplitudes finite, durations finite and >= 0
#   [3] timing    — start/stop/total exactly match the durations (integer ns)
#   [4] kind      — output_kind is exactly one of CURRENT / VOLTAGE
#   [5] grid      — every duration is a multiple of min_time_dt
#
# Usage:
#   check = check_train(pt)
#   if not check.ok:
#       print("\n".join(check.reasons))

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from PTME.SMM.constants import NS_PER_S
from PTME.SMM.units import OutputKind
from PTME.SQM.rounding import dt_to_ns, to_ns
from PTME.SGM.pulse_train import PulseTrain


class TrainCheck(NamedTuple):
    ok:      bool
    reasons: list[str]     # empty when ok


def check_train(train: PulseTrain) -> TrainCheck:
    """Run every invariant check on `train` and return the verdict."""
    reasons: list[str] = []

    amps   = train.amplitudes
    durs   = train.durations
    starts = train.start_times
    stops  = train.stop_times

    # [1] lengths
    n = len(train)
    sizes = {"amplitudes": amps.size, "durations": durs.size,
             "start_times": starts.size, "stop_times": stops.size}
    bad_sizes = {k: v for k, v in sizes.items() if v != n}
    if bad_sizes:
        reasons.append(f"Length mismatch: expected {n} segments, got {bad_sizes}")
        return TrainCheck(False, reasons)

    # [2] values
    if not np.all(np.isfinite(amps)):
        reasons.append("Non-finite amplitude(s)")
    if not np.all(np.isfinite(durs)):
        reasons.append("Non-finite duration(s)")
        return TrainCheck(False, reasons)
    if np.any(durs < 0):
        reasons.append(f"{int(np.count_nonzero(durs < 0))} negative duration(s)")

    # [3] timing
    d_ns    = to_ns(durs)
    stop_ns = np.cumsum(d_ns)
    if n:
        if not np.array_equal(to_ns(stops), stop_ns):
            reasons.append("stop_times do not match the cumulative durations")
        if not np.array_equal(to_ns(starts), stop_ns - d_ns):
            reasons.append("start_times do not match the cumulative durations")
    expected_total = int(stop_ns[-1]) if n else 0
    if int(to_ns(train.total_duration)) != expected_total:
        reasons.append(
            f"total_duration {train.total_duration!r} s != sum of durations "
            f"{expected_total / NS_PER_S!r} s"
        )

    # [4] kind
    if not isinstance(train.output_kind, OutputKind):
        reasons.append(f"Invalid output_kind {train.output_kind!r}")

    # [5] grid
    off_grid = d_ns % dt_to_ns(train.min_time_dt) != 0
    if np.any(off_grid):
        reasons.append(
            f"{int(np.count_nonzero(off_grid))} duration(s) not a multiple of "
            f"min_time_dt ({train.min_time_dt!r} s)"
        )

    return TrainCheck(not reasons, reasons)
