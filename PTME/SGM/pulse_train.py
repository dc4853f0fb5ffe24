# =============================================================================
# pulse_train.py — SGM Pulse Train Model
# =============================================================================
#
# A PulseTrain is an ordered list of (amplitude, duration) segments — a
# piecewise-constant stimulus:
#
#   amp   ┌──┐        ┌──┐
#   0 ────┘  │  ┌─────┘  │  ┌─────
#            └──┘        └──┘
#   seg   0  1  2  3     4  5  6
#
# Storage
# -------
# Amplitudes (canonical uA / mV), durations (s) and the derived start / stop
# times live in growable numpy buffers; only the first `n` entries are live.
# Public properties return READ-ONLY views of the live part.
#
# Mutation rules:
#   - Value-changing operations build NEW buffers and swap them in, so a view
#     handed out earlier never changes underneath its holder.
#   - add_value() / drop_last_value() work on the buffer tail past the live
#     end, which keeps them O(1) amortised with an incremental timing update.
#     Once a view has been handed out, drop_last_value() detaches onto fresh
#     buffers first, so a later add_value() never writes inside that view.
#   - Derived timing is accumulated in INTEGER NANOSECONDS, so stop_times and
#     total_duration are exact — no float drift across thousands of segments.
#
# Calling convention
# ------------------
# Every mutator exists twice:
#
#   pt.repeat(3)          # in place, returns None
#   pt2 = pt.repeated(3)  # on an independent clone(), pt untouched
#
# clone() copies every array and the RoundingPolicy.

from __future__ import annotations

import logging
import math
from typing import NamedTuple

import numpy as np

from PTME.SMM.constants import DEFAULT_MIN_TIME_DT, NS_PER_S, TIME_UNITS
from PTME.SMM.errors import (
    BoundaryExpansionNotAllowed, EmptyTrain, ExpansionNotQuantized,
    InsufficientNeighborDuration, InsufficientOwnDuration, InvalidOption,
    InvalidRepeatCount, LengthMismatch, MaskLengthMismatch, UnitFamilyMismatch,
)
from PTME.SMM.units import OutputKind, scale_amplitudes, scale_duration, scale_durations
from PTME.SQM.rounding import DurationQuantizer, RoundingPolicy, dt_to_ns, to_ns
from PTME.SGM.options import ExpandOptions, SyncOptions, _is_count

logger = logging.getLogger(__name__)

_MIN_CAPACITY = 8


class DisplayUnits(NamedTuple):
    """Units the user thinks in.  Presentation only — never used in math."""
    amplitude: str
    duration:  str


def _read_only(view: np.ndarray) -> np.ndarray:
    view.flags.writeable = False
    return view


class PulseTrain:
    """
    Piecewise-constant stimulus: amplitudes[i] held for durations[i].

    Normally created through PTME.SGM.train_builder (fixed_rate, from_times,
    from_amp_duration_arrays).  The bare constructor gives an EMPTY train,
    which is useful as a seed for add_value() / append_values().

    Parameters
    ----------
    output_kind : OutputKind
        CURRENT (amplitudes in uA) or VOLTAGE (amplitudes in mV).
    min_time_dt : float
        Smallest realizable time step in seconds.  Fixed for life.
    rounding_policy : RoundingPolicy, optional
        Owned; cloned with the train.
    display_units : DisplayUnits, optional
        Defaults to the canonical units.
    """

    def __init__(
        self,
        output_kind: OutputKind = OutputKind.CURRENT,
        min_time_dt: float = DEFAULT_MIN_TIME_DT,
        rounding_policy: RoundingPolicy | None = None,
        display_units: DisplayUnits | None = None,
        user_summary: str | None = None,
    ) -> None:
        if not isinstance(output_kind, OutputKind):
            raise InvalidOption(
                f"output_kind must be OutputKind.CURRENT or OutputKind.VOLTAGE, got {output_kind!r}"
            )
        if rounding_policy is not None and not isinstance(rounding_policy, RoundingPolicy):
            raise InvalidOption("rounding_policy must be a RoundingPolicy")

        self._output_kind = output_kind
        self._dt_ns       = dt_to_ns(min_time_dt)
        self._min_time_dt = float(min_time_dt)

        self.rounding_policy = rounding_policy if rounding_policy is not None else RoundingPolicy()
        self.display_units   = display_units or DisplayUnits(output_kind.canonical_units, TIME_UNITS)
        self.user_summary    = user_summary

        self._n        = 0
        self._total_ns = 0
        self._shared   = False     # a view of the current buffers is out
        self._amp_buf   = np.zeros(0, dtype=np.float64)
        self._dur_buf   = np.zeros(0, dtype=np.float64)
        self._start_buf = np.zeros(0, dtype=np.float64)
        self._stop_buf  = np.zeros(0, dtype=np.float64)

    # ── Read-only state ──────────────────────────────────────────────────────

    @property
    def amplitudes(self) -> np.ndarray:
        self._shared = True
        return _read_only(self._amp_buf[: self._n])

    @property
    def durations(self) -> np.ndarray:
        self._shared = True
        return _read_only(self._dur_buf[: self._n])

    @property
    def start_times(self) -> np.ndarray:
        self._shared = True
        return _read_only(self._start_buf[: self._n])

    @property
    def stop_times(self) -> np.ndarray:
        self._shared = True
        return _read_only(self._stop_buf[: self._n])

    @property
    def total_duration(self) -> float:
        return self._total_ns / NS_PER_S

    @property
    def n_samples(self) -> int:
        """# of amplitude/duration pairs (segments, not sampled points)."""
        return self._n

    @property
    def net_amp_x_time(self) -> float:
        """Sum of amplitude * duration — net charge for a current train."""
        return float(np.dot(self.amplitudes, self.durations))

    @property
    def output_kind(self) -> OutputKind:
        return self._output_kind

    @property
    def is_current(self) -> bool:
        return self._output_kind is OutputKind.CURRENT

    @property
    def is_voltage(self) -> bool:
        return self._output_kind is OutputKind.VOLTAGE

    @property
    def min_time_dt(self) -> float:
        return self._min_time_dt

    def __len__(self) -> int:
        return self._n

    def __repr__(self) -> str:
        return (
            f"PulseTrain(n={self._n}, total={self.total_duration:.6g} s, "
            f"{self._output_kind.value}, min_time_dt={self._min_time_dt:g} s)"
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, PulseTrain):
            return NotImplemented
        return (
            self._output_kind is other._output_kind
            and self._dt_ns == other._dt_ns
            and np.array_equal(self.amplitudes, other.amplitudes)
            and np.array_equal(self.durations, other.durations)
        )

    __hash__ = None

    # ── Copying ──────────────────────────────────────────────────────────────

    def clone(self) -> "PulseTrain":
        """Independent deep copy: arrays AND rounding policy."""
        out = PulseTrain(
            output_kind=self._output_kind,
            min_time_dt=self._min_time_dt,
            rounding_policy=self.rounding_policy.clone(),
            display_units=self.display_units,
            user_summary=self.user_summary,
        )
        out._n         = self._n
        out._total_ns  = self._total_ns
        out._amp_buf   = self._amp_buf[: self._n].copy()
        out._dur_buf   = self._dur_buf[: self._n].copy()
        out._start_buf = self._start_buf[: self._n].copy()
        out._stop_buf  = self._stop_buf[: self._n].copy()
        return out

    __copy__ = clone

    def __deepcopy__(self, memo) -> "PulseTrain":
        return self.clone()

    # ── Internal helpers ─────────────────────────────────────────────────────

    def _quantize(self, durations, amplitudes) -> np.ndarray:
        return DurationQuantizer(self.rounding_policy).get_rounded_durations(
            durations, amplitudes, self._min_time_dt
        )

    def _replace_segments(self, amplitudes, durations) -> None:
        """
        Swap in a complete new segment list.

        Package-internal: durations are quantized here, timing recomputed from
        scratch.  Validation is the caller's job — by the time this runs the
        operation has already been accepted.
        """
        amps = np.array(amplitudes, dtype=np.float64).reshape(-1)
        if amps.size != np.size(durations):
            raise LengthMismatch(
                f"# of amplitudes and durations should be the same, "
                f"observed {amps.size} and {np.size(durations)}"
            )
        durs    = self._quantize(durations, amps)
        stop_ns = np.cumsum(to_ns(durs))

        self._n         = amps.size
        self._total_ns  = int(stop_ns[-1]) if amps.size else 0
        self._amp_buf   = amps
        self._dur_buf   = durs
        self._stop_buf  = stop_ns / NS_PER_S
        self._start_buf = np.concatenate(([0], stop_ns[:-1])) / NS_PER_S if amps.size else np.zeros(0)
        self._shared    = False

    def _incoming(self, amplitudes, durations, amp_units, dur_units):
        """User-unit (amplitude, duration) arrays → canonical, length-checked."""
        amp_units = amp_units or self._output_kind.canonical_units
        amps = scale_amplitudes(amplitudes, amp_units, self._output_kind)
        durs = scale_durations(durations, dur_units)
        if amps.size != durs.size:
            raise LengthMismatch(
                f"# of amplitudes and durations should be the same, "
                f"observed {amps.size} and {durs.size}"
            )
        return amps, durs

    def _detach(self) -> None:
        for name in ("_amp_buf", "_dur_buf", "_start_buf", "_stop_buf"):
            setattr(self, name, getattr(self, name)[: self._n].copy())
        self._shared = False

    def _grow_to(self, capacity: int) -> None:
        if capacity <= self._amp_buf.size:
            return
        new_cap = max(capacity, 2 * self._amp_buf.size, _MIN_CAPACITY)
        for name in ("_amp_buf", "_dur_buf", "_start_buf", "_stop_buf"):
            old = getattr(self, name)
            new = np.zeros(new_cap, dtype=np.float64)
            new[: self._n] = old[: self._n]
            setattr(self, name, new)
        self._shared = False

    # ── Prepend / append ─────────────────────────────────────────────────────

    def prepend_values(self, amplitudes, durations, amp_units: str | None = None,
                       dur_units: str = TIME_UNITS) -> None:
        """
        Add amplitude/duration pairs to the beginning of the train.

        Amplitudes default to the canonical units of the train, durations to
        seconds.  Durations are quantized with the train's rounding policy.
        """
        amps, durs = self._incoming(amplitudes, durations, amp_units, dur_units)
        self._replace_segments(
            np.concatenate((amps, self.amplitudes)),
            np.concatenate((durs, self.durations)),
        )

    def prepended_values(self, amplitudes, durations, amp_units: str | None = None,
                         dur_units: str = TIME_UNITS) -> "PulseTrain":
        out = self.clone()
        out.prepend_values(amplitudes, durations, amp_units, dur_units)
        return out

    def append_values(self, amplitudes, durations, amp_units: str | None = None,
                      dur_units: str = TIME_UNITS) -> None:
        """Add amplitude/duration pairs to the end of the train."""
        amps, durs = self._incoming(amplitudes, durations, amp_units, dur_units)
        self._replace_segments(
            np.concatenate((self.amplitudes, amps)),
            np.concatenate((self.durations, durs)),
        )

    def appended_values(self, amplitudes, durations, amp_units: str | None = None,
                        dur_units: str = TIME_UNITS) -> "PulseTrain":
        out = self.clone()
        out.append_values(amplitudes, durations, amp_units, dur_units)
        return out

    def add_leading_zero_time(self, t: float, dur_units: str = TIME_UNITS) -> None:
        """Prepend a zero-amplitude segment of length t."""
        self.prepend_values([0.0], [t], dur_units=dur_units)

    def with_leading_zero_time(self, t: float, dur_units: str = TIME_UNITS) -> "PulseTrain":
        out = self.clone()
        out.add_leading_zero_time(t, dur_units)
        return out

    # ── Single-value add / drop  (O(1) amortised) ────────────────────────────

    def add_value(self, amplitude: float, duration: float, amp_units: str | None = None,
                  dur_units: str = TIME_UNITS) -> None:
        """Append ONE segment, updating the timing incrementally."""
        if np.ndim(amplitude) != 0 or np.ndim(duration) != 0:
            raise LengthMismatch("add_value() takes a single amplitude and a single duration")
        amps, durs = self._incoming(amplitude, duration, amp_units, dur_units)
        dur   = self._quantize(durs, amps)[0]
        d_ns  = int(to_ns(dur))

        self._grow_to(self._n + 1)
        i = self._n
        self._amp_buf[i]   = amps[0]
        self._dur_buf[i]   = dur
        self._start_buf[i] = self._total_ns / NS_PER_S
        self._total_ns    += d_ns
        self._stop_buf[i]  = self._total_ns / NS_PER_S
        self._n += 1

    def with_added_value(self, amplitude: float, duration: float, amp_units: str | None = None,
                         dur_units: str = TIME_UNITS) -> "PulseTrain":
        out = self.clone()
        out.add_value(amplitude, duration, amp_units, dur_units)
        return out

    def drop_last_value(self) -> None:
        """Remove the final segment (used when chaining trains)."""
        if self._n == 0:
            raise EmptyTrain("Cannot drop a value from an empty pulse train")
        if self._shared:
            self._detach()
        self._n -= 1
        self._total_ns -= int(to_ns(self._dur_buf[self._n]))

    def without_last_value(self) -> "PulseTrain":
        out = self.clone()
        out.drop_last_value()
        return out

    # ── Repeat / simplify ────────────────────────────────────────────────────

    def repeat(self, n: int) -> None:
        """Tile the whole segment list n times (n >= 1)."""
        if not _is_count(n) or n < 1:
            raise InvalidRepeatCount(f"Repeat count must be an integer >= 1, got {n!r}")
        self._replace_segments(np.tile(self.amplitudes, n), np.tile(self.durations, n))
        logger.debug("Repeated train x%d -> %d segments", n, self._n)

    def repeated(self, n: int) -> "PulseTrain":
        out = self.clone()
        out.repeat(n)
        return out

    def simplify(self) -> None:
        """
        Merge neighbouring segments of identical amplitude and drop
        zero-duration segments, in one left-to-right pass.

        Amplitude equality is EXACT (no tolerance) — abs() of a biphasic
        pulse must collapse reliably when deriving a sync signal.
        """
        d_ns = to_ns(self.durations)
        keep = d_ns > 0
        amps = self.amplitudes[keep]
        d_ns = d_ns[keep]
        if amps.size:
            starts = np.flatnonzero(np.concatenate(([True], amps[1:] != amps[:-1])))
            amps   = amps[starts]
            d_ns   = np.add.reduceat(d_ns, starts)
        self._replace_segments(amps, d_ns / NS_PER_S)

    def simplified(self) -> "PulseTrain":
        out = self.clone()
        out.simplify()
        return out

    # ── Boundary expansion ───────────────────────────────────────────────────

    def _expand(self, t: float, options: ExpandOptions, direction: str) -> None:
        """
        Move the boundary between each masked segment and its neighbour by t.

        direction "left":  masked[i] += t, durations[i-1] -= t
        direction "right": masked[i] += t, durations[i+1] -= t

        EVERY check runs before ANY duration changes.  The new durations are
        built on a local array and swapped in only once all checks passed, so
        a failure leaves the train exactly as it was.
        """
        left  = direction == "left"
        allow = options.allow_expanding_time
        if allow is None:
            allow = not left

        t_ns = int(to_ns(scale_duration(t, options.dur_units)))
        if t_ns % self._dt_ns != 0:
            raise ExpansionNotQuantized(
                f"Expansion of {t_ns / NS_PER_S!r} s is not a multiple of "
                f"min_time_dt ({self._min_time_dt!r} s)"
            )

        n = self._n
        if options.mask is None:
            mask = self.amplitudes != 0
        else:
            mask = np.array(options.mask, dtype=bool).reshape(-1)
            if mask.size != n:
                raise MaskLengthMismatch(
                    f"The mask length must be the same as the amplitude array "
                    f"({mask.size} != {n})"
                )
        if n == 0 or t_ns == 0 or not mask.any():
            return

        boundary = 0 if left else n - 1
        expand_boundary = bool(mask[boundary])
        if expand_boundary:
            if not allow:
                side = "first" if left else "last"
                raise BoundaryExpansionNotAllowed(
                    f"Unable to expand duration for the {side} segment, "
                    f"change with 'allow_expanding_time' option"
                )
            mask[boundary] = False

        idx      = np.flatnonzero(mask)
        neighbor = idx - 1 if left else idx + 1
        d_ns     = to_ns(self.durations)

        if t_ns > 0:
            short = d_ns[neighbor] < t_ns
            if np.any(short):
                bad = int(neighbor[short][0])
                raise InsufficientNeighborDuration(
                    f"Unable to expand past multiple values, neighbouring segment {bad} "
                    f"({d_ns[bad] / NS_PER_S!r} s) is shorter than {t_ns / NS_PER_S!r} s"
                )
        else:
            own = np.append(idx, boundary) if expand_boundary else idx
            short = d_ns[own] < -t_ns
            if np.any(short):
                bad = int(own[short][0])
                raise InsufficientOwnDuration(
                    f"Unable to shorten segment {bad} ({d_ns[bad] / NS_PER_S!r} s) "
                    f"beyond having a 0 duration"
                )

        new_ns = d_ns.copy()
        np.add.at(new_ns, idx, t_ns)
        np.add.at(new_ns, neighbor, -t_ns)
        if expand_boundary:
            new_ns[boundary] += t_ns

        self._replace_segments(self.amplitudes, new_ns / NS_PER_S)
        logger.debug("%s-expanded %d segment(s) by %g s", direction, idx.size + expand_boundary,
                     t_ns / NS_PER_S)

    def left_expand_durations(self, t: float, mask=None, allow_expanding_time: bool = False,
                              dur_units: str = TIME_UNITS) -> None:
        """
        Grow masked segments to the LEFT by consuming the preceding segment.

            high       ----         initial
            zero   ----    --
            high     ------         left-expanded
            zero   --      --

        Args:
            t:                    signed expansion; negative shortens
            mask:                 segments to expand; default nonzero amplitudes
            allow_expanding_time: permit expanding the first segment, which
                                  grows total duration (shifts the signal)
            dur_units:            units of t
        """
        self._expand(t, ExpandOptions(mask, allow_expanding_time, dur_units), "left")

    def left_expanded_durations(self, t: float, mask=None, allow_expanding_time: bool = False,
                                dur_units: str = TIME_UNITS) -> "PulseTrain":
        out = self.clone()
        out.left_expand_durations(t, mask, allow_expanding_time, dur_units)
        return out

    def right_expand_durations(self, t: float, mask=None, allow_expanding_time: bool = True,
                               dur_units: str = TIME_UNITS) -> None:
        """
        Grow masked segments to the RIGHT by consuming the following segment.

        Consecutive masked segments eat into each other's expansion.  The last
        segment may grow total duration unless allow_expanding_time is False.
        """
        self._expand(t, ExpandOptions(mask, allow_expanding_time, dur_units), "right")

    def right_expanded_durations(self, t: float, mask=None, allow_expanding_time: bool = True,
                                 dur_units: str = TIME_UNITS) -> "PulseTrain":
        out = self.clone()
        out.right_expand_durations(t, mask, allow_expanding_time, dur_units)
        return out

    # ── Amplitude-only transforms ────────────────────────────────────────────

    def scale(self, factor: float) -> None:
        """Multiply every amplitude by a scalar.  Durations untouched."""
        try:
            ok = np.ndim(factor) == 0 and math.isfinite(factor)
        except TypeError:
            ok = False
        if not ok:
            raise InvalidOption(f"Scale factor must be a finite scalar, got {factor!r}")
        self._amp_buf = self.amplitudes * float(factor)

    def scaled(self, factor: float) -> "PulseTrain":
        out = self.clone()
        out.scale(factor)
        return out

    def __mul__(self, factor):
        if isinstance(factor, (int, float, np.number)) and not isinstance(factor, bool):
            return self.scaled(factor)
        return NotImplemented

    __rmul__ = __mul__

    def rectify(self) -> None:
        """Absolute value of every amplitude."""
        self._amp_buf = np.abs(self.amplitudes)

    def rectified(self) -> "PulseTrain":
        out = self.clone()
        out.rectify()
        return out

    def __abs__(self) -> "PulseTrain":
        return self.rectified()

    def normalize_to_plus_minus_one(self) -> None:
        """Scale so the largest |amplitude| is exactly 1.  All-zero trains are left alone."""
        peak = float(np.max(np.abs(self.amplitudes))) if self._n else 0.0
        if peak:
            self._amp_buf = self.amplitudes / peak

    def normalized_to_plus_minus_one(self) -> "PulseTrain":
        out = self.clone()
        out.normalize_to_plus_minus_one()
        return out

    # ── Composition ──────────────────────────────────────────────────────────

    def concatenate(self, other: "PulseTrain") -> None:
        """
        Append `other`'s full segment list.  `other` is never modified.

        Both trains must drive the same output kind.  `other`'s durations are
        re-quantized onto THIS train's grid.
        """
        if not isinstance(other, PulseTrain):
            raise InvalidOption(f"Can only concatenate a PulseTrain, got {type(other).__name__}")
        if other.output_kind is not self._output_kind:
            raise UnitFamilyMismatch(
                f"Cannot concatenate a {other.output_kind.value} train onto a "
                f"{self._output_kind.value} train"
            )
        self._replace_segments(
            np.concatenate((self.amplitudes, other.amplitudes)),
            np.concatenate((self.durations, other.durations)),
        )

    def concatenated(self, other: "PulseTrain") -> "PulseTrain":
        out = self.clone()
        out.concatenate(other)
        return out

    def __add__(self, other):
        if isinstance(other, PulseTrain):
            return self.concatenated(other)
        return NotImplemented

    # ── Derived trains ───────────────────────────────────────────────────────

    def create_sync_signal(self, simplify_output: bool = True,
                           sync_amplitude: float = 1.0) -> "PulseTrain":
        """
        Derive a sync / blanking train: `sync_amplitude` wherever this train
        is nonzero, 0 elsewhere.

        abs() of a biphasic pulse leaves neighbouring segments with equal
        amplitude; simplify_output merges them into one segment, which makes
        later duration expansion of the sync train behave as expected.
        """
        opts = SyncOptions(simplify_output, sync_amplitude)
        out  = self.rectified()
        if opts.simplify_output:
            out.simplify()
        amps = out.amplitudes.copy()
        amps[amps != 0] = opts.sync_amplitude
        out._amp_buf = amps
        return out
