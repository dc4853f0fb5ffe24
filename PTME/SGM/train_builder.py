# =============================================================================
# train_builder.py — SGM Pulse Train Builders
# =============================================================================
#
# The three ways a PulseTrain comes into existence:
#
#   from_amp_duration_arrays(amps, durs)  — explicit segment list
#   from_times(times)                     — one waveform per onset time
#   fixed_rate(rate)                      — periodic pulses, optionally grouped
#                                           into trains at a slower train_rate
#
# TIMING GUARANTEE:
#   Onsets and periods are converted to INTEGER STEPS of min_time_dt before
#   any segment is laid out.  In from_times() every onset is anchored to the
#   absolute grid independently, so rounding never accumulates from one pulse
#   to the next; each filler is simply (next onset − this onset − waveform).
#
# Options are keyword arguments, collected into the typed structures of
# SGM/options.py.  Unknown keys are rejected.  Every option and every input
# array is validated BEFORE a train is allocated.

from __future__ import annotations

import logging
import math

import numpy as np

from PTME.SMM.constants import NS_PER_S
from PTME.SMM.errors import (
    InsufficientSpacing, InvalidOption, InvalidTimes, LengthMismatch,
    RateExceedsWaveform, RateTooHigh, ResolutionError, TrainRateTooHigh,
)
from PTME.SMM.units import scale_amplitudes, scale_duration, scale_durations, unit_family
from PTME.SQM.rounding import DurationQuantizer, dt_to_ns, steps_to_seconds, to_ns
from PTME.SGM.options import RateOptions, TrainOptions, parse_options
from PTME.SGM.pulse_train import DisplayUnits, PulseTrain
from PTME.SGM.waveform import WaveformTemplate, default_waveform

logger = logging.getLogger(__name__)


# ── Shared plumbing ──────────────────────────────────────────────────────────

def _empty_train(opts: TrainOptions, amp_units: str) -> PulseTrain:
    return PulseTrain(
        output_kind=unit_family(amp_units),
        min_time_dt=opts.min_time_dt,
        rounding_policy=opts.rounding_policy.clone(),
        display_units=DisplayUnits(amp_units, opts.dur_units),
    )


def _waveform_for(opts: TrainOptions) -> WaveformTemplate:
    return opts.waveform if opts.waveform is not None else default_waveform(opts.amp_units)


def _count_from_duration(duration: float, dur_units: str, period_ns: int, what: str) -> int:
    """floor(duration / period) in integer nanoseconds; 0 is a resolution error."""
    duration_ns = int(to_ns(scale_duration(duration, dur_units)))
    n = duration_ns // period_ns
    if n < 1:
        raise ResolutionError(
            f"{what} of {duration!r} {dur_units} is shorter than one period "
            f"({period_ns / NS_PER_S!r} s)"
        )
    return n


def _check_rate(name: str, rate) -> float:
    try:
        ok = math.isfinite(rate) and rate > 0
    except TypeError:
        ok = False
    if not ok:
        raise InvalidOption(f"{name} must be a positive finite number, got {rate!r}")
    return float(rate)


# ── Builders ─────────────────────────────────────────────────────────────────

def from_amp_duration_arrays(amplitudes, durations, **options) -> PulseTrain:
    """
    Build a train from explicit amplitude / duration arrays.

    Args:
        amplitudes: amplitudes in `amp_units`
        durations:  durations in `dur_units`, each >= 0
        **options:  TrainOptions fields (amp_units, dur_units, min_time_dt,
                    rounding_policy)

    Returns:
        PulseTrain with durations quantized onto the min_time_dt grid.

    Raises:
        LengthMismatch if the arrays differ in length.

    Example:
        pt = from_amp_duration_arrays([-1, 1, 0], [0.1, 0.1, 9.8],
                                      amp_units="mA", dur_units="ms")
    """
    (opts,) = parse_options(options, TrainOptions)

    amp_count = np.size(amplitudes)
    dur_count = np.size(durations)
    if amp_count != dur_count:
        raise LengthMismatch(
            f"# of amplitudes and durations should be the same, "
            f"observed {amp_count} and {dur_count}"
        )

    amps = scale_amplitudes(amplitudes, opts.amp_units)
    durs = scale_durations(durations, opts.dur_units)

    train = _empty_train(opts, opts.amp_units)
    train._replace_segments(amps, durs)
    logger.debug("from_amp_duration_arrays: %d segments, %g s", len(train), train.total_duration)
    return train


def from_times(times, **options) -> PulseTrain:
    """
    Place one waveform at each onset time.

        times: 0        t1       t2
               |~|----- |~|-----|~|
               pulse    pulse   pulse     (filler '-' between pulses)

    A leading zero filler of length times[0] is emitted unless the first
    onset lands on step 0 of the min_time_dt grid.
    No filler follows the last pulse.

    Args:
        times:     strictly ascending, non-negative onset times in `dur_units`
        **options: TrainOptions fields; `waveform` defaults to the 1-unit,
                   100 us/phase biphasic pulse

    Raises:
        InvalidTimes         empty, negative, non-finite or non-ascending times
        InsufficientSpacing  an inter-pulse interval shorter than the waveform
    """
    (opts,) = parse_options(options, TrainOptions)
    waveform = _waveform_for(opts)

    times_s = scale_durations(times, opts.dur_units)
    if times_s.size == 0:
        raise InvalidTimes("times must contain at least one onset")
    if not np.all(np.isfinite(times_s)):
        raise InvalidTimes("times must all be finite")
    if np.any(times_s < 0):
        raise InvalidTimes("times must all be >= 0")
    if np.any(np.diff(times_s) <= 0):
        raise InvalidTimes("times must be in strictly ascending order")

    # Raw check first, so an ISI that is too short never gets rescued by rounding
    isi_ns = np.diff(to_ns(times_s))
    wf_ns  = int(to_ns(waveform.total_duration))
    short  = np.flatnonzero(isi_ns < wf_ns)
    if short.size:
        i = int(short[0])
        raise InsufficientSpacing(
            f"Insufficient time between pulses {i} and {i + 1} "
            f"({isi_ns[i] / NS_PER_S!r} s) given waveform duration {waveform.total_duration!r} s"
        )

    quantizer = DurationQuantizer(opts.rounding_policy)
    dt_ns     = dt_to_ns(opts.min_time_dt)
    onsets    = quantizer.to_steps(times_s, None, opts.min_time_dt)
    wf_steps  = quantizer.to_steps(waveform.durations, waveform.amplitudes, opts.min_time_dt)
    gaps      = np.diff(onsets) - int(wf_steps.sum())

    if np.any(gaps < 0):
        i = int(np.flatnonzero(gaps < 0)[0])
        raise InsufficientSpacing(
            f"Pulses {i} and {i + 1} overlap once snapped to the "
            f"{opts.min_time_dt!r} s grid"
        )

    # ── Layout: [lead] (waveform, gap) * (n-1), waveform ─────────────────────
    n_times  = times_s.size
    n_wf     = waveform.n_samples
    per_unit = n_wf + 1

    amps  = np.tile(np.append(waveform.amplitudes, 0.0), n_times)[:-1]
    steps = np.tile(np.append(wf_steps, 0), n_times)[:-1]
    steps[n_wf::per_unit] = gaps

    if onsets[0] != 0:
        amps  = np.concatenate(([0.0], amps))
        steps = np.concatenate(([onsets[0]], steps))

    train = _empty_train(opts, waveform.amp_units)
    train._replace_segments(amps, steps_to_seconds(steps, dt_ns))
    logger.debug("from_times: %d pulses -> %d segments, %g s",
                 n_times, len(train), train.total_duration)
    return train


def fixed_rate(rate: float, **options) -> PulseTrain:
    """
    Periodic pulses at `rate` Hz, optionally grouped into trains.

    -----------  1/train_rate
    | | |     | | |      | | |    <= n_pulses per train
    ---  1/rate

    Args:
        rate:      pulse rate in Hz
        **options: TrainOptions fields plus RateOptions fields
                   (n_pulses | pulses_duration, train_rate,
                    n_trains | trains_duration)

    Returns:
        PulseTrain.  Without train_rate every pulse is followed by a zero
        filler up to the next period; with train_rate the final filler of
        each group is replaced by the inter-train filler.

    Raises:
        RateTooHigh          1/rate collapses to zero grid steps
        RateExceedsWaveform  the waveform is longer than 1/rate
        TrainRateTooHigh     1/train_rate is zero steps or shorter than a group
        ResolutionError      a *_duration shorter than one period

    Example:
        pt = fixed_rate(40, n_pulses=3)          # 0.075 s, 3 pulses
        pt = fixed_rate(100, n_pulses=5, train_rate=2, trains_duration=10)
    """
    opts, rate_opts = parse_options(options, TrainOptions, RateOptions)
    rate = _check_rate("rate", rate)
    if rate_opts.train_rate is not None:
        _check_rate("train_rate", rate_opts.train_rate)

    waveform  = _waveform_for(opts)
    quantizer = DurationQuantizer(opts.rounding_policy)
    dt_ns     = dt_to_ns(opts.min_time_dt)

    period = quantizer.quantize_period(1 / rate, opts.min_time_dt)
    if period == 0:
        raise RateTooHigh(
            f"Rate of {rate!r} Hz is too high for min_time_dt of {opts.min_time_dt!r} s"
        )
    if to_ns(period) != to_ns(1 / rate):
        logger.warning("Rate of %g Hz is not representable; using %g Hz (period %g s)",
                       rate, 1 / period, period)

    period_steps = int(to_ns(period)) // dt_ns
    wf_steps     = quantizer.to_steps(waveform.durations, waveform.amplitudes, opts.min_time_dt)
    between      = period_steps - int(wf_steps.sum())
    if between < 0:
        raise RateExceedsWaveform(
            f"Requested rate of {rate!r} Hz (period {period!r} s) exceeds the "
            f"waveform duration of {waveform.total_duration!r} s"
        )

    if rate_opts.n_pulses is not None:
        n_pulses = rate_opts.n_pulses
    elif rate_opts.pulses_duration is not None:
        n_pulses = _count_from_duration(rate_opts.pulses_duration, opts.dur_units,
                                        period_steps * dt_ns, "pulses_duration")
    else:
        n_pulses = 1

    # Resolve the train level fully before anything is built
    if rate_opts.train_rate is not None:
        train_period = quantizer.quantize_period(1 / rate_opts.train_rate, opts.min_time_dt)
        if train_period == 0:
            raise TrainRateTooHigh(
                f"Train rate of {rate_opts.train_rate!r} Hz is too high for "
                f"min_time_dt of {opts.min_time_dt!r} s"
            )
        group_steps   = n_pulses * period_steps - between
        train_steps   = int(to_ns(train_period)) // dt_ns
        between_train = train_steps - group_steps
        if between_train < 0:
            raise TrainRateTooHigh(
                f"Train rate of {rate_opts.train_rate!r} Hz leaves no room for "
                f"{n_pulses} pulse(s) at {rate!r} Hz"
            )
        if rate_opts.n_trains is not None:
            n_trains = rate_opts.n_trains
        elif rate_opts.trains_duration is not None:
            n_trains = _count_from_duration(rate_opts.trains_duration, opts.dur_units,
                                            train_steps * dt_ns, "trains_duration")
        else:
            n_trains = 1

    # ── Build: one unit → group → trains ─────────────────────────────────────
    train = _empty_train(opts, waveform.amp_units)
    train._replace_segments(
        np.append(waveform.amplitudes, 0.0),
        steps_to_seconds(np.append(wf_steps, between), dt_ns),
    )
    if n_pulses > 1:
        train.repeat(n_pulses)

    if rate_opts.train_rate is not None:
        train.drop_last_value()
        train.add_value(0.0, between_train * dt_ns / NS_PER_S)
        if n_trains > 1:
            train.repeat(n_trains)

    logger.debug("fixed_rate: %g Hz x %d pulses -> %d segments, %g s",
                 rate, n_pulses, len(train), train.total_duration)
    return train
