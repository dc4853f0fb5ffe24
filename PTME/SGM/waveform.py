# =============================================================================
# waveform.py — SGM Waveform Templates
# =============================================================================
#
# A waveform is the small (amplitude, duration) pattern that the train
# builders stamp out once per pulse, e.g. a biphasic pulse:
#
#        +A  ┌────┐
#   0 ───┐   │    └──────
#        └───┘
#   -A   phase1 phase2
#
# Templates are immutable values.  Builders hold a reference and copy the
# arrays into each train — nothing ever writes back into a template, so the
# module-level default can be shared safely.
#
# Amplitudes are stored in canonical units (uA / mV) and durations in
# seconds.  `amp_units` remembers what the user declared so that a train
# built from the template inherits the same current/voltage family.

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from PTME.SMM.constants import (
    CURRENT_UNITS, DEFAULT_WAVEFORM_AMPLITUDE, DEFAULT_WAVEFORM_PHASE_WIDTH,
)
from PTME.SMM.errors import LengthMismatch, NegativeDuration, ValidationError
from PTME.SMM.units import OutputKind, scale_amplitudes, scale_durations, unit_family


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=np.float64).reshape(-1)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class WaveformTemplate:
    """
    Immutable (amplitude, duration) building block.

    Attributes:
        amplitudes: canonical units (uA or mV), read-only array
        durations:  seconds, read-only array
        amp_units:  the unit token the template was declared in
    """
    amplitudes: np.ndarray
    durations:  np.ndarray
    amp_units:  str = CURRENT_UNITS
    output_kind: OutputKind = field(init=False)

    def __post_init__(self) -> None:
        amps = _frozen(self.amplitudes)
        durs = _frozen(self.durations)
        if amps.size != durs.size:
            raise LengthMismatch(
                f"# of amplitudes and durations should be the same, "
                f"observed {amps.size} and {durs.size}"
            )
        if amps.size == 0:
            raise ValidationError("A waveform needs at least one segment")
        if np.any(durs < 0):
            raise NegativeDuration("Waveform durations must be >= 0")
        object.__setattr__(self, "amplitudes", amps)
        object.__setattr__(self, "durations", durs)
        object.__setattr__(self, "output_kind", unit_family(self.amp_units))

    # ── Derived values ───────────────────────────────────────────────────────

    @property
    def total_duration(self) -> float:
        return float(self.durations.sum())

    @property
    def n_samples(self) -> int:
        return int(self.amplitudes.size)

    def __len__(self) -> int:
        return self.n_samples

    def __eq__(self, other) -> bool:
        if not isinstance(other, WaveformTemplate):
            return NotImplemented
        return (
            self.output_kind is other.output_kind
            and np.array_equal(self.amplitudes, other.amplitudes)
            and np.array_equal(self.durations, other.durations)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"WaveformTemplate(n={self.n_samples}, "
            f"total={self.total_duration * 1e6:.1f} us, {self.output_kind.value})"
        )

    # ── Constructors ─────────────────────────────────────────────────────────

    @classmethod
    def from_arrays(cls, amplitudes, durations, amp_units: str = CURRENT_UNITS,
                    dur_units: str = "s") -> "WaveformTemplate":
        """Build a template from user-unit arrays."""
        return cls(
            amplitudes=scale_amplitudes(amplitudes, amp_units),
            durations=scale_durations(durations, dur_units),
            amp_units=amp_units,
        )


def biphasic(
    amplitude: float = DEFAULT_WAVEFORM_AMPLITUDE,
    phase_width: float = DEFAULT_WAVEFORM_PHASE_WIDTH,
    amp_units: str = CURRENT_UNITS,
    dur_units: str = "s",
    cathodic_first: bool = True,
    interphase_gap: float = 0.0,
) -> WaveformTemplate:
    """
    Charge-balanced biphasic pulse.

    Args:
        amplitude:      peak amplitude of each phase, in `amp_units`
        phase_width:    width of each phase, in `dur_units`
        cathodic_first: negative phase first (the usual stimulation convention)
        interphase_gap: optional zero-amplitude gap between phases

    Returns:
        WaveformTemplate with 2 segments (3 if an interphase gap is given).
    """
    first = -abs(amplitude) if cathodic_first else abs(amplitude)
    if interphase_gap:
        amps = [first, 0.0, -first]
        durs = [phase_width, interphase_gap, phase_width]
    else:
        amps = [first, -first]
        durs = [phase_width, phase_width]
    return WaveformTemplate.from_arrays(amps, durs, amp_units, dur_units)


def monophasic(
    amplitude: float = DEFAULT_WAVEFORM_AMPLITUDE,
    width: float = DEFAULT_WAVEFORM_PHASE_WIDTH,
    amp_units: str = CURRENT_UNITS,
    dur_units: str = "s",
) -> WaveformTemplate:
    """Single square phase of `amplitude` lasting `width`."""
    return WaveformTemplate.from_arrays([amplitude], [width], amp_units, dur_units)


def default_waveform(amp_units: str = CURRENT_UNITS) -> WaveformTemplate:
    """1 amp-unit, 100 us per phase, cathodic-first biphasic pulse."""
    return biphasic(DEFAULT_WAVEFORM_AMPLITUDE, DEFAULT_WAVEFORM_PHASE_WIDTH, amp_units)
