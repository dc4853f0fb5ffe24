# =============================================================================
# errors.py — SMM Error Taxonomy
# =============================================================================
#
# Three families, all raised synchronously to the immediate caller:
#
#   ValidationError      — the request itself is malformed
#                          (lengths, units, times, masks, options)
#   ResolutionError      — the request is well-formed but cannot be
#                          represented on the min_time_dt grid
#   BoundaryPolicyError  — an expansion would grow total duration without
#                          the caller opting in
#
# Every family also derives from ValueError so callers that catch the builtin
# keep working.

class PulseTrainError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(PulseTrainError, ValueError):
    pass


class ResolutionError(PulseTrainError, ValueError):
    pass


class BoundaryPolicyError(PulseTrainError, ValueError):
    pass


# ── Validation ───────────────────────────────────────────────────────────────

class LengthMismatch(ValidationError):
    """Amplitude and duration arrays differ in length."""


class InvalidTimes(ValidationError):
    """Pulse times are empty, negative or not strictly ascending."""


class InsufficientSpacing(ValidationError):
    """An inter-pulse interval is shorter than the waveform."""


class UnknownUnit(ValidationError):
    pass


class UnitFamilyMismatch(ValidationError):
    """Voltage units used on a current train, or vice versa."""


class MaskLengthMismatch(ValidationError):
    pass


class NegativeDuration(ValidationError):
    pass


class InvalidRepeatCount(ValidationError):
    pass


class EmptyTrain(ValidationError):
    pass


class UnknownOption(ValidationError):
    pass


class InvalidOption(ValidationError):
    pass


class AmplitudeOutOfRange(ValidationError):
    """Amplitude does not fit the device's int32 sub-unit range."""


# ── Resolution ───────────────────────────────────────────────────────────────

class RateTooHigh(ResolutionError):
    """1/rate quantizes to zero steps of min_time_dt."""


class RateExceedsWaveform(ResolutionError):
    """The quantized pulse period is shorter than the waveform."""


class TrainRateTooHigh(ResolutionError):
    pass


class InsufficientNeighborDuration(ResolutionError):
    pass


class InsufficientOwnDuration(ResolutionError):
    pass


class ExpansionNotQuantized(ResolutionError):
    pass


class DtNotCompatible(ResolutionError):
    pass


class DurationNotQuantized(ResolutionError):
    pass


# ── Boundary policy ──────────────────────────────────────────────────────────

class BoundaryExpansionNotAllowed(BoundaryPolicyError):
    pass
