# =============================================================================
# Pulse Train Modelling Engine (PTME)
# =============================================================================
#
# Builds, composes and quantizes piecewise-constant stimulus pulse trains
# (ordered amplitude / duration segments) for electrical stimulators.
#
# ── PTME OWNS THE TIME GRID ──────────────────────────────────────────────────
#
# RESPONSIBLE for:
#   - Time quantization
#       Every duration is an exact integer multiple of the stimulator's
#       min_time_dt (20 us by default).  Checks run on integer nanoseconds,
#       never on floating modulo.
#   - Unit safety
#       User units in (mA/uA/nA, V/mV/uV, s/ms/us), canonical units inside
#       (uA or mV, seconds), device integers out (nA or uV, microseconds).
#   - Composition
#       Waveform → pulses at times or at a fixed rate → trains of trains,
#       plus repeat / simplify / boundary expansion / sync derivation.
#
# NOT responsible for:
#   - Talking to hardware.  send_to_device() hands integer arrays to a
#     StimulatorDevice driver supplied by the caller.
#   - Plotting, file formats, real-time scheduling.
#
# ── DATA FLOW ────────────────────────────────────────────────────────────────
#   SMM (units, constants, errors)
#     → SQM (rounding policy, quantizer)
#       → SGM (waveform → builders → PulseTrain mutators → export)
#         → SVM (sampled arrays, GCD step inference, invariant checks)
#
# ── Quick start ──────────────────────────────────────────────────────────────
#   from PTME import fixed_rate, get_stim_values
#   pt = fixed_rate(40, n_pulses=3)           # 3 biphasic pulses, 0.075 s
#   amps_nA, durs_us = get_stim_values(pt)
# =============================================================================

from PTME.SMM.errors import (
    BoundaryPolicyError, PulseTrainError, ResolutionError, ValidationError,
)
from PTME.SMM.units import OutputKind
from PTME.SQM.rounding import DurationQuantizer, RoundingMode, RoundingPolicy
from PTME.SGM.waveform import WaveformTemplate, biphasic, default_waveform, monophasic
from PTME.SGM.pulse_train import DisplayUnits, PulseTrain
from PTME.SGM.train_builder import fixed_rate, from_amp_duration_arrays, from_times
from PTME.SGM.export_bridge import (
    DeviceDestination, StimulatorDevice, get_stim_values, send_to_device,
)
from PTME.SVM.sampler import (
    SampledArray, get_dt_for_durations, get_dt_for_patterns, get_sampled_array,
)
from PTME.SVM.validate import TrainCheck, check_train

__version__ = "0.1.0"
