# =============================================================================
# constants.py — SMM Canonical Units, Time Base and Device Scale Factors
# =============================================================================
#
# Every amplitude and duration inside the engine lives in ONE of these
# canonical units.  User units are converted on the way in (SMM/units.py) and
# device units are produced on the way out (SGM/export_bridge.py).
#
#   Current  : uA   (micro-amps)
#   Voltage  : mV   (milli-volts)
#   Time     : s    (seconds)
#
# The tables below are read-only mappings.  DO NOT mutate them at runtime.

from types import MappingProxyType

# -----------------------------------------------------------------------------
# CANONICAL UNITS
# -----------------------------------------------------------------------------

CURRENT_UNITS = "uA"
VOLTAGE_UNITS = "mV"
TIME_UNITS    = "s"

# -----------------------------------------------------------------------------
# TIME BASE
# -----------------------------------------------------------------------------

# Minimum realizable time step of an MCS stimulator (20 us  →  50 kHz).
# For hardware where you choose a sampling rate this is 1 / fs.
DEFAULT_MIN_TIME_DT = 20e-6     # s

# All "is this an exact multiple" checks are done on integer nanoseconds.
# 1 ns is the floor resolution of the engine — nothing finer is representable.
NS_PER_S = 1_000_000_000

# -----------------------------------------------------------------------------
# DEFAULT WAVEFORM  (biphasic, cathodic first)
# -----------------------------------------------------------------------------

DEFAULT_WAVEFORM_AMPLITUDE   = 1.0       # in the train's amp_units
DEFAULT_WAVEFORM_PHASE_WIDTH = 100e-6    # s, per phase

# -----------------------------------------------------------------------------
# DEVICE SCALE FACTORS  (canonical  →  stimulator sub-units)
# -----------------------------------------------------------------------------
#   uA → nA   and   mV → uV    :  x 1000   (int32 on the wire)
#   s  → us                    :  x 1e6    (uint64 on the wire)

AMPLITUDE_DEVICE_SCALE = 1_000
DURATION_DEVICE_SCALE  = 1_000_000

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

# -----------------------------------------------------------------------------
# UNIT SCALE TABLES  (token → multiplier INTO canonical units)
# Keys are lower-case; "µ" is folded to "u" before lookup.
# -----------------------------------------------------------------------------

CURRENT_UNIT_SCALE = MappingProxyType({
    "ma": 1e3,      # mA → uA
    "ua": 1.0,
    "na": 1e-3,     # nA → uA
})

VOLTAGE_UNIT_SCALE = MappingProxyType({
    "v":  1e3,      # V  → mV
    "mv": 1.0,
    "uv": 1e-3,     # uV → mV
})

TIME_UNIT_SCALE = MappingProxyType({
    "s":  1.0,
    "ms": 1e-3,
    "us": 1e-6,
})
