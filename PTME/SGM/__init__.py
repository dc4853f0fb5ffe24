# =============================================================================
# PTME/SGM/__init__.py — Signal Generation Module
# =============================================================================
#
# Sub-modules:
#   waveform.py       — immutable WaveformTemplate + biphasic / monophasic
#   options.py        — typed, eagerly validated option structures
#   pulse_train.py    — PulseTrain data model and its mutators
#   train_builder.py  — from_amp_duration_arrays / from_times / fixed_rate
#   export_bridge.py  — integer device export + stimulator hand-off
# =============================================================================
