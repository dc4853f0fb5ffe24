# =============================================================================
# PTME/SQM/__init__.py — Signal Quantization Module
# =============================================================================
#
# Sub-modules:
#   rounding.py  — RoundingPolicy, DurationQuantizer and the integer-ns
#                  helpers every exact-multiple check in the engine uses
# =============================================================================
