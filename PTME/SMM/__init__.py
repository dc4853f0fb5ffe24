# =============================================================================
# PTME/SMM/__init__.py — Standards & Measures Module
# =============================================================================
#
# Everything the rest of the engine agrees on before any signal is built.
#
# Sub-modules:
#   constants.py  — canonical units, default time base, device scale factors
#   units.py      — OutputKind and unit conversion in/out of canonical units
#   errors.py     — ValidationError / ResolutionError / BoundaryPolicyError
# =============================================================================
