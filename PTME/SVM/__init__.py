# =============================================================================
# PTME/SVM/__init__.py — Signal Verification Module
# =============================================================================
#
# Tools that look at a finished PulseTrain without changing it.
#
# Sub-modules:
#   sampler.py   — sample-and-hold expansion + GCD time-step inference
#   validate.py  — invariant checker with a PASS / FAIL verdict
# =============================================================================
