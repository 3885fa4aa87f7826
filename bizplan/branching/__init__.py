# =============================================================================
# Branching Package — Adaptive Questionnaire Flow
# =============================================================================
#   - evaluator.py: restricted boolean conditions over accumulated answers
#   - navigator.py: forward scan of the phase/question graph
# =============================================================================
