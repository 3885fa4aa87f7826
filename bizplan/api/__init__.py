# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - orchestrate.py: one conversational turn (rate limited per session)
#   - navigator.py: next applicable question and progress
#   - deps.py: shared components injected via Depends()
# =============================================================================
