# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
#   - domain.py: catalog entries and per-turn values (frozen)
#   - requests.py / responses.py: the HTTP contract
#
# Response models are separate from the domain models so internal fields
# (error details, raw skill payloads) never reach API clients.
# =============================================================================
