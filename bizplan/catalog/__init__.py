# =============================================================================
# Catalog Package — Static Questionnaire, Agent and Selection Data
# =============================================================================
#   - loader.py: YAML loading, validation and cross-reference checks
#   - data/: shipped phases.yaml, agents.yaml, selection.yaml
# =============================================================================
