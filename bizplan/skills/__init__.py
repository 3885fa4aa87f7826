# =============================================================================
# Skills Package — Deterministic Business-Planning Tools
# =============================================================================
#   - registry.py: Skill type, SkillRegistry, build_default_registry()
#   - financial_modeling.py: multi-year revenue/EBITDA projection
#   - market_sizing.py: TAM/SAM/SOM calculator
#   - unit_economics.py: CAC, LTV, payback
#   - competitor_analysis.py: competitor positioning template
#   - compliance_checker.py: licences and regulatory risks
# =============================================================================
