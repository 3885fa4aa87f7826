# =============================================================================
# Business Planning Orchestrator
# =============================================================================
# Multi-agent orchestration for a guided business-planning conversation.
# Each turn selects specialist agents for the current questionnaire phase,
# runs them in parallel or in sequence with deterministic calculation
# skills, and merges their outputs into one reply plus the next question.
#
# Package structure:
#   bizplan/
#   ├── api/          → FastAPI route handlers (orchestrate, navigator)
#   ├── agents/       → LangGraph turn pipeline: selection, intent,
#   │                    execution, synthesis
#   ├── branching/    → condition evaluator and question navigator
#   ├── catalog/      → YAML phases, agents and selection table + loader
#   ├── models/       → Pydantic V2 domain and request/response schemas
#   ├── services/     → LLM providers and rate limiting
#   └── skills/       → skill registry and business calculators
# =============================================================================
