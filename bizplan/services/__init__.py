# =============================================================================
# Services Package — Infrastructure Behind the Orchestrator
# =============================================================================
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#     with normalised tool calls
#   - rate_limiter.py: per-identifier sliding window (in-process or Redis)
# =============================================================================
