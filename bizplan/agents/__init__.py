# =============================================================================
# Agents Package — LangGraph Turn Orchestration
# =============================================================================
#   - orchestrator.py: LangGraph graph: analyze intent → plan → execute →
#     synthesize, with FAILED as the alternative terminal
#   - selector.py: phase → agent ids from the selection table
#   - intent.py: parallel vs. sequential classification
#   - executor.py: task scheduling, per-task timeouts, tool-call loop
#   - synthesizer.py: one reply from many agent outputs
#   - prompts.py: language directive, answer summary, task messages
# =============================================================================
