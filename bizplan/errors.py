"""
Error taxonomy for the orchestration core.

Per-task failures are recovered into ``AgentResult.error`` using each
exception's ``kind``; none of these propagate past the Orchestrator.
``CatalogError`` is the one process-fatal error (raised at startup).
"""

from __future__ import annotations

TIMEOUT = "Timeout"


class OrchestrationError(Exception):
    """Base class for all orchestration errors."""

    kind = "OrchestrationError"


class CatalogError(OrchestrationError):
    """A static catalog is missing or violates a load-time invariant."""

    kind = "CatalogError"


class ConditionEvaluationError(OrchestrationError):
    """A branch condition could not be parsed or evaluated."""

    kind = "ConditionEvaluationError"

    def __init__(self, condition: str, reason: str) -> None:
        super().__init__(f"Cannot evaluate condition {condition!r}: {reason}")
        self.condition = condition
        self.reason = reason


class AgentNotFound(OrchestrationError):
    kind = "AgentNotFound"

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


class SkillNotFound(OrchestrationError):
    kind = "SkillNotFound"

    def __init__(self, skill_name: str) -> None:
        super().__init__(f"Skill not found: {skill_name}")
        self.skill_name = skill_name


class SkillNotAllowed(OrchestrationError):
    """An agent requested a skill outside its allowed set."""

    kind = "SkillNotAllowed"

    def __init__(self, agent_id: str, skill_name: str) -> None:
        super().__init__(f"Agent {agent_id} is not allowed to call skill {skill_name}")
        self.agent_id = agent_id
        self.skill_name = skill_name


class ToolExecutionError(OrchestrationError):
    kind = "ToolExecutionError"

    def __init__(self, skill_name: str, message: str) -> None:
        super().__init__(f"Skill {skill_name} failed: {message}")
        self.skill_name = skill_name


class ToolCallLimitExceeded(OrchestrationError):
    kind = "ToolCallLimitExceeded"

    def __init__(self, agent_id: str, limit: int) -> None:
        super().__init__(f"Agent {agent_id} exceeded {limit} tool-call iterations")
        self.agent_id = agent_id
        self.limit = limit


class AgentInvocationError(OrchestrationError):
    """The LLM call for an agent failed (after retries)."""

    kind = "AgentInvocationError"
