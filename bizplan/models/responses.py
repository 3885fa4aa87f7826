# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API.
#
# AgentResult.error_detail and raw tool payloads are internal: the turn
# response exposes each agent's status, error kind and skill names only.
# =============================================================================

from pydantic import BaseModel, Field

from bizplan.models.domain import (
    AgentResult,
    ExecutionMode,
    NextStep,
    OrchestrationResult,
    OrchestrationState,
)


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
    phases: int = Field(description="Phases in the loaded questionnaire")
    agents: int = Field(description="Agents in the loaded catalog")
    skills: list[str] = Field(description="Registered skill names")


class AgentSummary(BaseModel):
    """Public view of one agent's run within a turn."""

    agent_id: str
    display_name: str
    success: bool
    error: str | None = Field(
        default=None,
        description="Error kind when the agent failed, e.g. 'Timeout'",
    )
    skills_called: list[str] = Field(default_factory=list)
    duration_ms: int
    input_tokens: int = 0
    output_tokens: int = 0

    @classmethod
    def from_result(cls, result: AgentResult, display_name: str) -> "AgentSummary":
        return cls(
            agent_id=result.agent_id,
            display_name=display_name,
            success=result.success,
            error=result.error,
            skills_called=[call.skill_name for call in result.tool_calls],
            duration_ms=result.duration_ms,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
        )


class OrchestrateResponse(BaseModel):
    """
    Response for POST /orchestrate.

    `reply` is always non-empty: when every agent fails it carries a
    localized fallback message and `state` is still "complete".
    """

    reply: str = Field(description="The synthesized, user-facing reply")
    state: OrchestrationState
    execution_mode: ExecutionMode
    rationale: str = Field(description="Why the agents ran in this mode")
    agents: list[AgentSummary] = Field(default_factory=list)
    next_step: NextStep | None = Field(
        default=None,
        description="Next applicable question after this turn's snapshot",
    )
    total_duration_ms: int

    @classmethod
    def from_result(cls, result: OrchestrationResult, display_names: dict[str, str]) -> "OrchestrateResponse":
        return cls(
            reply=result.synthesis,
            state=result.state,
            execution_mode=result.intent.execution_mode,
            rationale=result.intent.rationale,
            agents=[
                AgentSummary.from_result(r, display_names.get(r.agent_id, r.agent_id))
                for r in result.agent_results
            ],
            next_step=result.next_step,
            total_duration_ms=result.total_duration_ms,
        )


class ProgressResponse(BaseModel):
    answered: int
    total: int
    percentage: int
    skipped: int


class NavigatorResponse(BaseModel):
    """Response for POST /navigator/next."""

    next_step: NextStep
    progress: ProgressResponse
