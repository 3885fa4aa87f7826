# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API. The session
# snapshot is the domain ConversationContext itself; the HTTP layer adds
# only the per-turn fields around it.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field

from bizplan.models.domain import ConversationContext


class OrchestrateRequest(BaseModel):
    """
    Request body for POST /orchestrate — run one conversational turn.

    Example:
        {
            "message": "We sell accounting software to clinics in India",
            "context": {"session_id": "s-42", "language": "en-US",
                        "answers": {"business_name": "ClinicBooks"},
                        "current_phase_index": 3}
        }
    """

    message: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="The user's latest message or answer",
    )
    context: ConversationContext = Field(
        ...,
        description="Snapshot of the session: answers, language and position",
    )
    # Optional: pin the phase used for agent selection.
    # If None, the phase at context.current_phase_index is used.
    phase_id: str | None = Field(
        default=None,
        description="Phase to select agents for. Defaults to the context's current phase.",
        examples=["market"],
    )
    # Optional: bypass selection entirely (testing, deterministic clients)
    agent_ids: list[str] | None = Field(
        default=None,
        max_length=13,
        description="Explicit agents for this turn. Selection rules are skipped when set.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "message": "Mostly small clinics, and we want to expand to the US",
                    "context": {
                        "session_id": "s-42",
                        "language": "en-US",
                        "answers": {
                            "business_name": "ClinicBooks",
                            "industry": "saas",
                            "customer_type": "b2b",
                        },
                        "current_phase_index": 3,
                        "current_question_index": 0,
                    },
                },
            ]
        }
    )


class NavigatorRequest(BaseModel):
    """Request body for POST /navigator/next."""

    context: ConversationContext
