# =============================================================================
# Domain Models — Pydantic V2 Schemas for the Orchestration Core
# =============================================================================
#
# Static catalog entries (Phase, Question, AgentDefinition) and the
# per-turn values that flow through the pipeline:
#
#   ConversationContext ──▶ Intent ──▶ Task[] ──▶ AgentResult[] ──▶ OrchestrationResult
#
# All models are frozen. The caller owns ConversationContext; the core only
# reads the snapshot it is handed and returns new values.
# =============================================================================

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(StrEnum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    AMOUNT = "amount"
    PERCENTAGE = "percentage"
    PERCENTAGE_BREAKDOWN = "percentage_breakdown"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    DATE = "date"
    CHOICE = "choice"
    MULTI_SELECT = "multiselect"
    SLIDER = "slider"
    RANGE = "range"
    LIST = "list"
    RANKING = "ranking"
    MILESTONE = "milestone"
    CHECKPOINT = "checkpoint"


class ExecutionMode(StrEnum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class OrchestrationState(StrEnum):
    RECEIVED = "received"
    INTENT_ANALYZED = "intent_analyzed"
    PLANNED = "planned"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    COMPLETE = "complete"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Static catalog
# ---------------------------------------------------------------------------


class QuestionOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class Question(BaseModel):
    """One step of the questionnaire graph."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str = ""
    type: QuestionType = QuestionType.TEXT
    required: bool = True
    # Boolean expression over answers, e.g. "customer_type in ['b2b', 'b2g']"
    condition: str | None = None
    skill_trigger: str | None = None
    options: tuple[QuestionOption, ...] = ()


class Phase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    questions: tuple[Question, ...] = ()


class AgentDefinition(BaseModel):
    """An LLM persona and the skills it may call."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    system_prompt: str
    allowed_skills: frozenset[str] = frozenset()
    temperature: float | None = None


# ---------------------------------------------------------------------------
# Per-turn input
# ---------------------------------------------------------------------------


class ConversationContext(BaseModel):
    """
    Immutable snapshot of one session, supplied by the session layer.

    current_question_index == -1 means "positioned before the first
    question of current_phase_index".
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    language: str = "en-US"
    answers: dict[str, Any] = Field(default_factory=dict)
    current_phase_index: int = Field(default=0, ge=0)
    current_question_index: int = Field(default=-1, ge=-1)

    @property
    def effective_language(self) -> str:
        """Explicit language answer wins over the session default."""
        answered = self.answers.get("language")
        return answered if isinstance(answered, str) and answered else self.language


class NextStep(BaseModel):
    """Navigator output: the next applicable question, or completion."""

    model_config = ConfigDict(frozen=True)

    completed: bool = False
    phase_index: int | None = None
    question_index: int | None = None
    phase_id: str | None = None
    question: Question | None = None

    @classmethod
    def done(cls) -> NextStep:
        return cls(completed=True)


# ---------------------------------------------------------------------------
# Planning & execution
# ---------------------------------------------------------------------------


class Intent(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: str
    execution_mode: ExecutionMode
    rationale: str


class Task(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    agent_id: str
    description: str
    depends_on: str | None = None  # Task id; sequential mode only


class ToolCall(BaseModel):
    """Record of one skill invocation made on an agent's behalf."""

    model_config = ConfigDict(frozen=True)

    skill_name: str
    params: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    duration_ms: int = 0
    error: str | None = None


class AgentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    agent_id: str
    output_text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    duration_ms: int = 0
    success: bool = True
    error: str | None = None          # Error kind, e.g. "Timeout"
    error_detail: str | None = None   # For caller-side logging only
    input_tokens: int = 0
    output_tokens: int = 0


class OrchestrationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    synthesis: str
    agent_results: tuple[AgentResult, ...] = ()
    intent: Intent
    total_duration_ms: int = 0
    state: OrchestrationState = OrchestrationState.COMPLETE
    selected_agents: tuple[str, ...] = ()
    next_step: NextStep | None = None
