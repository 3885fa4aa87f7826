# =============================================================================
# LangGraph Orchestrator — One Conversational Turn, End to End
# =============================================================================
#
# The orchestrator wires the turn pipeline into a LangGraph StateGraph:
#
#   START ──▶ analyze_intent ──▶ plan ──┬──▶ execute ──▶ synthesize ──▶ END
#                                       └──▶ fail ───────────────────▶ END
#
# Each node records the lifecycle state it reaches:
#   RECEIVED → INTENT_ANALYZED → PLANNED → EXECUTING → SYNTHESIZING → COMPLETE
# with FAILED as the alternative terminal when planning resolves no agents.
# Partial failures during execution still proceed to synthesis.
#
# The turn deadline (turn_timeout_seconds) is an absolute event-loop time
# handed to the executor; tasks that miss it become "Timeout" results and
# synthesis runs over whatever settled. orchestrate() never raises: any
# unexpected error yields a FAILED result carrying the fallback message.
#
# An Orchestrator is built once at startup (catalog, registry, provider)
# and shared by all requests; the compiled graph holds no per-turn state.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import operator
import time
from collections.abc import Sequence
from typing import Annotated

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from bizplan.agents.executor import TaskExecutor, TurnInput
from bizplan.agents.intent import IntentAnalyzer
from bizplan.agents.selector import AgentSelector
from bizplan.agents.synthesizer import Synthesizer, fallback_message
from bizplan.branching.navigator import Navigator
from bizplan.catalog.loader import Catalog, load_catalog
from bizplan.config import Settings
from bizplan.models.domain import (
    AgentResult,
    ConversationContext,
    ExecutionMode,
    Intent,
    NextStep,
    OrchestrationResult,
    OrchestrationState,
    Task,
)
from bizplan.services.llm import LLMProvider, get_llm_provider
from bizplan.skills.registry import SkillRegistry, build_default_registry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Graph State Schema
# ---------------------------------------------------------------------------


class TurnState(TypedDict, total=False):
    """
    State that flows through the graph for one turn.

    Uses total=False so nodes only return the keys they update. `history`
    is append-only (operator.add reducer).
    """

    # --- Input (set by orchestrate) ---
    message: str
    context: ConversationContext
    phase_id: str | None
    requested_agents: list[str] | None
    deadline: float

    # --- Intermediate (set by nodes) ---
    selected_agents: list[str]
    next_step: NextStep
    intent: Intent
    tasks: list[Task]
    results: list[AgentResult]

    # --- Output ---
    synthesis: str
    history: Annotated[list[OrchestrationState], operator.add]


class Orchestrator:
    """Façade over navigation, selection, intent, execution and synthesis."""

    def __init__(
        self,
        settings: Settings,
        catalog: Catalog,
        registry: SkillRegistry,
        llm: LLMProvider,
    ) -> None:
        self._settings = settings
        self.catalog = catalog
        self.registry = registry
        self.navigator = Navigator(catalog.phases)
        self.selector = AgentSelector(catalog.selection)
        self.intent_analyzer = IntentAnalyzer(llm, use_llm=settings.intent_use_llm)
        self.executor = TaskExecutor(llm, catalog.agents, registry, settings)
        self.synthesizer = Synthesizer(
            catalog.agents,
            llm,
            use_llm=settings.synthesis_use_llm,
            max_tokens=settings.synthesis_max_tokens,
        )
        self._graph = self._build_graph()

    @classmethod
    def from_settings(cls, settings: Settings, llm: LLMProvider | None = None) -> Orchestrator:
        """
        Build registry, load catalogs and create the provider.

        Raises:
            CatalogError: If a catalog is missing or invalid (fatal at startup).
        """
        registry = build_default_registry()
        catalog = load_catalog(settings, registry)
        return cls(settings, catalog, registry, llm or get_llm_provider(settings))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def orchestrate(
        self,
        message: str,
        context: ConversationContext,
        *,
        phase_id: str | None = None,
        agent_ids: Sequence[str] | None = None,
    ) -> OrchestrationResult:
        """
        Run one turn and return the synthesis plus per-agent traces.

        Args:
            message: The user's latest message or answer.
            context: Immutable session snapshot.
            phase_id: Phase to select agents for; defaults to the phase at
                context.current_phase_index.
            agent_ids: Explicit agents for this turn, bypassing selection.

        Returns:
            An OrchestrationResult. Never raises.
        """
        start = time.perf_counter()
        loop = asyncio.get_running_loop()
        initial: TurnState = {
            "message": message,
            "context": context,
            "phase_id": phase_id or self.navigator.phase_id(context.current_phase_index),
            "requested_agents": list(agent_ids) if agent_ids is not None else None,
            "deadline": loop.time() + self._settings.turn_timeout_seconds,
            "history": [OrchestrationState.RECEIVED],
        }
        logger.info(
            "Turn received: session=%s phase=%s message='%s'",
            context.session_id, initial["phase_id"], message[:80],
        )

        try:
            final = await self._graph.ainvoke(initial)
        except Exception:
            logger.exception("Orchestration failed for session %s", context.session_id)
            return OrchestrationResult(
                synthesis=fallback_message(context.effective_language),
                intent=Intent(
                    goal=message[:120] or "unknown",
                    execution_mode=ExecutionMode.SEQUENTIAL,
                    rationale="orchestration failed",
                ),
                total_duration_ms=_elapsed_ms(start),
                state=OrchestrationState.FAILED,
            )

        history = final["history"]
        result = OrchestrationResult(
            synthesis=final["synthesis"],
            agent_results=tuple(final.get("results", ())),
            intent=final["intent"],
            total_duration_ms=_elapsed_ms(start),
            state=history[-1],
            selected_agents=tuple(final.get("selected_agents", ())),
            next_step=final.get("next_step"),
        )
        logger.info(
            "Turn finished: state=%s agents=%d duration=%dms path=%s",
            result.state, len(result.agent_results), result.total_duration_ms,
            " → ".join(history),
        )
        return result

    # ------------------------------------------------------------------
    # Graph Nodes
    # ------------------------------------------------------------------

    async def _analyze_intent_node(self, state: TurnState) -> dict:
        context = state["context"]
        requested = state.get("requested_agents")
        if requested is not None:
            agents = list(dict.fromkeys(requested))
        else:
            agents = self.selector.select(state.get("phase_id"), context.answers)

        intent = await self.intent_analyzer.analyze(state["message"], context, agents)
        logger.info("Intent: %s (%s)", intent.execution_mode, intent.rationale)
        return {
            "selected_agents": agents,
            "next_step": self.navigator.next_step(context),
            "intent": intent,
            "history": [OrchestrationState.INTENT_ANALYZED],
        }

    async def _plan_node(self, state: TurnState) -> dict:
        intent = state["intent"]
        sequential = intent.execution_mode == ExecutionMode.SEQUENTIAL
        phase = state.get("phase_id") or "current"
        tasks: list[Task] = []
        for agent_id in state["selected_agents"]:
            name = self.catalog.agents.display_name(agent_id)
            tasks.append(Task(
                agent_id=agent_id,
                description=f"As the {name}, analyse the user's input for the {phase} phase. Goal: {intent.goal}",
                depends_on=tasks[-1].id if sequential and tasks else None,
            ))
        logger.info("Planned %d tasks", len(tasks))
        return {"tasks": tasks, "history": [OrchestrationState.PLANNED]}

    def _route_after_plan(self, state: TurnState) -> str:
        return "execute" if state.get("tasks") else "fail"

    async def _execute_node(self, state: TurnState) -> dict:
        context = state["context"]
        results = await self.executor.run(
            state["tasks"],
            state["intent"].execution_mode,
            TurnInput(message=state["message"], context=context, phase_id=state.get("phase_id")),
            deadline=state["deadline"],
        )
        return {"results": results, "history": [OrchestrationState.EXECUTING]}

    async def _synthesize_node(self, state: TurnState) -> dict:
        context = state["context"]
        next_step: NextStep = state["next_step"]
        next_question = next_step.question.question if next_step.question else None
        results = state["results"]
        language = context.effective_language

        # Synthesis gets whatever turn time is left, but at least one task budget
        remaining = state["deadline"] - asyncio.get_running_loop().time()
        budget = max(remaining, self._settings.task_timeout_seconds)
        try:
            synthesis = await asyncio.wait_for(
                self.synthesizer.synthesize(results, language, state["message"], next_question),
                timeout=budget,
            )
        except TimeoutError:
            logger.warning("Synthesis exceeded %.1fs, using concatenated outputs", budget)
            synthesis = await self.synthesizer.synthesize(
                results, language, state["message"], next_question, allow_llm=False,
            )
        return {
            "synthesis": synthesis,
            "history": [OrchestrationState.SYNTHESIZING, OrchestrationState.COMPLETE],
        }

    async def _fail_node(self, state: TurnState) -> dict:
        context = state["context"]
        logger.error(
            "No agents resolvable for session %s (phase=%s)",
            context.session_id, state.get("phase_id"),
        )
        return {
            "synthesis": fallback_message(context.effective_language),
            "results": [],
            "history": [OrchestrationState.FAILED],
        }

    # ------------------------------------------------------------------
    # Graph Assembly
    # ------------------------------------------------------------------

    def _build_graph(self):
        builder = StateGraph(TurnState)
        builder.add_node("analyze_intent", self._analyze_intent_node)
        builder.add_node("plan", self._plan_node)
        builder.add_node("execute", self._execute_node)
        builder.add_node("synthesize", self._synthesize_node)
        builder.add_node("fail", self._fail_node)

        builder.add_edge(START, "analyze_intent")
        builder.add_edge("analyze_intent", "plan")
        builder.add_conditional_edges(
            "plan", self._route_after_plan, {"execute": "execute", "fail": "fail"},
        )
        builder.add_edge("execute", "synthesize")
        builder.add_edge("synthesize", END)
        builder.add_edge("fail", END)
        return builder.compile()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
