# =============================================================================
# Intent Analyzer — Parallel or Sequential?
# =============================================================================
#
# Decides whether the selected agents can work independently (parallel)
# or must build on each other's output (sequential, e.g. a financial model
# that consumes the market analysis).
#
# Rule-based by default: zero latency, zero cost, easy to test. With
# `intent_use_llm` the model classifies instead, and any failure there
# falls back to SEQUENTIAL (safest, slower). analyze() never raises.
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence

from bizplan.models.domain import ConversationContext, ExecutionMode, Intent
from bizplan.services.llm import LLMProvider

logger = logging.getLogger(__name__)

# (producer, consumer): consumer's work depends on producer's output
DEPENDENT_PAIRS: tuple[tuple[str, str], ...] = (
    ("market_analyst", "financial_modeler"),
    ("financial_modeler", "gtm_strategist"),
    ("financial_modeler", "funding_strategist"),
    ("market_analyst", "gtm_strategist"),
    ("unit_economics_calculator", "funding_strategist"),
)

_DEPENDENCY_PATTERNS = [
    r"\bbased on\b",
    r"\bthen\b",
    r"\bafter that\b",
    r"\busing the (market|financial|revenue)\b",
    r"\bbuild(ing)? on\b",
    r"\bfrom the (analysis|model|projections?)\b",
]
_DEPENDENCY_RE = re.compile("|".join(_DEPENDENCY_PATTERNS), re.IGNORECASE)

_CLASSIFIER_SYSTEM = (
    "You classify how specialist agents should run for one turn of a "
    "business-planning conversation. Agents run in 'parallel' when their "
    "work is independent, or 'sequential' when later agents need earlier "
    "agents' conclusions. Reply with JSON only: "
    '{"goal": "...", "execution_mode": "parallel" | "sequential", "rationale": "..."}'
)


class IntentAnalyzer:
    def __init__(self, llm: LLMProvider | None = None, use_llm: bool = False) -> None:
        self._llm = llm
        self._use_llm = use_llm and llm is not None

    async def analyze(
        self,
        message: str,
        context: ConversationContext,
        agent_ids: Sequence[str],
    ) -> Intent:
        goal = _goal_from_message(message)
        if self._use_llm:
            return await self._classify_with_llm(message, goal, agent_ids)
        return classify_heuristic(message, agent_ids, goal)

    async def _classify_with_llm(
        self, message: str, goal: str, agent_ids: Sequence[str],
    ) -> Intent:
        prompt = (
            f"User message: {message}\n"
            f"Agents selected for this turn (in order): {', '.join(agent_ids)}"
        )
        try:
            response = await self._llm.complete(
                messages=[{"role": "user", "content": prompt}],
                system=_CLASSIFIER_SYSTEM,
                temperature=0.0,
                max_tokens=200,
            )
            data = json.loads(_strip_code_fence(response.content))
            mode = ExecutionMode(str(data["execution_mode"]).lower())
            intent = Intent(
                goal=str(data.get("goal") or goal),
                execution_mode=mode,
                rationale=str(data.get("rationale") or "model classification"),
            )
        except Exception as exc:
            logger.warning("Intent classifier failed, defaulting to sequential: %s", exc)
            return Intent(
                goal=goal,
                execution_mode=ExecutionMode.SEQUENTIAL,
                rationale=f"classifier failed: {exc}",
            )
        logger.info("Intent (model): %s", intent.execution_mode)
        return intent


def classify_heuristic(message: str, agent_ids: Sequence[str], goal: str | None = None) -> Intent:
    """Keyword and agent-pair rules. Pure; used when no model is configured."""
    goal = goal or _goal_from_message(message)
    if _DEPENDENCY_RE.search(message or ""):
        return Intent(
            goal=goal,
            execution_mode=ExecutionMode.SEQUENTIAL,
            rationale="message asks to build on earlier analysis",
        )

    positions = {agent_id: i for i, agent_id in enumerate(agent_ids)}
    for producer, consumer in DEPENDENT_PAIRS:
        if producer in positions and consumer in positions:
            return Intent(
                goal=goal,
                execution_mode=ExecutionMode.SEQUENTIAL,
                rationale=f"{consumer} depends on {producer}",
            )

    return Intent(
        goal=goal,
        execution_mode=ExecutionMode.PARALLEL,
        rationale="selected agents work independently",
    )


def _goal_from_message(message: str) -> str:
    text = " ".join((message or "").split())
    if not text:
        return "Process the user's answer and continue the plan"
    return text if len(text) <= 120 else text[:117] + "..."


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text)
    return text
