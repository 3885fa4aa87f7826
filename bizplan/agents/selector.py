# =============================================================================
# Agent Selector — Which Specialists Handle This Turn
# =============================================================================
#
# Table-driven: each phase lists primary agents plus rules that add agents
# when a condition over the answers holds. Conditions use the same
# evaluator as question gating.
#
#   primary ──▶ + rule 1 additions ──▶ + rule 2 additions ──▶ dedupe
#
# Unlike question gating, a rule whose condition cannot be evaluated is
# skipped (adds nothing): extra agents cost latency and tokens.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from bizplan.branching.evaluator import evaluate
from bizplan.catalog.loader import SelectionTable

logger = logging.getLogger(__name__)


class AgentSelector:
    def __init__(self, table: SelectionTable) -> None:
        self._table = table

    def select(self, phase_id: str | None, answers: Mapping[str, Any]) -> list[str]:
        """
        Ordered, deduplicated agent ids for a phase.

        Unknown (or missing) phase ids get the table's default pair, so the
        result is never empty.
        """
        entry = self._table.phases.get(phase_id) if phase_id else None
        if entry is None:
            logger.info("No selection entry for phase %r, using default agents", phase_id)
            return list(dict.fromkeys(self._table.default))

        selected = list(entry.primary)
        for rule in entry.rules:
            if evaluate(rule.when, answers, on_error=False):
                selected.extend(rule.add)

        agents = list(dict.fromkeys(selected))
        logger.info("Selected agents for phase %s: %s", phase_id, agents)
        return agents
