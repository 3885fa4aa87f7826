# =============================================================================
# Phase/Question Navigator — Adaptive Walk over the Static Question Graph
# =============================================================================
#
# Given the caller's position (phase index, question index) and the answers
# so far, find the next question whose condition holds. The scan is a pure
# function of (position, answers), so retries of the same turn always land
# on the same question.
#
#   (p, q+1) ─▶ (p, q+2) ─▶ ... ─▶ (p+1, 0) ─▶ ... ─▶ Completed
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from bizplan.branching.evaluator import evaluate
from bizplan.models.domain import ConversationContext, NextStep, Phase, Question

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Progress:
    """Questionnaire completion, counting only applicable questions."""

    answered: int
    total: int
    percentage: int
    skipped: int


class Navigator:
    """Walks the phase/question catalog using branch conditions."""

    def __init__(self, phases: Sequence[Phase]) -> None:
        self._phases = tuple(phases)

    @property
    def phases(self) -> tuple[Phase, ...]:
        return self._phases

    def phase_id(self, phase_index: int) -> str | None:
        if 0 <= phase_index < len(self._phases):
            return self._phases[phase_index].id
        return None

    def next_step(self, context: ConversationContext) -> NextStep:
        """
        Return the first applicable question after the current position.

        Advancing past the last question of a phase continues at question 0
        of the next phase; running out of phases yields NextStep.done().
        """
        for phase_index, question_index, question in self._scan_after(
            context.current_phase_index, context.current_question_index,
        ):
            if evaluate(question.condition, context.answers):
                return NextStep(
                    phase_index=phase_index,
                    question_index=question_index,
                    phase_id=self._phases[phase_index].id,
                    question=question,
                )
            logger.debug("Skipping question %s (condition false)", question.id)
        return NextStep.done()

    def remaining_count(self, context: ConversationContext) -> int:
        """Applicable questions after the current position."""
        return sum(
            1
            for _, _, question in self._scan_after(
                context.current_phase_index, context.current_question_index,
            )
            if evaluate(question.condition, context.answers)
        )

    def progress(self, context: ConversationContext) -> Progress:
        """
        Answered vs. total applicable questions up to the end of the catalog.

        Questions before the current position are counted as answered when an
        answer exists, or skipped when their condition is false.
        """
        answered = skipped = 0
        for phase_index, question_index, question in self._iter_all():
            if (phase_index, question_index) > (
                context.current_phase_index, context.current_question_index,
            ):
                break
            if not evaluate(question.condition, context.answers):
                skipped += 1
            elif question.id in context.answers:
                answered += 1

        total = answered + self.remaining_count(context)
        percentage = round(answered / total * 100) if total else 0
        return Progress(answered=answered, total=total, percentage=percentage, skipped=skipped)

    def applicable_questions(
        self, phase_index: int, answers: Mapping[str, Any],
    ) -> list[Question]:
        """Questions of one phase whose conditions hold for the answers."""
        if not 0 <= phase_index < len(self._phases):
            return []
        return [
            q for q in self._phases[phase_index].questions
            if evaluate(q.condition, answers)
        ]

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _iter_all(self) -> Iterator[tuple[int, int, Question]]:
        for phase_index, phase in enumerate(self._phases):
            for question_index, question in enumerate(phase.questions):
                yield phase_index, question_index, question

    def _scan_after(
        self, phase_index: int, question_index: int,
    ) -> Iterator[tuple[int, int, Question]]:
        start = (phase_index, question_index)
        for position in self._iter_all():
            if (position[0], position[1]) > start:
                yield position
