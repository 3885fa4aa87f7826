# =============================================================================
# Synthesizer — One User-Facing Reply from Many Agent Outputs
# =============================================================================
#
# Only successful results' output_text is used. Tool payloads, error kinds
# and error details stay on the AgentResult; failed agents are mentioned by
# display name only.
#
#   successes ──▶ LLM merge (optional) ──fail──▶ deterministic concatenation
#   no successes ──▶ localized fallback message
#
# synthesize() never returns an empty string and never raises.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

from bizplan.agents.prompts import language_key, language_name
from bizplan.catalog.loader import AgentCatalog
from bizplan.models.domain import AgentResult
from bizplan.services.llm import LLMProvider

logger = logging.getLogger(__name__)

_FALLBACK_MESSAGES: dict[str, str] = {
    "en": "Sorry, I couldn't analyse that just now. Please try again in a moment.",
    "hi": "क्षमा करें, मैं अभी इसका विश्लेषण नहीं कर सका। कृपया थोड़ी देर में फिर से प्रयास करें।",
    "te": "క్షమించండి, ప్రస్తుతం నేను దీన్ని విశ్లేషించలేకపోయాను. దయచేసి కొద్దిసేపటి తర్వాత మళ్లీ ప్రయత్నించండి.",
}

_UNAVAILABLE_NOTES: dict[str, str] = {
    "en": "Some specialists were unavailable: {names}.",
    "hi": "कुछ विशेषज्ञ उपलब्ध नहीं थे: {names}।",
    "te": "కొంతమంది నిపుణులు అందుబాటులో లేరు: {names}.",
}

# Per-agent text handed to the merge prompt
_MERGE_INPUT_CHAR_LIMIT = 1500


def fallback_message(language: str) -> str:
    """Safe reply when no agent produced usable output."""
    return _FALLBACK_MESSAGES.get(language_key(language), _FALLBACK_MESSAGES["en"])


def unavailable_note(language: str, names: Sequence[str]) -> str:
    template = _UNAVAILABLE_NOTES.get(language_key(language), _UNAVAILABLE_NOTES["en"])
    return template.format(names=", ".join(names))


class Synthesizer:
    def __init__(
        self,
        agents: AgentCatalog,
        llm: LLMProvider | None = None,
        use_llm: bool = True,
        max_tokens: int = 300,
    ) -> None:
        self._agents = agents
        self._llm = llm
        self._use_llm = use_llm and llm is not None
        self._max_tokens = max_tokens

    async def synthesize(
        self,
        agent_results: Sequence[AgentResult],
        target_language: str,
        message: str = "",
        next_question: str | None = None,
        allow_llm: bool = True,
    ) -> str:
        """
        Merge successful outputs into one reply in the target language.

        Args:
            agent_results: Every result of the turn, successful or not.
            target_language: BCP-47 style code, e.g. "hi-IN".
            message: The user's message, for acknowledgement.
            next_question: Question text to ask next, if any.
            allow_llm: False forces the deterministic merge.
        """
        successes = [r for r in agent_results if r.success and r.output_text.strip()]
        failed_names = list(dict.fromkeys(
            self._agents.display_name(r.agent_id) for r in agent_results if not r.success
        ))

        if not successes:
            logger.warning(
                "All %d agents failed or returned nothing; using fallback message",
                len(agent_results),
            )
            parts = [fallback_message(target_language)]
            if next_question:
                parts.append(next_question)
            return "\n\n".join(parts)

        body = None
        if self._use_llm and allow_llm:
            body = await self._merge_with_llm(successes, target_language, message, next_question)
        if not body:
            body = self._concatenate(successes, next_question)

        if failed_names:
            body = f"{body}\n\n{unavailable_note(target_language, failed_names)}"
        return body

    async def _merge_with_llm(
        self,
        successes: Sequence[AgentResult],
        target_language: str,
        message: str,
        next_question: str | None,
    ) -> str | None:
        lang = language_name(target_language)
        system = (
            "You are a friendly business advisor. Keep responses short (2-4 sentences).\n"
            f"- Respond in {lang} only.\n"
            "- Be warm and natural.\n"
            "- Never use placeholder brackets like [something].\n"
            "- Never include language codes such as hi-IN in your response.\n"
            "- Use only the specialist notes provided; don't invent topics."
        )
        notes = "\n\n".join(
            f"[{self._agents.display_name(r.agent_id)}]\n{r.output_text[:_MERGE_INPUT_CHAR_LIMIT]}"
            for r in successes
        )
        instructions = (
            f'Briefly acknowledge what they said, share the most useful insight, then ask: "{next_question}"'
            if next_question
            else "Briefly acknowledge what they said and share the most useful insight."
        )
        prompt = (
            f'The user said: "{message}"\n\n'
            f"Specialist notes:\n{notes}\n\n"
            f"{instructions}\nRESPOND IN {lang.upper()} ONLY."
        )
        try:
            response = await self._llm.complete(
                messages=[{"role": "user", "content": prompt}],
                system=system,
                temperature=0.7,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            logger.warning("LLM synthesis failed, concatenating outputs instead: %s", exc)
            return None
        text = response.content.strip()
        if not text:
            logger.warning("LLM synthesis returned no text, concatenating outputs instead")
            return None
        return text

    def _concatenate(self, successes: Sequence[AgentResult], next_question: str | None) -> str:
        if len(successes) == 1:
            parts = [successes[0].output_text.strip()]
        else:
            parts = [
                f"**{self._agents.display_name(r.agent_id)}**\n{r.output_text.strip()}"
                for r in successes
            ]
        if next_question:
            parts.append(next_question)
        return "\n\n".join(parts)
