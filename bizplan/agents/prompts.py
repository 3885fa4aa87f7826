# =============================================================================
# Prompt Builders — Turn Context for Agents, Intent and Synthesis
# =============================================================================
#
# Agent system prompts come from the catalog; this module adds the
# per-turn parts:
#   - a language directive (the session language is enforced on every agent)
#   - a compact summary of the answers collected so far
#   - earlier agents' outputs in sequential mode
# =============================================================================

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from bizplan.models.domain import ConversationContext

LANGUAGE_NAMES: dict[str, str] = {
    "en-US": "English",
    "hi-IN": "Hindi",
    "te-IN": "Telugu",
    "ta-IN": "Tamil",
    "kn-IN": "Kannada",
    "ml-IN": "Malayalam",
    "mr-IN": "Marathi",
    "bn-IN": "Bengali",
    "gu-IN": "Gujarati",
}

# Answers worth surfacing to every agent, in display order
_SUMMARY_FIELDS: tuple[tuple[str, str], ...] = (
    ("user_name", "User"),
    ("user_location", "Location"),
    ("years_experience", "Experience (years)"),
    ("core_skills", "Skills"),
    ("business_path", "Business Path"),
    ("business_idea_detail", "Idea"),
    ("business_model_type", "Model"),
    ("customer_type", "Customer Type"),
    ("primary_market", "Primary Market"),
    ("revenue_model", "Revenue Model"),
    ("investment_capital", "Capital"),
    ("risk_tolerance", "Risk Tolerance (1-10)"),
    ("timeline_profitability", "Profit Timeline"),
)


# Base language ("hi") to display name, for codes without a region
_BASE_LANGUAGE_NAMES: dict[str, str] = {
    code.split("-", 1)[0].lower(): name for code, name in LANGUAGE_NAMES.items()
}


def language_key(code: str) -> str:
    """Base language of a code: "hi-IN", "hi-in" and "hi" all give "hi"."""
    return (code or "en").split("-", 1)[0].lower()


def language_name(code: str) -> str:
    """Display name for a code; exact match first, then its base language."""
    if code in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[code]
    return _BASE_LANGUAGE_NAMES.get(language_key(code), "English")


def language_directive(code: str) -> str:
    name = language_name(code)
    return (
        f'STRICT LANGUAGE REQUIREMENT: the user selected "{code}" ({name}). '
        f"Respond entirely in {name}, except for specific English business terms."
    )


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def summarize_answers(answers: Mapping[str, Any]) -> str:
    """One line per known answer; a placeholder when nothing is known yet."""
    lines = [
        f"- {label}: {_format_value(answers[key])}"
        for key, label in _SUMMARY_FIELDS
        if answers.get(key) not in (None, "", [])
    ]
    return "\n".join(lines) if lines else "No previous context available."


def build_system_prompt(agent_prompt: str, context: ConversationContext, phase_id: str | None) -> str:
    return (
        f"{agent_prompt.rstrip()}\n\n"
        f"CURRENT CONTEXT:\n"
        f"- Phase: {phase_id or 'unknown'}\n"
        f"- Session: {context.session_id}\n\n"
        f"{language_directive(context.effective_language)}"
    )


def build_task_message(
    task_description: str,
    message: str,
    context: ConversationContext,
    previous_outputs: Sequence[tuple[str, str]] = (),
    char_limit: int = 1000,
) -> str:
    """
    The user-turn content for one agent task.

    Args:
        previous_outputs: (agent display name, output text) pairs from
            earlier successful tasks in sequential mode.
        char_limit: Each previous output is truncated to this many chars.
    """
    parts = [
        f"Task: {task_description}",
        f'User message: "{message}"',
        f"What we know so far:\n{summarize_answers(context.answers)}",
    ]
    if previous_outputs:
        rendered = "\n\n".join(
            f"[{name}]\n{text[:char_limit]}" for name, text in previous_outputs
        )
        parts.append(f"Previous agent outputs:\n{rendered}")
    parts.append(
        "Provide key insights for your area of expertise, implications for the "
        "business model, any red flags, and suggested follow-ups. Be concise."
    )
    return "\n\n".join(parts)
