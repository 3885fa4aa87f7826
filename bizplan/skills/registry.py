# =============================================================================
# Skill Registry — Deterministic Tools Agents May Call
# =============================================================================
#
# A skill is a pure function over a typed (pydantic) input model. The
# registry maps skill name → Skill and is the only place skills are invoked:
#
#   invoke(name, params) ──▶ validate params ──▶ run function ──▶ dict result
#
# Tool definitions sent to the LLM are generated from the input models, so
# the JSON schema the model sees is always the one we validate against.
#
# The registry is built once at startup and is read-only afterwards; it is
# shared across concurrent turns without locking.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from bizplan.errors import SkillNotFound, ToolExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Skill:
    """A named, typed, side-effect-free function."""

    name: str
    description: str
    input_model: type[BaseModel]
    func: Callable[[Any], BaseModel | dict[str, Any]]

    def tool_definition(self) -> dict[str, Any]:
        """Anthropic-style tool definition; see llm.to_openai_tools() for OpenAI."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_model.model_json_schema(),
        }


class SkillRegistry:
    def __init__(self, skills: Iterable[Skill] = ()) -> None:
        self._skills: dict[str, Skill] = {}
        for skill in skills:
            self.register(skill)

    def register(self, skill: Skill) -> None:
        if skill.name in self._skills:
            raise ValueError(f"Skill already registered: {skill.name}")
        self._skills[skill.name] = skill

    def get(self, name: str) -> Skill:
        try:
            return self._skills[name]
        except KeyError:
            raise SkillNotFound(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._skills

    def names(self) -> list[str]:
        return sorted(self._skills)

    def tool_definitions(self, names: Iterable[str]) -> list[dict[str, Any]]:
        """Tool specs for the given skills, sorted by name."""
        return [self.get(name).tool_definition() for name in sorted(names)]

    def invoke(self, name: str, params: Mapping[str, Any]) -> dict[str, Any]:
        """
        Run a skill with raw (LLM-supplied) parameters.

        Raises:
            SkillNotFound: Unknown skill name.
            ToolExecutionError: Invalid parameters or the skill itself failed.
        """
        skill = self.get(name)
        try:
            validated = skill.input_model.model_validate(dict(params))
        except ValidationError as exc:
            raise ToolExecutionError(name, f"invalid parameters: {exc}") from exc

        try:
            result = skill.func(validated)
        except Exception as exc:
            logger.warning("Skill %s raised: %s", name, exc)
            raise ToolExecutionError(name, str(exc)) from exc

        if isinstance(result, BaseModel):
            return result.model_dump(mode="json")
        return dict(result)


def build_default_registry() -> SkillRegistry:
    """Registry with every built-in business-planning skill."""
    from bizplan.skills.competitor_analysis import COMPETITOR_ANALYSIS
    from bizplan.skills.compliance_checker import COMPLIANCE_CHECKER
    from bizplan.skills.financial_modeling import FINANCIAL_MODELING
    from bizplan.skills.market_sizing import MARKET_SIZING
    from bizplan.skills.unit_economics import UNIT_ECONOMICS

    registry = SkillRegistry([
        FINANCIAL_MODELING,
        MARKET_SIZING,
        UNIT_ECONOMICS,
        COMPETITOR_ANALYSIS,
        COMPLIANCE_CHECKER,
    ])
    logger.info("Registered %d skills: %s", len(registry.names()), registry.names())
    return registry
