# =============================================================================
# Catalog Loader — Phases, Agents and the Selection Table from YAML
# =============================================================================
#
# The three static catalogs are read once at startup, validated with
# pydantic, and cross-checked:
#   - question ids are unique, and a condition only references questions
#     that appear earlier in the catalog
#   - every skill_trigger and allowed skill exists in the Skill Registry
#   - every agent named by the selection table exists in the agent catalog
#
# Any violation (or a missing/malformed file) raises CatalogError, which is
# fatal at startup. An unparsable condition is NOT fatal: it is logged here
# and handled at runtime by the evaluator's failure policy.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bizplan.branching.evaluator import referenced_fields
from bizplan.config import Settings
from bizplan.errors import AgentNotFound, CatalogError, ConditionEvaluationError
from bizplan.models.domain import AgentDefinition, Phase
from bizplan.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# File schemas
# ---------------------------------------------------------------------------


class _PhasesFile(BaseModel):
    phases: list[Phase] = Field(min_length=1)


class _AgentsFile(BaseModel):
    agents: list[AgentDefinition] = Field(min_length=1)


class SelectionRule(BaseModel):
    """Add `add` to the turn's agents when `when` holds (always, if unset)."""

    model_config = ConfigDict(frozen=True)

    when: str | None = None
    add: tuple[str, ...] = Field(min_length=1)


class PhaseSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: tuple[str, ...] = Field(min_length=1)
    rules: tuple[SelectionRule, ...] = ()


class SelectionTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    default: tuple[str, ...] = Field(
        default=("context_collector", "business_planner_lead"), min_length=1,
    )
    phases: dict[str, PhaseSelection] = Field(default_factory=dict)

    def agent_ids(self) -> set[str]:
        ids = set(self.default)
        for entry in self.phases.values():
            ids.update(entry.primary)
            for rule in entry.rules:
                ids.update(rule.add)
        return ids


# ---------------------------------------------------------------------------
# Agent catalog
# ---------------------------------------------------------------------------


class AgentCatalog:
    """Read-only lookup of agent definitions by id."""

    def __init__(self, agents: Iterable[AgentDefinition]) -> None:
        self._agents: dict[str, AgentDefinition] = {}
        for agent in agents:
            if agent.id in self._agents:
                raise CatalogError(f"Duplicate agent id: {agent.id}")
            self._agents[agent.id] = agent

    def get(self, agent_id: str) -> AgentDefinition:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFound(agent_id) from None

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def ids(self) -> list[str]:
        return list(self._agents)

    def display_name(self, agent_id: str) -> str:
        agent = self._agents.get(agent_id)
        return agent.display_name if agent else agent_id.replace("_", " ").title()


@dataclass(frozen=True)
class Catalog:
    phases: tuple[Phase, ...]
    agents: AgentCatalog
    selection: SelectionTable


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise CatalogError(f"Cannot read catalog {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"Malformed YAML in {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise CatalogError(f"Catalog {path} must contain a mapping at top level")
    return data


def _validate(model: type[BaseModel], data: Mapping[str, Any], path: Path) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise CatalogError(f"Invalid catalog {path}: {exc}") from exc


def load_phases(path: Path, registry: SkillRegistry | None = None) -> tuple[Phase, ...]:
    """
    Load the ordered phase/question catalog.

    Raises:
        CatalogError: Unreadable file, schema violation, duplicate question
            id, forward reference in a condition, or unknown skill_trigger.
    """
    phases = _validate(_PhasesFile, _read_yaml(path), path).phases

    seen: set[str] = set()
    for phase in phases:
        for question in phase.questions:
            if question.id in seen:
                raise CatalogError(f"Duplicate question id: {question.id}")
            if question.condition:
                _check_condition_refs(question.id, question.condition, seen)
            if question.skill_trigger and registry is not None and question.skill_trigger not in registry:
                raise CatalogError(
                    f"Question {question.id} triggers unknown skill {question.skill_trigger}"
                )
            seen.add(question.id)

    logger.info("Loaded %d phases, %d questions from %s", len(phases), len(seen), path)
    return tuple(phases)


def _check_condition_refs(question_id: str, condition: str, earlier: set[str]) -> None:
    try:
        fields = referenced_fields(condition)
    except ConditionEvaluationError as exc:
        logger.warning("Question %s has an unparsable condition: %s", question_id, exc)
        return
    # "language" is also seeded from the session, so it is always available
    unknown = fields - earlier - {"language"}
    if unknown:
        raise CatalogError(
            f"Condition on {question_id} references questions not asked before it: "
            f"{sorted(unknown)}"
        )


def load_agents(path: Path, registry: SkillRegistry) -> AgentCatalog:
    """
    Load agent definitions and check every allowed skill is registered.

    Raises:
        CatalogError: On any schema or reference violation.
    """
    agents = _validate(_AgentsFile, _read_yaml(path), path).agents
    for agent in agents:
        missing = sorted(s for s in agent.allowed_skills if s not in registry)
        if missing:
            raise CatalogError(f"Agent {agent.id} allows unregistered skills: {missing}")
    catalog = AgentCatalog(agents)
    logger.info("Loaded %d agents from %s", len(catalog), path)
    return catalog


def load_selection(path: Path, agents: AgentCatalog) -> SelectionTable:
    """
    Load the phase → agents selection table.

    Raises:
        CatalogError: On schema violation or an unknown agent id.
    """
    table = _validate(SelectionTable, _read_yaml(path), path)
    unknown = sorted(a for a in table.agent_ids() if a not in agents)
    if unknown:
        raise CatalogError(f"Selection table references unknown agents: {unknown}")
    for phase_id, entry in table.phases.items():
        for rule in entry.rules:
            if rule.when:
                try:
                    referenced_fields(rule.when)
                except ConditionEvaluationError as exc:
                    logger.warning("Selection rule in phase %s will be skipped: %s", phase_id, exc)
    return table


def load_catalog(settings: Settings, registry: SkillRegistry) -> Catalog:
    """Load and cross-validate all three catalogs from the configured paths."""
    agents = load_agents(settings.agents_catalog_path, registry)
    return Catalog(
        phases=load_phases(settings.phases_catalog_path, registry),
        agents=agents,
        selection=load_selection(settings.selection_catalog_path, agents),
    )
