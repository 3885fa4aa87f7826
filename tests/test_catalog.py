# =============================================================================
# Unit Tests — Catalog Loading and Validation
# =============================================================================

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from bizplan.catalog.loader import AgentCatalog, load_agents, load_phases, load_selection
from bizplan.errors import AgentNotFound, CatalogError


def _write(tmp_path: Path, name: str, body: str) -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestShippedCatalog:
    def test_eleven_phases_in_order(self, catalog):
        assert [p.id for p in catalog.phases] == [
            "auth", "discovery", "context", "market", "revenue", "competition",
            "operations", "gtm", "funding", "risk", "output",
        ]

    def test_thirteen_agents(self, catalog):
        assert len(catalog.agents) == 13

    def test_allowed_skills_are_registered(self, catalog, registry):
        for agent_id in catalog.agents.ids():
            assert catalog.agents.get(agent_id).allowed_skills <= set(registry.names())

    def test_skill_triggers(self, catalog):
        triggers = {
            q.id: q.skill_trigger
            for phase in catalog.phases for q in phase.questions if q.skill_trigger
        }
        assert triggers["primary_market"] == "market_sizing_calculator"
        assert triggers["target_cac"] == "unit_economics"
        assert triggers["licenses_needed"] == "compliance_checker"

    def test_every_selection_phase_exists(self, catalog):
        assert set(catalog.selection.phases) <= {p.id for p in catalog.phases}


class TestPhaseValidation:
    def test_duplicate_question_id(self, tmp_path, registry):
        path = _write(tmp_path, "phases.yaml", """
            phases:
              - id: a
                name: A
                questions:
                  - {id: q1}
                  - {id: q1}
        """)
        with pytest.raises(CatalogError, match="Duplicate question id"):
            load_phases(path, registry)

    def test_forward_reference_rejected(self, tmp_path, registry):
        path = _write(tmp_path, "phases.yaml", """
            phases:
              - id: a
                name: A
                questions:
                  - {id: q1, condition: "q2 == 'yes'"}
                  - {id: q2}
        """)
        with pytest.raises(CatalogError, match="not asked before"):
            load_phases(path, registry)

    def test_language_reference_always_allowed(self, tmp_path, registry):
        path = _write(tmp_path, "phases.yaml", """
            phases:
              - id: a
                name: A
                questions:
                  - {id: q1, condition: "language == 'hi-IN'"}
        """)
        assert len(load_phases(path, registry)) == 1

    def test_unparsable_condition_only_warns(self, tmp_path, registry, caplog):
        path = _write(tmp_path, "phases.yaml", """
            phases:
              - id: a
                name: A
                questions:
                  - {id: q1, condition: "q0 =="}
        """)
        phases = load_phases(path, registry)
        assert phases[0].questions[0].condition == "q0 =="
        assert "unparsable condition" in caplog.text

    def test_unknown_skill_trigger(self, tmp_path, registry):
        path = _write(tmp_path, "phases.yaml", """
            phases:
              - id: a
                name: A
                questions:
                  - {id: q1, skill_trigger: tarot_reading}
        """)
        with pytest.raises(CatalogError, match="unknown skill"):
            load_phases(path, registry)

    def test_missing_file(self, tmp_path, registry):
        with pytest.raises(CatalogError, match="Cannot read"):
            load_phases(tmp_path / "nope.yaml", registry)

    def test_malformed_yaml(self, tmp_path, registry):
        path = _write(tmp_path, "phases.yaml", "phases: [ {id: a\n")
        with pytest.raises(CatalogError, match="Malformed YAML"):
            load_phases(path, registry)


class TestAgentValidation:
    def test_unregistered_skill_rejected(self, tmp_path, registry):
        path = _write(tmp_path, "agents.yaml", """
            agents:
              - id: seer
                display_name: Seer
                system_prompt: You see the future.
                allowed_skills: [tarot_reading]
        """)
        with pytest.raises(CatalogError, match="unregistered skills"):
            load_agents(path, registry)

    def test_duplicate_agent_id(self, tmp_path, registry):
        path = _write(tmp_path, "agents.yaml", """
            agents:
              - {id: a, display_name: A, system_prompt: x}
              - {id: a, display_name: A2, system_prompt: y}
        """)
        with pytest.raises(CatalogError, match="Duplicate agent id"):
            load_agents(path, registry)

    def test_lookup(self, catalog):
        assert catalog.agents.get("market_analyst").display_name == "Market Analyst"
        with pytest.raises(AgentNotFound):
            catalog.agents.get("astrologer")

    def test_display_name_falls_back_to_id(self):
        assert AgentCatalog([]).display_name("ghost_writer") == "Ghost Writer"


class TestSelectionValidation:
    def test_unknown_agent_rejected(self, tmp_path, catalog):
        path = _write(tmp_path, "selection.yaml", """
            default: [context_collector]
            phases:
              market:
                primary: [market_analyst, astrologer]
        """)
        with pytest.raises(CatalogError, match="unknown agents"):
            load_selection(path, catalog.agents)

    def test_rule_without_when_is_valid(self, tmp_path, catalog):
        path = _write(tmp_path, "selection.yaml", """
            phases:
              risk:
                primary: [business_planner_lead]
                rules:
                  - add: [financial_modeler]
        """)
        table = load_selection(path, catalog.agents)
        assert table.phases["risk"].rules[0].when is None
        assert table.default == ("context_collector", "business_planner_lead")
