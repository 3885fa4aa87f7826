# =============================================================================
# Unit Tests — Task Executor
# =============================================================================
#
# Scheduling (sequential / parallel), per-task timeouts, the tool-call loop
# and the failure taxonomy. LLM calls are scripted per agent.
# =============================================================================

from __future__ import annotations

import asyncio

import pytest
from conftest import (
    ScriptedLLM,
    _run,
    fail_with,
    per_agent,
    reply,
    sleep_then,
    text_response,
    tool_response,
)

from bizplan.agents.executor import TaskExecutor, TurnInput
from bizplan.models.domain import ExecutionMode, Task


def _tasks(*agent_ids: str) -> list[Task]:
    return [Task(agent_id=a, description=f"Analyse as {a}") for a in agent_ids]


@pytest.fixture
def turn(context) -> TurnInput:
    return TurnInput(message="We sell accounting software to clinics", context=context, phase_id="market")


def _executor(catalog, registry, settings, llm) -> TaskExecutor:
    return TaskExecutor(llm, catalog.agents, registry, settings)


def _user_prompt(call) -> str:
    return call.kwargs["messages"][0]["content"]


class TestSequential:
    def test_outputs_flow_to_later_tasks(self, catalog, registry, settings, turn):
        llm = ScriptedLLM(per_agent(catalog, {
            "financial_modeler": reply("Break-even in month 14."),
            "gtm_strategist": reply("Lead with clinic chains."),
        }))
        results = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("financial_modeler", "gtm_strategist"), ExecutionMode.SEQUENTIAL, turn,
        ))
        assert [r.success for r in results] == [True, True]
        second_prompt = _user_prompt(llm.complete.call_args_list[1])
        assert "Previous agent outputs:" in second_prompt
        assert "[Financial Modeler]\nBreak-even in month 14." in second_prompt

    def test_failure_does_not_stop_later_tasks(self, catalog, registry, settings, turn):
        llm = ScriptedLLM(per_agent(catalog, {
            "financial_modeler": fail_with(RuntimeError("overloaded")),
            "gtm_strategist": reply("Lead with clinic chains."),
        }))
        results = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("financial_modeler", "gtm_strategist"), ExecutionMode.SEQUENTIAL, turn,
        ))
        assert len(results) == 2
        assert results[0].success is False
        assert results[0].error == "AgentInvocationError"
        assert results[1].success is True
        gtm_prompt = _user_prompt(llm.complete.call_args_list[-1])
        assert "Previous agent outputs:" not in gtm_prompt

    def test_previous_output_is_truncated(self, catalog, registry, settings, turn):
        llm = ScriptedLLM(per_agent(catalog, {
            "market_analyst": reply("M" * 5000),
            "financial_modeler": reply("ok"),
        }))
        _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst", "financial_modeler"), ExecutionMode.SEQUENTIAL, turn,
        ))
        prompt = _user_prompt(llm.complete.call_args_list[1])
        assert "M" * settings.previous_output_char_limit in prompt
        assert "M" * (settings.previous_output_char_limit + 1) not in prompt


class TestParallel:
    def test_timeout_is_isolated(self, catalog, registry, settings, turn):
        settings = settings.model_copy(update={"task_timeout_seconds": 0.2})
        llm = ScriptedLLM(per_agent(catalog, {
            "market_analyst": reply("Market is large."),
            "customer_profiler": sleep_then(5),
            "revenue_architect": reply("Annual contracts."),
        }))
        results = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst", "customer_profiler", "revenue_architect"),
            ExecutionMode.PARALLEL, turn,
        ))
        assert [r.agent_id for r in results] == ["market_analyst", "customer_profiler", "revenue_architect"]
        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "Timeout"

    def test_concurrency_is_bounded(self, catalog, registry, settings, turn):
        settings = settings.model_copy(update={"max_concurrency": 2})
        running = 0
        peak = 0

        async def slow(messages):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.05)
            running -= 1
            return text_response("done")

        llm = ScriptedLLM(per_agent(catalog, {}, default=slow))
        results = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst", "customer_profiler", "revenue_architect", "legal_advisor"),
            ExecutionMode.PARALLEL, turn,
        ))
        assert all(r.success for r in results)
        assert peak == 2

    def test_expired_deadline_times_out_every_task(self, catalog, registry, settings, turn):
        llm = ScriptedLLM(per_agent(catalog, {}))

        async def go():
            deadline = asyncio.get_running_loop().time() - 1
            return await _executor(catalog, registry, settings, llm).run(
                _tasks("market_analyst", "customer_profiler"), ExecutionMode.PARALLEL, turn, deadline,
            )

        results = _run(go())
        assert [r.error for r in results] == ["Timeout", "Timeout"]
        llm.complete.assert_not_called()


class TestToolLoop:
    def test_skill_result_is_fed_back(self, catalog, registry, settings, turn):
        llm = ScriptedLLM([
            tool_response("market_sizing_calculator", {
                "industry": "saas", "geography": "india", "target_segment": "smb",
            }),
            text_response("TAM is about $15.6B."),
        ])
        [result] = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst"), ExecutionMode.PARALLEL, turn,
        ))
        assert result.success
        assert result.output_text == "TAM is about $15.6B."
        [call] = result.tool_calls
        assert call.skill_name == "market_sizing_calculator"
        assert call.result["confidence_level"] == "high"
        follow_up = llm.complete.call_args_list[1].kwargs["messages"]
        assert follow_up[-1]["content"][0]["type"] == "tool_result"
        assert result.input_tokens == 20

    def test_agent_only_sees_its_allowed_tools(self, catalog, registry, settings, turn):
        llm = ScriptedLLM([text_response("ok")])
        _run(_executor(catalog, registry, settings, llm).run(
            _tasks("legal_advisor"), ExecutionMode.PARALLEL, turn,
        ))
        tools = llm.complete.call_args.kwargs["tools"]
        assert [t["name"] for t in tools] == ["compliance_checker"]

    def test_disallowed_skill_fails_the_task(self, catalog, registry, settings, turn):
        llm = ScriptedLLM([tool_response("financial_modeling", {"products": []})])
        [result] = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst"), ExecutionMode.PARALLEL, turn,
        ))
        assert result.success is False
        assert result.error == "SkillNotAllowed"
        assert result.tool_calls[0].error == "SkillNotAllowed"
        assert llm.complete.call_count == 1

    def test_bad_skill_params_keep_partial_text(self, catalog, registry, settings, turn):
        llm = ScriptedLLM([
            tool_response("market_sizing_calculator", {"industry": "saas"}, text="Let me size it."),
        ])
        [result] = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst"), ExecutionMode.PARALLEL, turn,
        ))
        assert result.error == "ToolExecutionError"
        assert result.output_text == "Let me size it."

    def test_iteration_cap_is_enforced(self, catalog, registry, settings, turn):
        args = {"industry": "saas", "competitors": ["Zoho"]}
        llm = ScriptedLLM([tool_response("competitor_analysis", args) for _ in range(10)])
        [result] = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst"), ExecutionMode.PARALLEL, turn,
        ))
        assert result.error == "ToolCallLimitExceeded"
        assert llm.complete.call_count == settings.max_tool_iterations
        assert len(result.tool_calls) == settings.max_tool_iterations - 1


class TestFailures:
    def test_transient_error_is_retried(self, catalog, registry, settings, turn):
        llm = ScriptedLLM([RuntimeError("rate limited"), text_response("Recovered.")])
        [result] = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("market_analyst"), ExecutionMode.PARALLEL, turn,
        ))
        assert result.success
        assert llm.complete.call_count == 2

    def test_unknown_agent(self, catalog, registry, settings, turn):
        llm = ScriptedLLM()
        [result] = _run(_executor(catalog, registry, settings, llm).run(
            _tasks("astrologer"), ExecutionMode.SEQUENTIAL, turn,
        ))
        assert result.error == "AgentNotFound"

    def test_empty_plan(self, catalog, registry, settings, turn):
        assert _run(_executor(catalog, registry, settings, ScriptedLLM()).run(
            [], ExecutionMode.PARALLEL, turn,
        )) == []
