# =============================================================================
# Shared Fixtures — Catalog, Registry and Scripted LLM Providers
# =============================================================================
#
# No test needs an API key or network access: LLM calls go to a
# ScriptedLLM whose `complete` is an AsyncMock. Tests script it either with
# a list of responses (side_effect) or with a responder function that
# answers per agent, keyed on the agent's system prompt.
# =============================================================================

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock

import pytest

from bizplan.catalog.loader import Catalog, load_catalog
from bizplan.config import Settings
from bizplan.models.domain import AgentDefinition, ConversationContext
from bizplan.services.llm import (
    LLMResponse,
    ToolUse,
    anthropic_assistant_message,
    anthropic_tool_results,
)
from bizplan.skills.registry import SkillRegistry, build_default_registry

_call_ids = itertools.count(1)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def text_response(text: str, input_tokens: int = 10, output_tokens: int = 20) -> LLMResponse:
    return LLMResponse(
        content=text, model="mock-model", input_tokens=input_tokens, output_tokens=output_tokens,
    )


def tool_response(name: str, arguments: dict, text: str = "") -> LLMResponse:
    return LLMResponse(
        content=text,
        model="mock-model",
        input_tokens=10,
        output_tokens=5,
        tool_calls=[ToolUse(id=f"toolu_{next(_call_ids)}", name=name, arguments=arguments)],
        stop_reason="tool_use",
    )


class ScriptedLLM:
    """LLMProvider test double using the Anthropic message format."""

    def __init__(self, side_effect=None) -> None:
        self.complete = AsyncMock(side_effect=side_effect)

    def assistant_tool_message(self, response: LLMResponse) -> dict:
        return anthropic_assistant_message(response)

    def tool_result_messages(self, results) -> list[dict]:
        return anthropic_tool_results(results)


def agent_of(system: str | None, agents: list[AgentDefinition]) -> str | None:
    """Which agent a system prompt was built for."""
    for agent in agents:
        if system and system.startswith(agent.system_prompt.rstrip()):
            return agent.id
    return None


def per_agent(
    catalog: Catalog,
    handlers: dict[str, Callable[[list[dict]], Awaitable[LLMResponse]]],
    default: Callable[[list[dict]], Awaitable[LLMResponse]] | None = None,
):
    """
    Build a `complete` side effect that dispatches on the calling agent.

    Calls not made by an agent (synthesis, intent) go to `default`, which
    answers "Merged reply." unless given.
    """
    agents = [catalog.agents.get(agent_id) for agent_id in catalog.agents.ids()]

    async def fallback(messages):
        return text_response("Merged reply.")

    async def respond(messages, system=None, tools=None, temperature=None, max_tokens=None):
        agent_id = agent_of(system, agents)
        handler = handlers.get(agent_id) if agent_id else None
        return await (handler or default or fallback)(messages)

    return respond


def reply(text: str):
    async def handler(messages):
        return text_response(text)
    return handler


def sleep_then(seconds: float, text: str = "late"):
    async def handler(messages):
        await asyncio.sleep(seconds)
        return text_response(text)
    return handler


def fail_with(exc: Exception):
    async def handler(messages):
        raise exc
    return handler


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        anthropic_api_key="test-key",
        task_timeout_seconds=2.0,
        turn_timeout_seconds=5.0,
        retry_backoff_seconds=0.0,
        agent_retry_attempts=1,
        max_tool_iterations=3,
        synthesis_use_llm=False,
        intent_use_llm=False,
    )


@pytest.fixture
def registry() -> SkillRegistry:
    return build_default_registry()


@pytest.fixture
def catalog(settings: Settings, registry: SkillRegistry) -> Catalog:
    return load_catalog(settings, registry)


@pytest.fixture
def context() -> ConversationContext:
    return ConversationContext(
        session_id="s-test",
        language="en-US",
        answers={"language": "en-US", "business_path": "new"},
        current_phase_index=3,
        current_question_index=-1,
    )
