# =============================================================================
# Multi-Provider LLM Abstraction — Pluggable AI Backend with Tool Calling
# =============================================================================
#
# Provides a common interface for LLM completions, with concrete
# implementations for Anthropic (Claude) and OpenAI-compatible APIs
# (Groq, DeepSeek, Qwen, Ollama, OpenAI).
#
# Agents may request tools (skills). Both providers normalise tool requests
# into `ToolUse(id, name, arguments)` on the response. Because the two APIs
# disagree on how the assistant's tool request and the tool results are
# written back into the conversation, each provider also builds those
# messages itself:
#
#   response = await llm.complete(messages, system=..., tools=...)
#   messages.append(llm.assistant_tool_message(response))
#   messages.extend(llm.tool_result_messages(results))
#
# Tool specs are passed in Anthropic form ({name, description, input_schema})
# and converted with to_openai_tools() for OpenAI-compatible APIs.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — native tool_use / tool_result blocks
#   ├── OpenAICompatibleProvider — function calling, role="tool" results
#   └── get_llm_provider()       — lazy singleton factory, reads settings
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from bizplan.config import Settings, get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolUse:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one ToolUse, to be sent back to the model."""

    tool_use_id: str
    content: str           # JSON text of the skill result


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    Normalises the different response formats (Anthropic vs OpenAI)
    into a single structure that downstream code can consume.
    """

    content: str           # The generated text (may be "" on a pure tool call)
    model: str             # Model identifier (e.g., "claude-sonnet-4-6")
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response
    tool_calls: list[ToolUse] = field(default_factory=list)
    stop_reason: str = "end_turn"

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the LLM provider interface.

    Any object with these methods can drive an agent: the executor, intent
    analyzer and synthesizer depend only on this shape.
    """

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: Sequence[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation so far. Roles "user" and "assistant"
                (plus provider-specific tool messages built by the helpers).
            system: System prompt, handled per provider.
            tools: Anthropic-style tool specs the model may call.
            temperature: Override sampling temperature (default from config).
            max_tokens: Override max output tokens (default from config).
        """
        ...

    def assistant_tool_message(self, response: LLMResponse) -> dict[str, Any]:
        """The assistant turn that requested `response.tool_calls`."""
        ...

    def tool_result_messages(self, results: Sequence[ToolResult]) -> list[dict[str, Any]]:
        """Messages carrying tool results back to the model."""
        ...


def to_openai_tools(tools: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert Anthropic-style tool specs to OpenAI function definitions."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema", {"type": "object", "properties": {}}),
            },
        }
        for tool in tools
    ]


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg, NOT as a message with role "system". Tool results go
    back as `tool_result` blocks inside a single user message.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        settings = settings or get_settings()
        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: Sequence[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = list(tools)

        response = await self._client.messages.create(**kwargs)

        text_parts: list[str] = []
        tool_calls: list[ToolUse] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolUse(id=block.id, name=block.name, arguments=dict(block.input)))

        return LLMResponse(
            content="".join(text_parts),
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            tool_calls=tool_calls,
            stop_reason=response.stop_reason or "end_turn",
        )

    def assistant_tool_message(self, response: LLMResponse) -> dict[str, Any]:
        return anthropic_assistant_message(response)

    def tool_result_messages(self, results: Sequence[ToolResult]) -> list[dict[str, Any]]:
        return anthropic_tool_results(results)


def anthropic_assistant_message(response: LLMResponse) -> dict[str, Any]:
    blocks: list[dict[str, Any]] = []
    if response.content:
        blocks.append({"type": "text", "text": response.content})
    blocks.extend(
        {"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments}
        for call in response.tool_calls
    )
    return {"role": "assistant", "content": blocks}


def anthropic_tool_results(results: Sequence[ToolResult]) -> list[dict[str, Any]]:
    return [{
        "role": "user",
        "content": [
            {
                "type": "tool_result",
                "tool_use_id": result.tool_use_id,
                "content": result.content,
            }
            for result in results
        ],
    }]


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible (Groq, DeepSeek, Qwen, etc.)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    OpenAI-compatible provider for any API that follows the OpenAI chat completions API.

    Switching providers is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.groq.com/openai/v1
        LLM_API_KEY=your-key
        LLM_MODEL=llama-3.3-70b-versatile
    """

    def __init__(
        self,
        settings: Settings | None = None,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        settings = settings or get_settings()
        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict[str, Any] = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: Sequence[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, Any]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": all_messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
            kwargs["tool_choice"] = "auto"

        response = await self._client.chat.completions.create(**kwargs)
        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolUse(
                id=call.id,
                name=call.function.name,
                arguments=_parse_arguments(call.function.name, call.function.arguments),
            )
            for call in (message.tool_calls or [])
        ]

        # Token counts: OpenAI uses different field names than Anthropic
        usage = response.usage
        return LLMResponse(
            content=message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            tool_calls=tool_calls,
            stop_reason=choice.finish_reason or "stop",
        )

    def assistant_tool_message(self, response: LLMResponse) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": response.content or None,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in response.tool_calls
            ],
        }

    def tool_result_messages(self, results: Sequence[ToolResult]) -> list[dict[str, Any]]:
        return [
            {"role": "tool", "tool_call_id": result.tool_use_id, "content": result.content}
            for result in results
        ]


def _parse_arguments(name: str, raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool %s called with non-JSON arguments: %.200s", name, raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — avoid re-creating client on every request
_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider(
    settings: Settings | None = None,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Factory that returns the configured LLM provider.

    Reads `llm_provider` from settings:
    - "anthropic" → AnthropicProvider (Claude)
    - "openai_compatible" → OpenAICompatibleProvider (Groq, DeepSeek, etc.)
    """
    global _provider
    if _provider is None:
        settings = settings or get_settings()
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider(settings)
        else:
            _provider = AnthropicProvider(settings)
    return _provider
