# =============================================================================
# Task Executor — Running Agent Tasks Sequentially or in Parallel
# =============================================================================
#
# One Task = one agent invocation. Each invocation is a bounded tool loop:
#
#   LLM call ──▶ tool requests? ──no──▶ final answer (success)
#       ▲              │yes
#       │              ▼
#       └──── skill results ◀── check allowed ◀── SkillRegistry.invoke
#
# SEQUENTIAL: strict order; each successful output is appended (truncated)
#   to the next task's input. A failed task is recorded and the next task
#   runs without its context.
# PARALLEL: one asyncio task per agent, bounded by a semaphore; each run
#   is wrapped in asyncio.wait_for(task_timeout). A timeout produces a
#   "Timeout" result and never cancels siblings. Results keep task order.
#
# An optional turn deadline (event-loop time) caps both modes; tasks that
# cannot start or finish before it are recorded as "Timeout".
#
# FAILURE TAXONOMY (AgentResult.error):
#   AgentNotFound          unknown agent id; task fails, turn continues
#   AgentInvocationError   LLM call raised; retried with backoff, then fails
#   SkillNotAllowed        tool outside the agent's allowed set; hard failure
#   SkillNotFound          tool name not registered
#   ToolExecutionError     skill raised or got bad params; partial result
#   ToolCallLimitExceeded  loop cap reached; partial result
#   Timeout                per-task or turn deadline exceeded
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from bizplan.agents.prompts import build_system_prompt, build_task_message
from bizplan.catalog.loader import AgentCatalog
from bizplan.config import Settings
from bizplan.errors import (
    TIMEOUT,
    AgentInvocationError,
    OrchestrationError,
    SkillNotAllowed,
    SkillNotFound,
    ToolCallLimitExceeded,
    ToolExecutionError,
)
from bizplan.models.domain import (
    AgentDefinition,
    AgentResult,
    ConversationContext,
    ExecutionMode,
    Task,
    ToolCall,
)
from bizplan.services.llm import LLMProvider, LLMResponse, ToolResult
from bizplan.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)


@dataclass
class _Progress:
    """Mutable per-task accumulator, kept outside wait_for so partial work
    survives a timeout."""

    text_parts: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0

    def add_usage(self, response: LLMResponse) -> None:
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens


@dataclass(frozen=True)
class TurnInput:
    """Everything about the turn a task needs besides its own Task."""

    message: str
    context: ConversationContext
    phase_id: str | None = None


class TaskExecutor:
    def __init__(
        self,
        llm: LLMProvider,
        agents: AgentCatalog,
        registry: SkillRegistry,
        settings: Settings,
    ) -> None:
        self._llm = llm
        self._agents = agents
        self._registry = registry
        self._settings = settings

    async def run(
        self,
        tasks: Sequence[Task],
        mode: ExecutionMode,
        turn: TurnInput,
        deadline: float | None = None,
    ) -> list[AgentResult]:
        """
        Execute tasks and return exactly one AgentResult per task, in order.

        Args:
            tasks: Planned tasks.
            mode: PARALLEL or SEQUENTIAL scheduling.
            turn: Message, context snapshot and phase for prompt building.
            deadline: Absolute event-loop time by which the turn must end.
        """
        if not tasks:
            return []
        logger.info("Executing %d tasks (%s)", len(tasks), mode)
        if mode == ExecutionMode.PARALLEL:
            results = await self._run_parallel(tasks, turn, deadline)
        else:
            results = await self._run_sequential(tasks, turn, deadline)

        failed = [r.agent_id for r in results if not r.success]
        logger.info(
            "Execution complete: %d succeeded, %d failed %s",
            len(results) - len(failed), len(failed), failed or "",
        )
        return results

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _run_sequential(
        self, tasks: Sequence[Task], turn: TurnInput, deadline: float | None,
    ) -> list[AgentResult]:
        results: list[AgentResult] = []
        previous: list[tuple[str, str]] = []
        for task in tasks:
            timeout = _remaining(deadline)
            result = await self._run_guarded(task, turn, previous, timeout)
            results.append(result)
            if result.success and result.output_text:
                previous.append((self._agents.display_name(task.agent_id), result.output_text))
        return results

    async def _run_parallel(
        self, tasks: Sequence[Task], turn: TurnInput, deadline: float | None,
    ) -> list[AgentResult]:
        limit = max(1, min(self._settings.max_concurrency, len(tasks)))
        semaphore = asyncio.Semaphore(limit)

        async def bounded(task: Task) -> AgentResult:
            async with semaphore:
                timeout = self._settings.task_timeout_seconds
                remaining = _remaining(deadline)
                if remaining is not None:
                    timeout = min(timeout, remaining)
                return await self._run_guarded(task, turn, (), timeout)

        return list(await asyncio.gather(*(bounded(task) for task in tasks)))

    async def _run_guarded(
        self,
        task: Task,
        turn: TurnInput,
        previous: Sequence[tuple[str, str]],
        timeout: float | None,
    ) -> AgentResult:
        """Run one task to a terminal AgentResult. Never raises."""
        start = time.perf_counter()
        progress = _Progress()

        if timeout is not None and timeout <= 0:
            logger.warning("Task %s (%s) skipped: turn deadline passed", task.id, task.agent_id)
            return _failure(task, progress, start, TIMEOUT, "turn deadline exceeded before start")

        try:
            coro = self._run_task(task, turn, previous, progress)
            if timeout is None:
                text = await coro
            else:
                text = await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError:
            logger.warning("Task %s (%s) timed out after %.1fs", task.id, task.agent_id, timeout)
            return _failure(task, progress, start, TIMEOUT, f"exceeded {timeout:.1f}s")
        except OrchestrationError as exc:
            logger.warning("Task %s (%s) failed: %s", task.id, task.agent_id, exc)
            return _failure(task, progress, start, exc.kind, str(exc))
        except Exception as exc:
            logger.exception("Task %s (%s) crashed", task.id, task.agent_id)
            return _failure(task, progress, start, AgentInvocationError.kind, repr(exc))

        return AgentResult(
            task_id=task.id,
            agent_id=task.agent_id,
            output_text=text,
            tool_calls=tuple(progress.tool_calls),
            duration_ms=_elapsed_ms(start),
            success=True,
            input_tokens=progress.input_tokens,
            output_tokens=progress.output_tokens,
        )

    # ------------------------------------------------------------------
    # One agent invocation
    # ------------------------------------------------------------------

    async def _run_task(
        self,
        task: Task,
        turn: TurnInput,
        previous: Sequence[tuple[str, str]],
        progress: _Progress,
    ) -> str:
        agent = self._agents.get(task.agent_id)
        system = build_system_prompt(agent.system_prompt, turn.context, turn.phase_id)
        messages: list[dict] = [{
            "role": "user",
            "content": build_task_message(
                task.description,
                turn.message,
                turn.context,
                previous_outputs=previous,
                char_limit=self._settings.previous_output_char_limit,
            ),
        }]
        tools = self._registry.tool_definitions(agent.allowed_skills) or None
        cap = self._settings.max_tool_iterations

        for iteration in range(1, cap + 1):
            response = await self._complete_with_retry(agent, system, messages, tools)
            progress.add_usage(response)
            if response.content:
                progress.text_parts.append(response.content)

            if not response.wants_tools:
                return "\n\n".join(progress.text_parts).strip()
            if iteration == cap:
                break

            messages.append(self._llm.assistant_tool_message(response))
            tool_results = [self._call_skill(agent, call.id, call.name, call.arguments, progress)
                            for call in response.tool_calls]
            messages.extend(self._llm.tool_result_messages(tool_results))

        raise ToolCallLimitExceeded(agent.id, cap)

    async def _complete_with_retry(
        self,
        agent: AgentDefinition,
        system: str,
        messages: list[dict],
        tools: list[dict] | None,
    ) -> LLMResponse:
        attempts = 1 + max(0, self._settings.agent_retry_attempts)
        last_error: Exception | None = None
        for attempt in range(attempts):
            if attempt:
                delay = self._settings.retry_backoff_seconds * (2 ** (attempt - 1))
                logger.info("Retrying %s in %.2fs (attempt %d/%d)", agent.id, delay, attempt + 1, attempts)
                await asyncio.sleep(delay)
            try:
                return await self._llm.complete(
                    messages=messages,
                    system=system,
                    tools=tools,
                    temperature=agent.temperature,
                )
            except Exception as exc:
                last_error = exc
                logger.warning("LLM call for %s failed: %s", agent.id, exc)
        raise AgentInvocationError(f"LLM call for {agent.id} failed: {last_error}") from last_error

    def _call_skill(
        self,
        agent: AgentDefinition,
        call_id: str,
        skill_name: str,
        params: dict,
        progress: _Progress,
    ) -> ToolResult:
        """Run one requested skill and record it. Raises on any failure."""
        start = time.perf_counter()
        if skill_name not in agent.allowed_skills:
            progress.tool_calls.append(ToolCall(
                skill_name=skill_name, params=params, duration_ms=0, error=SkillNotAllowed.kind,
            ))
            raise SkillNotAllowed(agent.id, skill_name)

        try:
            result = self._registry.invoke(skill_name, params)
        except (SkillNotFound, ToolExecutionError) as exc:
            progress.tool_calls.append(ToolCall(
                skill_name=skill_name, params=params, duration_ms=_elapsed_ms(start), error=str(exc),
            ))
            raise

        progress.tool_calls.append(ToolCall(
            skill_name=skill_name, params=params, result=result, duration_ms=_elapsed_ms(start),
        ))
        logger.info("Agent %s called %s (%d ms)", agent.id, skill_name, _elapsed_ms(start))
        return ToolResult(tool_use_id=call_id, content=json.dumps(result, default=str))


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return deadline - asyncio.get_running_loop().time()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _failure(task: Task, progress: _Progress, start: float, kind: str, detail: str) -> AgentResult:
    return AgentResult(
        task_id=task.id,
        agent_id=task.agent_id,
        output_text="\n\n".join(progress.text_parts).strip(),
        tool_calls=tuple(progress.tool_calls),
        duration_ms=_elapsed_ms(start),
        success=False,
        error=kind,
        error_detail=detail,
        input_tokens=progress.input_tokens,
        output_tokens=progress.output_tokens,
    )
