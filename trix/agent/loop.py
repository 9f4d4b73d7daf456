from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable

from ..llm.base import Provider
from ..llm.errors import LLMError, TransportError
from ..llm.models import Message, Usage
from .models import DEFAULT_MAX_TURNS, AgentEvent, AgentResult, AgentState, Outcome
from .tools import ToolRegistry

logger = logging.getLogger("trix.agent")


class AgentLoop:
    """Drives model turns and tool execution until the model answers.

    Each user message starts a run: the conversation is sent to the
    provider, requested tools are dispatched, their results appended, and
    the cycle repeats until a response carries no tool calls (finished), the
    turn cap is hit (exhausted) or the provider fails (failed).
    """

    def __init__(
        self,
        provider: Provider,
        registry: ToolRegistry,
        max_turns: int = DEFAULT_MAX_TURNS,
        system_prompt: str | None = None,
        state: AgentState | None = None,
    ) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.provider = provider
        self.registry = registry
        self.max_turns = max_turns
        self.state = state or AgentState()
        if system_prompt and not self.state.conversation:
            self.state.add_message(Message.system(system_prompt))
        self._run_usage = Usage()
        self._run_turns = 0

    def reset(self) -> None:
        """Forget the conversation (keeping the system prompt) and zero usage."""
        logger.info("Clearing conversation context")
        self.state.clear()

    async def process_message(self, user_message: str) -> AsyncIterator[AgentEvent]:
        mark = self.state.snapshot()
        self._run_usage = run_usage = Usage()
        self._run_turns = 0
        last_text = ""

        self.state.add_message(Message.user(user_message))

        try:
            while self._run_turns < self.max_turns:
                self._run_turns += 1
                turn = self._run_turns
                logger.info(f"Turn {turn}/{self.max_turns}: {len(self.state.conversation)} messages")

                try:
                    response = await self.provider.chat(self.state.conversation, self.registry.tools)
                except LLMError as e:
                    logger.error(f"Provider call failed on turn {turn}: {e}")
                    self.state.rollback(mark)
                    yield AgentEvent(type="error", data={"message": str(e)})
                    yield AgentEvent(
                        type="done",
                        data={"result": AgentResult(Outcome.FAILED, usage=run_usage, turns=turn, error=e)},
                    )
                    return

                run_usage.add(response.usage)
                self.state.usage.add(response.usage)
                yield AgentEvent(
                    type="usage",
                    data={
                        "turn": _copy(response.usage),
                        "run": _copy(run_usage),
                        "total": _copy(self.state.usage),
                    },
                )

                if response.content:
                    last_text = response.content
                    yield AgentEvent(type="text", data={"content": response.content})

                if not response.has_tool_calls:
                    self.state.add_message(Message.assistant(response.content))
                    logger.info(f"Finished after {turn} turn(s)")
                    yield AgentEvent(
                        type="done",
                        data={"result": AgentResult(Outcome.FINISHED, response.content, run_usage, turn)},
                    )
                    return

                for idx, tc in enumerate(response.tool_calls):
                    yield AgentEvent(
                        type="tool_start",
                        data={"tool_id": tc.id, "index": idx, "tool": tc.name, "arguments": tc.parameters},
                    )

                executions = await self.registry.dispatch_all(response.tool_calls)
                results = [Message.tool_result(ex.call.id, ex.output) for ex in executions]
                self.state.add_turn(Message.assistant(response.content, response.tool_calls), results)

                for idx, ex in enumerate(executions):
                    yield AgentEvent(
                        type="tool_end",
                        data={
                            "tool_id": ex.call.id,
                            "index": idx,
                            "tool": ex.call.name,
                            "success": ex.success,
                            "duration": round(ex.duration, 2),
                        },
                    )

            logger.warning(f"Turn limit ({self.max_turns}) reached without a final answer")
            yield AgentEvent(
                type="done",
                data={"result": AgentResult(Outcome.EXHAUSTED, last_text, run_usage, self._run_turns)},
            )

        except (asyncio.CancelledError, Exception):
            # No half-finished turn may remain in the history
            self.state.rollback(mark)
            raise

    async def run(
        self,
        user_message: str,
        timeout: float | None = None,
        on_event: Callable[[AgentEvent], None] | None = None,
    ) -> AgentResult:
        """Run one user message to completion and return the outcome."""
        result: AgentResult | None = None

        async def _drain() -> None:
            nonlocal result
            async for event in self.process_message(user_message):
                if on_event is not None:
                    on_event(event)
                if event.type == "done":
                    result = event.data["result"]

        try:
            await asyncio.wait_for(_drain(), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Agent run timed out after {timeout}s")
            return AgentResult(
                Outcome.FAILED,
                usage=self._run_usage,
                turns=self._run_turns,
                error=TransportError(f"agent run timed out after {timeout}s"),
            )

        assert result is not None
        return result


def _copy(usage: Usage) -> Usage:
    return Usage(usage.input_tokens, usage.output_tokens)
