from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..llm.errors import LLMError
from ..llm.models import Message, Role, ToolCall, Usage

logger = logging.getLogger("trix.agent")

DEFAULT_MAX_TURNS = 10


class Outcome(str, Enum):
    FINISHED = "finished"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass
class AgentResult:
    outcome: Outcome
    content: str = ""
    usage: Usage = field(default_factory=Usage)  # this run only
    turns: int = 0
    error: LLMError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.FINISHED


@dataclass
class AgentEvent:
    type: str  # "text", "tool_start", "tool_end", "usage", "error", "done"
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentState:
    """Conversation history and cumulative token usage for one session."""

    conversation: list[Message] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    def add_message(self, message: Message) -> None:
        role = Role(message.role)
        if message.tool_call_id is not None and role is not Role.TOOL:
            raise ValueError(f"tool_call_id is only valid on tool messages, got role '{role.value}'")
        if role is Role.TOOL and not message.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")
        if message.tool_calls and role is not Role.ASSISTANT:
            raise ValueError(f"tool_calls are only valid on assistant messages, got role '{role.value}'")
        self.conversation.append(message)

    def add_turn(self, assistant: Message, results: list[Message]) -> None:
        """Append an assistant tool-call message and its results as one unit."""
        calls: list[ToolCall] = assistant.tool_calls or []
        expected = [tc.id for tc in calls]
        got = [m.tool_call_id for m in results]
        if sorted(expected) != sorted(got):
            raise ValueError(f"tool results {got} do not match tool calls {expected}")
        self.add_message(assistant)
        for msg in results:
            self.add_message(msg)

    def snapshot(self) -> int:
        return len(self.conversation)

    def rollback(self, mark: int) -> None:
        if len(self.conversation) > mark:
            logger.info(f"Rolling back {len(self.conversation) - mark} message(s)")
            del self.conversation[mark:]

    def clear(self, keep_system: bool = True) -> None:
        if keep_system:
            self.conversation = [m for m in self.conversation if Role(m.role) is Role.SYSTEM]
        else:
            self.conversation = []
        self.usage = Usage()
