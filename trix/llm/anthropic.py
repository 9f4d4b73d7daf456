"""Adapter for the Anthropic Messages API."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from .base import Provider, make_tool_call
from .models import Message, Response, Role, Tool, ToolCall, Usage

logger = logging.getLogger("trix.llm.anthropic")

ANTHROPIC_VERSION = "2023-06-01"


class _ContentBlock(BaseModel):
    type: str
    text: str | None = None
    id: str | None = None
    name: str | None = None
    input: Any = None


class _Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class _MessagesResponse(BaseModel):
    content: list[_ContentBlock] = Field(default_factory=list)
    stop_reason: str | None = None
    usage: _Usage = Field(default_factory=_Usage)


class AnthropicProvider(Provider):
    """Claude models via ``POST /v1/messages``.

    The system prompt travels as a top-level field, tool calls are
    ``tool_use`` content blocks inside the assistant turn, and tool results
    go back as ``tool_result`` blocks inside a user turn.
    """

    name = "anthropic"
    default_model = "claude-sonnet-4-20250514"
    default_base_url = "https://api.anthropic.com"
    path = "/v1/messages"

    def headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_request(self, messages: list[Message], tools: list[Tool]) -> dict[str, Any]:
        system_parts: list[str] = []
        conv: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                if msg.content:
                    system_parts.append(msg.content)
                continue

            if msg.role == Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                # All results for one assistant turn belong in the same user turn
                prev = conv[-1] if conv else None
                if (
                    prev is not None
                    and prev["role"] == "user"
                    and isinstance(prev["content"], list)
                    and all(b.get("type") == "tool_result" for b in prev["content"])
                ):
                    prev["content"].append(block)
                else:
                    conv.append({"role": "user", "content": [block]})
                continue

            if msg.role == Role.ASSISTANT and not msg.content and not msg.tool_calls:
                # The API rejects empty assistant turns before the final message
                continue

            if msg.role == Role.ASSISTANT and msg.tool_calls:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                blocks.extend(self._tool_use_block(tc) for tc in msg.tool_calls)
                conv.append({"role": "assistant", "content": blocks})
                continue

            conv.append({"role": Role(msg.role).value, "content": msg.content})

        req: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens or 4096,
            "messages": conv,
        }
        if system_parts:
            req["system"] = "\n\n".join(system_parts)
        if self.temperature is not None:
            req["temperature"] = self.temperature
        if self.top_p is not None:
            req["top_p"] = self.top_p
        if tools:
            req["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in tools
            ]
        return req

    @staticmethod
    def _tool_use_block(tc: ToolCall) -> dict[str, Any]:
        return {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.parameters}

    def parse_response(self, payload: Any) -> Response:
        api_resp = self._validate(_MessagesResponse, payload)
        response = Response(
            usage=Usage(
                input_tokens=api_resp.usage.input_tokens,
                output_tokens=api_resp.usage.output_tokens,
            )
        )

        seen_ids: set[str] = set()
        for block in api_resp.content:
            if block.type == "text":
                response.content += block.text or ""
            elif block.type == "tool_use":
                response.tool_calls.append(
                    make_tool_call(block.id, block.name or "", block.input, seen_ids)
                )
            else:
                logger.debug(f"Ignoring content block of type '{block.type}'")

        logger.debug(
            f"stop_reason={api_resp.stop_reason} tool_calls={len(response.tool_calls)} "
            f"usage={response.usage.input_tokens}/{response.usage.output_tokens}"
        )
        return response
