"""Wire format shared by OpenAI-style ``/v1/chat/completions`` endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, Field

from .base import Provider, make_tool_call
from .models import Message, Response, Role, Tool, ToolCall, Usage

logger = logging.getLogger("trix.llm.chat_completions")


class _FunctionCall(BaseModel):
    name: str = ""
    arguments: Any = None


class _ToolCall(BaseModel):
    id: str | None = None
    type: str | None = None
    function: _FunctionCall = Field(default_factory=_FunctionCall)


class _Message(BaseModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[_ToolCall] | None = None


class _Choice(BaseModel):
    index: int = 0
    message: _Message = Field(default_factory=_Message)
    finish_reason: str | None = None


class _Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class _CompletionResponse(BaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[_Choice] = Field(default_factory=list)
    usage: _Usage | None = None


class ChatCompletionsProvider(Provider):
    """System prompt inline, tool calls as a list on the assistant message,
    arguments as JSON-encoded strings, tool results in a ``tool`` role.
    """

    path = "/v1/chat/completions"
    # Sampling defaults sent when the caller does not configure one
    default_temperature: float | None = None
    default_top_p: float | None = None
    send_max_tokens: bool = False

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def build_request(self, messages: list[Message], tools: list[Tool]) -> dict[str, Any]:
        req: dict[str, Any] = {
            "model": self.model,
            "messages": [self.convert_message(m) for m in messages],
        }
        if tools:
            req["tools"] = [self.convert_tool(t) for t in tools]
            req["tool_choice"] = "auto"

        temperature = self.temperature if self.temperature is not None else self.default_temperature
        top_p = self.top_p if self.top_p is not None else self.default_top_p
        if temperature is not None:
            req["temperature"] = temperature
        if top_p is not None:
            req["top_p"] = top_p
        if self.send_max_tokens and self.max_tokens:
            req["max_tokens"] = self.max_tokens
        return req

    def convert_message(self, msg: Message) -> dict[str, Any]:
        role = Role(msg.role)
        out: dict[str, Any] = {"role": role.value, "content": msg.content}
        if role == Role.ASSISTANT and msg.tool_calls:
            out["tool_calls"] = [self.convert_tool_call(tc) for tc in msg.tool_calls]
        elif role == Role.TOOL:
            out["tool_call_id"] = msg.tool_call_id
        return out

    @staticmethod
    def convert_tool_call(tc: ToolCall) -> dict[str, Any]:
        return {
            "id": tc.id,
            "type": "function",
            "function": {"name": tc.name, "arguments": json.dumps(tc.parameters)},
        }

    @staticmethod
    def convert_tool(tool: Tool) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }

    def parse_response(self, payload: Any) -> Response:
        api_resp = self._validate(_CompletionResponse, payload)
        usage = Usage()
        if api_resp.usage is not None:
            usage = Usage(
                input_tokens=api_resp.usage.prompt_tokens,
                output_tokens=api_resp.usage.completion_tokens,
            )

        if not api_resp.choices:
            logger.warning(f"{self.name} response carried no choices")
            return Response(usage=usage)

        choice = api_resp.choices[0]
        response = Response(content=choice.message.content or "", usage=usage)
        seen_ids: set[str] = set()
        for tc in choice.message.tool_calls or []:
            response.tool_calls.append(
                make_tool_call(tc.id, tc.function.name, tc.function.arguments, seen_ids)
            )

        logger.debug(
            f"{self.name} finish_reason={choice.finish_reason} "
            f"tool_calls={len(response.tool_calls)} "
            f"usage={usage.input_tokens}/{usage.output_tokens}"
        )
        return response
