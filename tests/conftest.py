import asyncio
import json

import httpx
import pytest

from trix.config import ProviderCredentials
from trix.llm.models import Response, ToolCall, Usage


class Recorder:
    """httpx.MockTransport handler that records requests and replays one reply."""

    def __init__(self, status=200, body=None, text=None, exc=None):
        self.status = status
        self.body = body
        self.text = text
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.body if self.body is not None else {})

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> dict:
        return json.loads(self.last.content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class ScriptedProvider:
    """Stands in for a Provider: returns queued responses, records what it saw."""

    name = "scripted"
    model = "test-model"

    def __init__(self, responses=None, repeat=None):
        self.responses = list(responses or [])
        self.repeat = repeat
        self.calls = []

    async def chat(self, messages, tools=()):
        self.calls.append({"messages": list(messages), "tools": list(tools)})
        if self.responses:
            item = self.responses.pop(0)
        elif self.repeat is not None:
            item = self.repeat() if callable(self.repeat) else self.repeat
        else:
            raise AssertionError("ScriptedProvider ran out of responses")
        if isinstance(item, BaseException):
            raise item
        return item


def tool_response(call_id="t1", name="queryFindings", parameters=None, usage=(10, 5), content=""):
    return Response(
        content=content,
        tool_calls=[ToolCall(call_id, name, parameters if parameters is not None else {})],
        usage=Usage(*usage),
    )


def text_response(content="done", usage=(20, 8)):
    return Response(content=content, usage=Usage(*usage))


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def credentials():
    return ProviderCredentials(
        anthropic_api_key="sk-ant-test",
        openai_api_key="sk-openai-test",
        mistral_api_key="mistral-test",
    )
