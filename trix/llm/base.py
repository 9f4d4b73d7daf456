"""Shared HTTP plumbing for the vendor adapters."""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Sequence

import httpx
from pydantic import BaseModel, ValidationError

from .errors import ArgumentDecodeError, DecodeError, ProtocolError, TransportError
from .models import Message, Response, Tool, ToolCall

if TYPE_CHECKING:
    from ..config import ProviderCredentials

logger = logging.getLogger("trix.llm")

DEFAULT_TIMEOUT = 120.0
DEFAULT_MAX_TOKENS = 4096


class Provider(ABC):
    """One vendor's implementation of the chat capability.

    Subclasses translate the canonical model into the vendor request body,
    and the vendor response body back into a :class:`Response`. Everything
    else (the POST itself, status handling, decoding) lives here.
    """

    name: str = ""
    default_model: str = ""
    default_base_url: str = ""
    path: str = ""

    def __init__(
        self,
        credentials: ProviderCredentials,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int | None = DEFAULT_MAX_TOKENS,
        temperature: float | None = None,
        top_p: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = credentials.require(self.name)
        self.model = model or self.default_model
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        logger.debug(f"Initialized {self.name} provider (model: {self.model}, url: {self.url})")

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def chat(self, messages: Sequence[Message], tools: Sequence[Tool] = ()) -> Response:
        """Send the conversation to the vendor and return the normalized reply."""
        body = self.build_request(list(messages), list(tools))
        payload = await self._post(body)
        return self.parse_response(payload)

    @abstractmethod
    def headers(self) -> dict[str, str]: ...

    @abstractmethod
    def build_request(self, messages: list[Message], tools: list[Tool]) -> dict[str, Any]: ...

    @abstractmethod
    def parse_response(self, payload: Any) -> Response: ...

    async def _post(self, body: dict[str, Any]) -> Any:
        logger.debug(
            f"POST {self.url} model={self.model} messages={len(body.get('messages', []))} "
            f"tools={len(body.get('tools', []))}"
        )
        try:
            resp = await self._client.post(self.url, json=body, headers=self.headers())
        except httpx.RequestError as e:
            logger.error(f"{self.name} request failed: {e}")
            raise TransportError(f"request failed: {e}") from e

        if not resp.is_success:
            message = self.error_message(resp.text)
            logger.error(f"{self.name} API error (status {resp.status_code}): {message}")
            raise ProtocolError(resp.status_code, message, resp.text)

        try:
            return resp.json()
        except ValueError as e:
            raise DecodeError(f"failed to parse response: {e}") from e

    def error_message(self, body: str) -> str:
        """Pull the human-readable message out of a vendor error envelope.

        Falls back to the raw body when the envelope is not recognized.
        """
        try:
            payload = json.loads(body)
        except ValueError:
            return body
        if not isinstance(payload, dict):
            return body

        err = payload.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str) and err["message"]:
            return err["message"]
        if isinstance(err, str) and err:
            return err
        for key in ("message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
        return body

    def _validate(self, model: type[BaseModel], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(f"unexpected {self.name} response shape: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Provider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def decode_arguments(raw: Any) -> dict[str, Any]:
    """Turn a vendor argument payload into a parameter mapping.

    Accepts an already-decoded object or a JSON-encoded string. Raises
    ArgumentDecodeError for anything that is not a JSON object.
    """
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise ArgumentDecodeError(f"arguments are not valid JSON: {e}") from e
        if isinstance(value, dict):
            return value
    raise ArgumentDecodeError(f"arguments are not a JSON object: {str(raw)[:100]!r}")


def make_tool_call(call_id: str | None, name: str, raw_arguments: Any, seen_ids: set[str]) -> ToolCall:
    """Build a ToolCall, recovering from malformed arguments and missing ids."""
    try:
        parameters = decode_arguments(raw_arguments)
    except ArgumentDecodeError as e:
        logger.warning(f"Tool call '{name}' ({call_id}): {e}; using empty parameters")
        parameters = {}

    if not call_id or call_id in seen_ids:
        call_id = uuid.uuid4().hex[:9]
    seen_ids.add(call_id)
    return ToolCall(id=call_id, name=name, parameters=parameters)
