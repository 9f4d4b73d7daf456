"""Error taxonomy for provider calls."""

from __future__ import annotations


class LLMError(Exception):
    """Base class for every provider failure that ends an agent run."""


class ConfigurationError(LLMError):
    """A required setting (usually an API key) is missing or invalid."""


class TransportError(LLMError):
    """The request never produced an HTTP response (network, timeout)."""


class ProtocolError(LLMError):
    """The vendor answered with a non-success HTTP status."""

    def __init__(self, status_code: int, message: str, body: str = "") -> None:
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"API error (status {status_code}): {message}")


class DecodeError(LLMError):
    """The response body is not valid JSON of the expected vendor shape."""


class ArgumentDecodeError(LLMError):
    """One tool call carried arguments that are not a JSON object.

    Adapters recover from this locally by substituting empty parameters.
    """
