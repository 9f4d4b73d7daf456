"""LLM provider package.

Public API:
    from trix.llm import Message, Tool, ToolCall, Response, Usage, Role
    from trix.llm import Provider, AnthropicProvider, OpenAIProvider, MistralProvider

Internal layout:
    models.py           — canonical Message/Tool/ToolCall/Response/Usage
    errors.py           — LLMError taxonomy
    base.py             — Provider (HTTP POST, status/decode handling)
    anthropic.py        — Messages API adapter
    chat_completions.py — shared OpenAI-style wire format
    openai.py, mistral.py
    factory.py          — new_provider(cfg, credentials)
"""

from .anthropic import AnthropicProvider
from .base import Provider
from .errors import (
    ArgumentDecodeError,
    ConfigurationError,
    DecodeError,
    LLMError,
    ProtocolError,
    TransportError,
)
from .mistral import MistralProvider
from .models import Message, Response, Role, Tool, ToolCall, Usage
from .openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "ArgumentDecodeError",
    "ConfigurationError",
    "DecodeError",
    "LLMError",
    "Message",
    "MistralProvider",
    "OpenAIProvider",
    "ProtocolError",
    "Provider",
    "Response",
    "Role",
    "Tool",
    "ToolCall",
    "TransportError",
    "Usage",
]
