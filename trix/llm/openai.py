"""Adapter for the OpenAI Chat Completions API."""

from __future__ import annotations

from .chat_completions import ChatCompletionsProvider


class OpenAIProvider(ChatCompletionsProvider):
    """GPT models; only sampling options that were configured are sent."""

    name = "openai"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com"
