"""Adapter for the Mistral AI chat completions API."""

from __future__ import annotations

from .chat_completions import ChatCompletionsProvider


class MistralProvider(ChatCompletionsProvider):
    """Mistral models. Always sends sampling options and a token limit.

    Error envelopes are flat, e.g. ``{"object": "error", "message": ...}``,
    which :meth:`Provider.error_message` already understands.
    """

    name = "mistral"
    default_model = "mistral-large-latest"
    default_base_url = "https://api.mistral.ai"
    default_temperature = 0.7
    default_top_p = 1.0
    send_max_tokens = True
