from __future__ import annotations

import httpx

from ..config import Config, ProviderCredentials
from .anthropic import AnthropicProvider
from .base import Provider
from .errors import ConfigurationError
from .mistral import MistralProvider
from .openai import OpenAIProvider

PROVIDER_CLASSES: dict[str, type[Provider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "mistral": MistralProvider,
}


def new_provider(
    cfg: Config,
    credentials: ProviderCredentials,
    provider: str | None = None,
    model: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Provider:
    """Build the configured provider. Raises ConfigurationError on a missing key."""
    name = provider or cfg.provider
    cls = PROVIDER_CLASSES.get(name)
    if cls is None:
        raise ConfigurationError(
            f"Unknown provider '{name}'. Choose one of: {', '.join(PROVIDER_CLASSES)}"
        )
    return cls(
        credentials,
        model=model or cfg.model or None,
        base_url=getattr(cfg, f"{name}_base_url"),
        timeout=cfg.request_timeout,
        max_tokens=cfg.max_tokens,
        temperature=cfg.temperature,
        top_p=cfg.top_p,
        http_client=http_client,
    )
