"""Configuration management for trix."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .llm.errors import ConfigurationError

logger = logging.getLogger(__name__)

APP_DIR_NAME = ".trix"
CONFIG_FILENAME = "config.json"
ENV_PREFIX = "TRIX_"

PROVIDERS = ("anthropic", "openai", "mistral")

DEFAULT_CONFIG: dict[str, Any] = {
    "provider": "anthropic",
    "model": "",
    "anthropic_base_url": "https://api.anthropic.com",
    "openai_base_url": "https://api.openai.com",
    "mistral_base_url": "https://api.mistral.ai",
    "request_timeout": 120.0,
    "max_tokens": 4096,
    "temperature": None,
    "top_p": None,
    "agent_max_turns": 10,
    "tool_output_max_chars": 8000,
    "kubectl_path": "kubectl",
    "kubectl_timeout": 60.0,
    "log_file": "",
}


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from ~/.trix/config.json."""

    # LLM provider
    provider: str
    model: str

    # Vendor endpoints
    anthropic_base_url: str
    openai_base_url: str
    mistral_base_url: str

    # Request options
    request_timeout: float
    max_tokens: int
    temperature: float | None
    top_p: float | None

    # Agent loop controls
    agent_max_turns: int
    tool_output_max_chars: int

    # Cluster access
    kubectl_path: str
    kubectl_timeout: float

    # Logging
    log_file: str

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """Load config from the given path or the default ~/.trix/config.json."""
        if config_path:
            config_file = Path(config_path)
        else:
            config_dir = Path.home() / APP_DIR_NAME
            config_file = config_dir / CONFIG_FILENAME
            config_dir.mkdir(parents=True, exist_ok=True)

        current_config = DEFAULT_CONFIG.copy()

        if config_file.exists():
            try:
                with open(config_file, "r", encoding="utf-8") as f:
                    user_config = json.load(f)
                current_config.update(
                    {k: v for k, v in user_config.items() if k in DEFAULT_CONFIG}
                )
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load config from {config_file}: {e}; using defaults")
        elif config_path is None:
            logger.info(f"No config found. Generating default config at {config_file}")
            try:
                with open(config_file, "w", encoding="utf-8") as f:
                    json.dump(DEFAULT_CONFIG, f, indent=4)
            except OSError as e:
                logger.error(f"Failed to write default config: {e}")
        else:
            logger.warning(f"Configuration file not found at {config_file}; using defaults")

        # Environment overrides, e.g. TRIX_PROVIDER=mistral
        for key, default_val in DEFAULT_CONFIG.items():
            env_key = f"{ENV_PREFIX}{key.upper()}"
            if env_key in os.environ:
                current_config[key] = _coerce(os.environ[env_key], default_val)

        cfg = cls(**current_config)
        if cfg.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider '{cfg.provider}'. Choose one of: {', '.join(PROVIDERS)}"
            )
        return cfg


def _coerce(val: str, default_val: Any) -> Any:
    if isinstance(default_val, bool):
        return val.lower() in ("true", "1", "yes")
    if isinstance(default_val, int):
        try:
            return int(val)
        except ValueError:
            return default_val
    if isinstance(default_val, float):
        try:
            return float(val)
        except ValueError:
            return default_val
    if default_val is None:
        # Optional numeric settings
        try:
            return float(val) if val.strip() else None
        except ValueError:
            return None
    return val


@dataclass(frozen=True)
class ProviderCredentials:
    """API keys, one optional field per vendor.

    Built once at startup and handed to the provider constructors so that no
    adapter reads the process environment on its own.
    """

    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    mistral_api_key: str | None = None

    ENV_VARS = {
        "anthropic": "ANTHROPIC_API_KEY",
        "openai": "OPENAI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
    }

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ProviderCredentials:
        env = os.environ if environ is None else environ
        return cls(
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            mistral_api_key=env.get("MISTRAL_API_KEY") or None,
        )

    def require(self, provider: str) -> str:
        """Return the key for ``provider`` or raise ConfigurationError."""
        if provider not in self.ENV_VARS:
            raise ConfigurationError(f"Unknown provider '{provider}'")
        key = getattr(self, f"{provider}_api_key")
        if not key:
            raise ConfigurationError(
                f"{self.ENV_VARS[provider]} environment variable not set"
            )
        return key


# Singleton
_config: Config | None = None


def get_config(config_path: str | None = None) -> Config:
    """Get or create the global config instance, optionally loading from a path."""
    global _config
    if _config is None:
        _config = Config.load(config_path)
    return _config
