"""YAML configuration for the arbitration strategies.

Example ``~/.claude/goto-work/config.yaml``::

    api_base: https://api.openai.com/v1
    api_key: sk-...
    model: gpt-4o-mini
    timeout: 30          # optional
    debug: false         # optional
    system_prompt: |     # optional
      You are a supervisor ...
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


class ConfigError(Exception):
    """Raised when the configuration file cannot be loaded or validated."""


class GotoWorkConfig(BaseModel):
    """Declarative configuration for goto-work."""

    model_config = ConfigDict(extra="ignore")

    # OpenAI compatible API base URL
    api_base: str
    api_key: str
    model: str

    # Request timeout in seconds
    timeout: int = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    # Overrides the packaged arbitration prompt
    system_prompt: str | None = None

    debug: bool = False

    @property
    def chat_completions_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/chat/completions"


def load_config(config_path: Path) -> GotoWorkConfig:
    """
    Load configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing, unreadable, not a YAML mapping,
            or fails validation
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {config_path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a YAML mapping")

    try:
        config = GotoWorkConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e

    logger.debug(f"Loaded config from {config_path} (model={config.model})")
    return config
