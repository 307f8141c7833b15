"""Configuration loading for the chat memory.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable CHAT_MEMORY_CONFIG
3. Fallback to "config/default.yaml"

It also supports overrides from environment variables with prefix
``CHAT_MEMORY__`` (e.g., CHAT_MEMORY__MEMORY__MAX_MESSAGES=5).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .disk import DiskChatMemoryRepository
from .errors import ConfigurationError
from .memory import DEFAULT_MAX_MESSAGES, MessageWindowChatMemory
from .repository import ChatMemoryRepository, InMemoryChatMemoryRepository

logger = logging.getLogger("chat_memory.config")

ENV_CONFIG_PATH = "CHAT_MEMORY_CONFIG"
ENV_PREFIX = "CHAT_MEMORY__"
DEFAULT_CONFIG_PATH = "config/default.yaml"

REPOSITORY_KINDS = ("in_memory", "disk")


@dataclass(frozen=True)
class ChatMemoryConfig:
    """Validated settings for building a :class:`MessageWindowChatMemory`."""

    max_messages: int = DEFAULT_MAX_MESSAGES
    repository: str = "in_memory"
    data_dir: str = "data/chat_memory"

    def __post_init__(self) -> None:
        if isinstance(self.max_messages, bool) or not isinstance(self.max_messages, int):
            raise ConfigurationError(f"max_messages must be an integer, got {self.max_messages!r}")
        if self.max_messages <= 0:
            raise ConfigurationError(f"max_messages must be positive, got {self.max_messages}")
        if self.repository not in REPOSITORY_KINDS:
            raise ConfigurationError(
                f"Unknown repository {self.repository!r}; expected one of {', '.join(REPOSITORY_KINDS)}"
            )
        if not str(self.data_dir).strip():
            raise ConfigurationError("data_dir must not be empty")


def _coerce(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix CHAT_MEMORY__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., CHAT_MEMORY__MEMORY__MAX_MESSAGES -> cfg["memory"]["max_messages"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load the YAML configuration.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``CHAT_MEMORY_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Parsed configuration dictionary with environment overrides applied.
    """
    if path is None:
        path = os.environ.get(ENV_CONFIG_PATH, DEFAULT_CONFIG_PATH)

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides({"memory": {}})

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(cfg, dict):
        raise ConfigurationError(f"Invalid config format in {path_obj}, expected a mapping.")

    return _apply_env_overrides(cfg)


def build_config(cfg: Dict[str, Any]) -> ChatMemoryConfig:
    """Turn the ``memory`` section of a loaded config into a ChatMemoryConfig."""
    mem_cfg = cfg.get("memory") or {}
    if not isinstance(mem_cfg, dict):
        raise ConfigurationError("'memory' section must be a mapping")
    defaults = ChatMemoryConfig()
    return ChatMemoryConfig(
        max_messages=mem_cfg.get("max_messages", defaults.max_messages),
        repository=str(mem_cfg.get("repository", defaults.repository)),
        data_dir=str(mem_cfg.get("data_dir", defaults.data_dir)),
    )


def create_repository(config: ChatMemoryConfig) -> ChatMemoryRepository:
    if config.repository == "disk":
        return DiskChatMemoryRepository(config.data_dir)
    return InMemoryChatMemoryRepository()


def create_chat_memory(
    config: ChatMemoryConfig | str | None = None,
    repository: Optional[ChatMemoryRepository] = None,
) -> MessageWindowChatMemory:
    """Build a memory from a config value, a config file path, or the defaults."""
    if not isinstance(config, ChatMemoryConfig):
        config = build_config(load_config(config))
    repo = repository if repository is not None else create_repository(config)
    return MessageWindowChatMemory(repo, max_messages=config.max_messages)
