"""Exception types raised by the chat memory package."""
from __future__ import annotations


class ChatMemoryError(Exception):
    """Base class for every error raised by :mod:`chat_memory`."""


class ConfigurationError(ChatMemoryError, ValueError):
    """Invalid configuration (bad window size, unknown backend, unreadable YAML)."""


class RepositoryError(ChatMemoryError):
    """A repository backend could not read or write its stored state."""
