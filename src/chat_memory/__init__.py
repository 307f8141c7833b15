"""Windowed chat memory for chat-oriented AI clients.

Keeps a bounded history per conversation, preserving the leading system
messages, on top of a pluggable repository.

Typical usage
-------------
from chat_memory import Message, MessageWindowChatMemory
memory = MessageWindowChatMemory(max_messages=10)
memory.add("alice", [Message.system("Be brief."), Message.user("Hi")])
history = memory.get("alice")
"""

from __future__ import annotations

from .config import ChatMemoryConfig, build_config, create_chat_memory, create_repository, load_config
from .disk import DiskChatMemoryRepository
from .errors import ChatMemoryError, ConfigurationError, RepositoryError
from .memory import (
    DEFAULT_CONVERSATION_ID,
    DEFAULT_MAX_MESSAGES,
    ChatMemory,
    MessageWindowChatMemory,
    apply_window,
)
from .messages import Message, MessageType, ToolCall, ToolResponse
from .repository import ChatMemoryRepository, InMemoryChatMemoryRepository

__all__ = [
    "ChatMemory",
    "ChatMemoryConfig",
    "ChatMemoryError",
    "ChatMemoryRepository",
    "ConfigurationError",
    "DEFAULT_CONVERSATION_ID",
    "DEFAULT_MAX_MESSAGES",
    "DiskChatMemoryRepository",
    "InMemoryChatMemoryRepository",
    "Message",
    "MessageType",
    "MessageWindowChatMemory",
    "RepositoryError",
    "ToolCall",
    "ToolResponse",
    "__version__",
    "apply_window",
    "build_config",
    "create_chat_memory",
    "create_repository",
    "get_version",
    "load_config",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__
