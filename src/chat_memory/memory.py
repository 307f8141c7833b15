"""Windowed chat memory: bounded per-conversation history over a repository."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Protocol, Sequence, Union

from .errors import ConfigurationError
from .messages import Message
from .repository import ChatMemoryRepository, InMemoryChatMemoryRepository

logger = logging.getLogger("chat_memory.memory")

DEFAULT_CONVERSATION_ID = "default"
DEFAULT_MAX_MESSAGES = 20


class ChatMemory(Protocol):
    """Caller-facing contract for conversation memories."""

    def add(self, conversation_id: str, messages: Union[Message, Sequence[Message]]) -> None:
        ...

    def get(self, conversation_id: str) -> List[Message]:
        ...

    def clear(self, conversation_id: str) -> None:
        ...


# -----------------------------
# Window policy
# -----------------------------
def _leading_system_run(messages: Sequence[Message]) -> int:
    n = 0
    for m in messages:
        if not m.is_system:
            break
        n += 1
    return n


def apply_window(messages: Sequence[Message], max_messages: int) -> List[Message]:
    """Trim ``messages`` to at most ``max_messages`` entries.

    The contiguous run of system messages at the head of the list is kept,
    and the oldest of the remaining messages are dropped first. A system
    message that follows a non-system one is treated like any other message.
    When the leading system run alone is larger than the window, only its
    newest ``max_messages`` entries survive.
    """
    if max_messages <= 0:
        raise ConfigurationError(f"max_messages must be positive, got {max_messages}")
    if len(messages) <= max_messages:
        return list(messages)

    head = _leading_system_run(messages)
    system_run = list(messages[:head])
    remainder = list(messages[head:])

    eviction_limit = max_messages - len(system_run)
    if eviction_limit < 0:
        return system_run[-max_messages:]
    if eviction_limit == 0:
        return system_run
    return system_run + remainder[-eviction_limit:]


def _as_list(messages: Union[Message, Iterable[Message]]) -> List[Message]:
    if isinstance(messages, Message):
        return [messages]
    out = list(messages)
    for m in out:
        if not isinstance(m, Message):
            raise TypeError(f"expected Message, got {type(m).__name__}")
    return out


def _check_conversation_id(conversation_id: str) -> None:
    if not isinstance(conversation_id, str) or not conversation_id.strip():
        raise ValueError("conversation_id must be a non-empty string")


# -----------------------------
# MessageWindowChatMemory
# -----------------------------
class MessageWindowChatMemory:
    """Chat memory that keeps at most ``max_messages`` per conversation.

    Every ``add`` reads the stored list, appends, trims with
    :func:`apply_window` and writes the full list back through the
    repository. That sequence runs under a lock private to the conversation,
    so concurrent appends to the same conversation never lose an update while
    appends to different conversations proceed in parallel. ``get`` is
    lock-free and may see the state before or after an in-flight ``add``.

    Repository errors are not caught here.
    """

    def __init__(
        self,
        repository: ChatMemoryRepository | None = None,
        *,
        max_messages: int = DEFAULT_MAX_MESSAGES,
    ) -> None:
        if isinstance(max_messages, bool) or not isinstance(max_messages, int) or max_messages <= 0:
            raise ConfigurationError(f"max_messages must be a positive integer, got {max_messages!r}")
        self.max_messages = max_messages
        self.repository: ChatMemoryRepository = (
            repository if repository is not None else InMemoryChatMemoryRepository()
        )
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = self._locks[conversation_id] = threading.Lock()
            return lock

    # --------- core API ----------
    def add(self, conversation_id: str, messages: Union[Message, Sequence[Message]]) -> None:
        """Append messages, apply the window, and persist the resulting list."""
        _check_conversation_id(conversation_id)
        new_messages = _as_list(messages)

        with self._lock_for(conversation_id):
            combined = list(self.repository.find_by_conversation_id(conversation_id)) + new_messages
            kept = apply_window(combined, self.max_messages)
            evicted = len(combined) - len(kept)
            if evicted:
                logger.debug(
                    "Evicted %d message(s) from conversation %r (window=%d)",
                    evicted,
                    conversation_id,
                    self.max_messages,
                )
            self.repository.save_all(conversation_id, kept)

    def get(self, conversation_id: str) -> List[Message]:
        """Return the stored messages for the conversation, oldest first."""
        _check_conversation_id(conversation_id)
        return list(self.repository.find_by_conversation_id(conversation_id))

    def clear(self, conversation_id: str) -> None:
        """Delete the conversation's history."""
        _check_conversation_id(conversation_id)
        with self._lock_for(conversation_id):
            self.repository.delete_by_conversation_id(conversation_id)
        logger.info("Cleared conversation %r", conversation_id)

    # --------- convenience ----------
    def conversation_ids(self) -> List[str]:
        """Return the ids of every conversation the repository holds."""
        return list(self.repository.find_conversation_ids())
