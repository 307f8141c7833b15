"""Repository contract for per-conversation message storage, plus an in-memory backend."""
from __future__ import annotations

import threading
from typing import Dict, List, Protocol, Sequence, Tuple, runtime_checkable

from .messages import Message


@runtime_checkable
class ChatMemoryRepository(Protocol):
    """Keyed storage of message lists.

    ``save_all`` has full-replace semantics: the given list becomes the whole
    stored state for the conversation. Looking up an unknown conversation
    returns an empty list, never an error.
    """

    def find_conversation_ids(self) -> List[str]:
        ...

    def find_by_conversation_id(self, conversation_id: str) -> List[Message]:
        ...

    def save_all(self, conversation_id: str, messages: Sequence[Message]) -> None:
        ...

    def delete_by_conversation_id(self, conversation_id: str) -> None:
        ...


class InMemoryChatMemoryRepository:
    """Process-local repository backed by a dict owned by this instance.

    A single lock guards the dict and is held only for one lookup or
    assignment, so calls on different conversations never wait on each other
    for longer than that. Read-modify-write sequences are the caller's
    responsibility (see ``MessageWindowChatMemory``).
    """

    def __init__(self) -> None:
        self._store: Dict[str, Tuple[Message, ...]] = {}
        self._lock = threading.RLock()

    def find_conversation_ids(self) -> List[str]:
        with self._lock:
            return list(self._store)

    def find_by_conversation_id(self, conversation_id: str) -> List[Message]:
        with self._lock:
            return list(self._store.get(conversation_id, ()))

    def save_all(self, conversation_id: str, messages: Sequence[Message]) -> None:
        snapshot = tuple(messages)
        with self._lock:
            self._store[conversation_id] = snapshot

    def delete_by_conversation_id(self, conversation_id: str) -> None:
        with self._lock:
            self._store.pop(conversation_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
