"""Disk-based chat memory repository: one JSON document per conversation."""
from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from .errors import RepositoryError
from .fileio import atomic_write_json, ensure_dir, read_json
from .messages import Message

logger = logging.getLogger("chat_memory.disk")

_MAX_STEM = 128
_DIGEST_CHARS = 16


# -----------------------------
# Helpers
# -----------------------------
def _safe_stem(conversation_id: str) -> str:
    """Filesystem-safe file stem for a conversation id.

    The readable prefix is only a hint; the trailing hash of the full id is
    what keeps two ids (including ones differing only in case) apart.
    """
    s = re.sub(r"[^\w.\-@]+", "_", conversation_id.strip())
    s = s.lstrip(".") or "_"
    digest = hashlib.sha256(conversation_id.encode("utf-8")).hexdigest()[:_DIGEST_CHARS]
    return f"{s[:_MAX_STEM - _DIGEST_CHARS - 1]}-{digest}"


# -----------------------------
# DiskChatMemoryRepository
# -----------------------------
class DiskChatMemoryRepository:
    """JSON-file repository.

    Layout:
        root/
          <readable id>-<hash>.json    # {"conversation_id": str, "messages": [ {...}, ... ]}

    Every ``save_all`` rewrites the conversation's file atomically, so a
    reader sees either the previous or the new snapshot, never a torn one.
    A file whose stored ``conversation_id`` does not match the requested id
    is reported as a ``RepositoryError`` rather than read.
    """

    SUFFIX = ".json"

    def __init__(self, root: str | Path) -> None:
        self.root = ensure_dir(root)

    def path_for(self, conversation_id: str) -> Path:
        """Return the file that holds ``conversation_id``."""
        return self.root / f"{_safe_stem(conversation_id)}{self.SUFFIX}"

    def _load(self, path: Path) -> Dict[str, Any]:
        try:
            doc = read_json(path)
        except (OSError, ValueError) as e:
            raise RepositoryError(f"Failed to read conversation file {path}: {e}") from e
        if (
            not isinstance(doc, dict)
            or not isinstance(doc.get("conversation_id"), str)
            or not isinstance(doc.get("messages"), list)
        ):
            raise RepositoryError(f"Invalid conversation document in {path}")
        return doc

    # --------- contract ----------
    def find_conversation_ids(self) -> List[str]:
        """List stored ids; unreadable files are logged and skipped."""
        out: List[str] = []
        for p in sorted(self.root.glob(f"*{self.SUFFIX}")):
            try:
                doc = self._load(p)
            except RepositoryError as e:
                logger.warning("Skipping unreadable conversation file: %s", e)
                continue
            out.append(doc["conversation_id"])
        return out

    def find_by_conversation_id(self, conversation_id: str) -> List[Message]:
        path = self.path_for(conversation_id)
        if not path.exists():
            return []
        doc = self._load(path)
        if doc["conversation_id"] != conversation_id:
            raise RepositoryError(
                f"{path} holds conversation {doc['conversation_id']!r}, not {conversation_id!r}"
            )
        try:
            return [Message.from_dict(row) for row in doc["messages"]]
        except ValidationError as e:
            raise RepositoryError(f"Invalid message in {path}: {e}") from e

    def save_all(self, conversation_id: str, messages: Sequence[Message]) -> None:
        path = self.path_for(conversation_id)
        doc = {
            "conversation_id": conversation_id,
            "messages": [m.to_dict() for m in messages],
        }
        atomic_write_json(path, doc)
        logger.debug("Saved %d messages for %r to %s", len(messages), conversation_id, path)

    def delete_by_conversation_id(self, conversation_id: str) -> None:
        self.path_for(conversation_id).unlink(missing_ok=True)
