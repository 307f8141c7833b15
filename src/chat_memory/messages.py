"""Immutable chat message values stored by the memory."""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class MessageType(str, Enum):
    """Role of the message author."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCall(BaseModel):
    """A tool invocation requested by the assistant."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "function"
    name: str
    arguments: str = Field(default="{}", description="JSON-encoded call arguments.")


class ToolResponse(BaseModel):
    """The result of a tool invocation, carried by a tool message."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    response_data: str = ""


def _freeze(value: Any) -> Any:
    """Recursively swap dicts for read-only mappings and lists for tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (tuple, frozenset)):
        return [_thaw(v) for v in value]
    return value


class Message(BaseModel):
    """A single conversation message.

    Messages are immutable all the way down: fields cannot be reassigned,
    tool calls and responses are tuples, and ``metadata`` is a read-only
    mapping built from a copy of what the caller passed in. Eviction only
    ever drops whole messages, it never rewrites them.
    """

    model_config = ConfigDict(frozen=True)

    message_type: MessageType
    content: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_responses: Tuple[ToolResponse, ...] = ()
    metadata: Mapping[str, Any] = Field(default_factory=lambda: MappingProxyType({}))

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    @field_serializer("metadata")
    def _serialize_metadata(self, value: Mapping[str, Any]) -> Dict[str, Any]:
        return _thaw(value)

    @property
    def is_system(self) -> bool:
        return self.message_type is MessageType.SYSTEM

    # ----------------- constructors -----------------
    @classmethod
    def system(cls, content: str, **metadata: Any) -> "Message":
        return cls(message_type=MessageType.SYSTEM, content=content, metadata=metadata)

    @classmethod
    def user(cls, content: str, **metadata: Any) -> "Message":
        return cls(message_type=MessageType.USER, content=content, metadata=metadata)

    @classmethod
    def assistant(
        cls,
        content: str = "",
        *,
        tool_calls: Iterable[ToolCall] | None = None,
        **metadata: Any,
    ) -> "Message":
        return cls(
            message_type=MessageType.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls or ()),
            metadata=metadata,
        )

    @classmethod
    def tool(cls, responses: Iterable[ToolResponse], **metadata: Any) -> "Message":
        return cls(message_type=MessageType.TOOL, tool_responses=tuple(responses), metadata=metadata)

    # ----------------- serialization -----------------
    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly dict; empty optional fields are omitted."""
        dumped = self.model_dump(mode="json")
        row: Dict[str, Any] = {"message_type": self.message_type.value}
        for key in ("content", "tool_calls", "tool_responses", "metadata"):
            if dumped[key]:
                row[key] = dumped[key]
        return row

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls.model_validate(data)
