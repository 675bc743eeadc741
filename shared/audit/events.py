"""Message lifecycle events, snapshots and normalized audit records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"

ACTIONS = frozenset({ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE})

# Every key AuditRecord.fields() can produce, in output order
RECORD_FIELDS = (
    "action", "id", "channel", "guild",
    "type", "flags", "timestamp", "edited", "author", "content",
)

# Stand-in for "no timestamp" so every record keeps the same field types
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _as_utc(ts: Optional[datetime]) -> datetime:
    if ts is None:
        return ZERO_TIME
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class MessageSnapshot:
    """Last known content and metadata of a message."""

    author: str
    content: str
    type: int = 0
    flags: int = 0
    timestamp: Optional[datetime] = None
    edited: Optional[datetime] = None

    def fields(self) -> Dict[str, Any]:
        return {
            "type": int(self.type),
            "flags": int(self.flags),
            "timestamp": _as_utc(self.timestamp),
            "edited": _as_utc(self.edited),
            "author": self.author,
            "content": self.content,
        }


# ----------------------------------------------------------------------
# Lifecycle events (transient, one per gateway callback)
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class MessageCreated:
    message_id: int
    channel_id: int
    guild_id: int
    message: MessageSnapshot


@dataclass(frozen=True)
class MessageUpdated:
    message_id: int
    channel_id: int
    guild_id: int
    message: MessageSnapshot


@dataclass(frozen=True)
class MessageDeleted:
    message_id: int
    channel_id: int
    guild_id: int = 0


@dataclass(frozen=True)
class MessagesBulkDeleted:
    message_ids: Tuple[int, ...]
    channel_id: int
    guild_id: int = 0


LifecycleEvent = Union[
    MessageCreated,
    MessageUpdated,
    MessageDeleted,
    MessagesBulkDeleted,
]


# ----------------------------------------------------------------------
# Audit record
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class AuditRecord:
    """
    Normalized record handed to the emitter.

    Identifier fields are always present. Snapshot fields are present only
    when the message content could be resolved.
    """

    action: str
    message_id: int
    channel_id: int
    guild_id: int = 0
    snapshot: Optional[MessageSnapshot] = None

    def __post_init__(self):
        if self.action not in ACTIONS:
            raise ValueError(f"Unsupported audit action: {self.action!r}")

    @property
    def resolved(self) -> bool:
        return self.snapshot is not None

    def fields(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "action": self.action,
            "id": int(self.message_id),
            "channel": int(self.channel_id),
            "guild": int(self.guild_id or 0),
        }
        if self.snapshot is not None:
            payload.update(self.snapshot.fields())
        return payload


__all__ = [
    "ACTION_CREATE",
    "ACTION_UPDATE",
    "ACTION_DELETE",
    "ACTIONS",
    "ZERO_TIME",
    "RECORD_FIELDS",
    "MessageSnapshot",
    "MessageCreated",
    "MessageUpdated",
    "MessageDeleted",
    "MessagesBulkDeleted",
    "LifecycleEvent",
    "AuditRecord",
]
