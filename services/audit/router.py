"""
Event Router (Audit Pipeline)

Turns lifecycle events into normalized audit records.

Resolution rules:
- create / update: the snapshot comes straight from the event body
- delete: the snapshot is looked up in the message cache
- bulk delete: every id is resolved on its own, in the delivered order

A cache lookup that fails is treated exactly like a cache miss: the record
degrades to identifiers only. Nothing in here raises on a bad lookup, so a
single broken entry can never stall the gateway.

The router is pure: it reads the cache, builds records and returns them.
Delivery is the caller's concern.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from shared.audit.events import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    AuditRecord,
    LifecycleEvent,
    MessageCreated,
    MessageDeleted,
    MessageSnapshot,
    MessagesBulkDeleted,
    MessageUpdated,
)
from shared.logging.logger import get_logger

from services.discord.cache import MessageCache

log = get_logger("audit.router")


class Resolution(Enum):
    FOUND = "found"
    ABSENT = "absent"
    ERROR = "error"


class EventRouter:
    def __init__(self, cache: MessageCache):
        self._cache = cache

    # --------------------------------------------------
    # Resolution
    # --------------------------------------------------

    def resolve(
        self,
        channel_id: int,
        message_id: int,
    ) -> Tuple[Resolution, Optional[MessageSnapshot]]:
        """
        Look a message up in the cache.

        ABSENT and ERROR are reported separately for diagnostics but both
        lead to a minimal record.
        """
        try:
            snapshot, found = self._cache.lookup(channel_id, message_id)
        except Exception as e:
            log.warning(
                f"Cache lookup failed for message {message_id} "
                f"(channel {channel_id}): {e}"
            )
            return Resolution.ERROR, None

        if not found or snapshot is None:
            return Resolution.ABSENT, None
        return Resolution.FOUND, snapshot

    def _deleted(self, message_id: int, channel_id: int, guild_id: int) -> AuditRecord:
        outcome, snapshot = self.resolve(channel_id, message_id)
        if outcome is not Resolution.FOUND:
            log.debug(f"Message {message_id} not resolvable ({outcome.value}); minimal record")

        return AuditRecord(
            action=ACTION_DELETE,
            message_id=message_id,
            channel_id=channel_id,
            guild_id=guild_id,
            snapshot=snapshot,
        )

    # --------------------------------------------------
    # Routing
    # --------------------------------------------------

    def route(self, event: LifecycleEvent) -> List[AuditRecord]:
        if isinstance(event, MessageCreated):
            return [AuditRecord(
                action=ACTION_CREATE,
                message_id=event.message_id,
                channel_id=event.channel_id,
                guild_id=event.guild_id,
                snapshot=event.message,
            )]

        if isinstance(event, MessageUpdated):
            return [AuditRecord(
                action=ACTION_UPDATE,
                message_id=event.message_id,
                channel_id=event.channel_id,
                guild_id=event.guild_id,
                snapshot=event.message,
            )]

        if isinstance(event, MessageDeleted):
            return [self._deleted(event.message_id, event.channel_id, event.guild_id)]

        if isinstance(event, MessagesBulkDeleted):
            return [
                self._deleted(message_id, event.channel_id, event.guild_id)
                for message_id in event.message_ids
            ]

        raise TypeError(f"Unsupported lifecycle event: {type(event).__name__}")


__all__ = ["EventRouter", "Resolution"]
