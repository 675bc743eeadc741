"""
Message snapshot cache.

The gateway adapter owns and mutates the cache: snapshots are stored as
create/update events are observed and discarded once a deletion has been
routed. Everything else only reads it through MessageCache.lookup().
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional, Protocol, Tuple

from shared.audit.events import MessageSnapshot
from shared.logging.logger import get_logger

log = get_logger("discord.cache")

CacheKey = Tuple[int, int]


class MessageCache(Protocol):
    def lookup(
        self,
        channel_id: int,
        message_id: int,
    ) -> Tuple[Optional[MessageSnapshot], bool]:
        ...


class SnapshotCache:
    """
    Bounded, least-recently-stored snapshot cache keyed by (channel, message).

    A max_size of 0 disables caching entirely; every lookup then misses.
    """

    def __init__(self, max_size: int = 1000):
        if max_size < 0:
            raise ValueError("max_size must not be negative")

        self._max_size = max_size
        self._entries: "OrderedDict[CacheKey, MessageSnapshot]" = OrderedDict()
        self._lock = threading.Lock()

    # --------------------------------------------------
    # Read side
    # --------------------------------------------------

    def lookup(
        self,
        channel_id: int,
        message_id: int,
    ) -> Tuple[Optional[MessageSnapshot], bool]:
        with self._lock:
            snapshot = self._entries.get((int(channel_id), int(message_id)))

        if snapshot is None:
            return None, False
        return snapshot, True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        channel_id, message_id = key
        with self._lock:
            return (int(channel_id), int(message_id)) in self._entries

    @property
    def max_size(self) -> int:
        return self._max_size

    # --------------------------------------------------
    # Write side (gateway adapter only)
    # --------------------------------------------------

    def store(
        self,
        channel_id: int,
        message_id: int,
        snapshot: MessageSnapshot,
    ) -> None:
        if self._max_size == 0:
            return

        key = (int(channel_id), int(message_id))
        with self._lock:
            self._entries[key] = snapshot
            self._entries.move_to_end(key)

            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                log.debug(f"Evicted cached message {evicted[1]} (channel {evicted[0]})")

    def discard(self, channel_id: int, message_id: int) -> bool:
        with self._lock:
            return self._entries.pop((int(channel_id), int(message_id)), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


__all__ = ["MessageCache", "SnapshotCache"]
