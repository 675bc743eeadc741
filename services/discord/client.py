"""
Discord Gateway Adapter

This module owns the Discord connection itself.
It is intentionally minimal and lifecycle-focused.

Responsibilities:
- connect to Discord and keep the session alive (discord.py reconnects)
- translate raw message events into typed lifecycle events
- keep the message snapshot cache populated for later deletions
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST be controlled by AuditSupervisor
- This client MUST NOT create its own event loop
- Subscribers are plain callables; they MUST NOT block the loop
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Tuple, Type

import discord

from shared.audit.events import (
    LifecycleEvent,
    MessageCreated,
    MessageDeleted,
    MessagesBulkDeleted,
    MessageUpdated,
)
from shared.logging.logger import get_logger

from services.discord.cache import SnapshotCache
from services.discord.messages import (
    channel_id_of,
    guild_id_of,
    snapshot_from_message,
    snapshot_from_payload,
)

log = get_logger("discord.client")

EventHandler = Callable[[LifecycleEvent], None]

LIFECYCLE_EVENT_TYPES: Tuple[Type, ...] = (
    MessageCreated,
    MessageUpdated,
    MessageDeleted,
    MessagesBulkDeleted,
)


class DiscordGateway:
    """
    Thin wrapper around discord.py Client.

    This class provides:
    - async run() entrypoint (blocks until the session ends)
    - async shutdown()
    - lifecycle milestone logging
    - typed event subscription
    """

    def __init__(
        self,
        token: str,
        *,
        cache: Optional[SnapshotCache] = None,
        on_connected: Optional[Callable[[], None]] = None,
    ):
        if not token:
            raise RuntimeError("Discord token is required")

        self._token: str = token
        self._client: Optional[discord.Client] = None
        self._ready_event = asyncio.Event()
        self._on_connected = on_connected
        self._subscribers: List[Tuple[Tuple[Type, ...], EventHandler]] = []

        self.cache = cache if cache is not None else SnapshotCache()

    # --------------------------------------------------
    # Subscription
    # --------------------------------------------------

    def subscribe(self, handler: EventHandler, *event_types: Type) -> None:
        """
        Register a handler for the given event variants (all four if omitted).
        """
        types = tuple(event_types) or LIFECYCLE_EVENT_TYPES
        for event_type in types:
            if event_type not in LIFECYCLE_EVENT_TYPES:
                raise TypeError(f"Not a lifecycle event type: {event_type!r}")
        self._subscribers.append((types, handler))

    def _dispatch(self, event: LifecycleEvent) -> None:
        for types, handler in self._subscribers:
            if not isinstance(event, types):
                continue
            try:
                handler(event)
            except Exception as e:
                log.error(f"Event handler failed for {type(event).__name__}: {e}")

    # --------------------------------------------------
    # Raw event translation
    # --------------------------------------------------

    def handle_message(self, message) -> None:
        channel_id = channel_id_of(message)
        snapshot = snapshot_from_message(message)
        self.cache.store(channel_id, message.id, snapshot)

        self._dispatch(MessageCreated(
            message_id=int(message.id),
            channel_id=channel_id,
            guild_id=guild_id_of(message),
            message=snapshot,
        ))

    def handle_message_edit(self, payload) -> None:
        channel_id = int(payload.channel_id)
        message_id = int(payload.message_id)

        previous, _ = self.cache.lookup(channel_id, message_id)
        snapshot = snapshot_from_payload(payload.data or {}, previous)
        self.cache.store(channel_id, message_id, snapshot)

        self._dispatch(MessageUpdated(
            message_id=message_id,
            channel_id=channel_id,
            guild_id=guild_id_of(payload),
            message=snapshot,
        ))

    def handle_message_delete(self, payload) -> None:
        channel_id = int(payload.channel_id)
        message_id = int(payload.message_id)

        self._dispatch(MessageDeleted(
            message_id=message_id,
            channel_id=channel_id,
            guild_id=guild_id_of(payload),
        ))
        self.cache.discard(channel_id, message_id)

    def handle_bulk_message_delete(self, payload) -> None:
        channel_id = int(payload.channel_id)
        # discord.py hands over a set; snowflakes sort chronologically
        message_ids = tuple(sorted(int(i) for i in payload.message_ids))

        self._dispatch(MessagesBulkDeleted(
            message_ids=message_ids,
            channel_id=channel_id,
            guild_id=guild_id_of(payload),
        ))
        for message_id in message_ids:
            self.cache.discard(channel_id, message_id)

    # --------------------------------------------------

    def _build_client(self) -> discord.Client:
        """
        Construct the discord.py Client instance.

        NOTE:
        - discord.py's own message cache is disabled; SnapshotCache replaces it
        - raw events are used so uncached messages are still reported
        """

        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.messages = True
        intents.message_content = True

        client = discord.Client(
            intents=intents,
            max_messages=None,
        )

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @client.event
        async def on_ready():
            log.info(
                f"Discord connected as {client.user} "
                f"guilds={len(client.guilds)}"
            )
            self._ready_event.set()
            if self._on_connected is not None:
                self._on_connected()

        @client.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @client.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        # --------------------------------------------------
        # Message Events
        # --------------------------------------------------

        @client.event
        async def on_message(message: discord.Message):
            self.handle_message(message)

        @client.event
        async def on_raw_message_edit(payload: discord.RawMessageUpdateEvent):
            self.handle_message_edit(payload)

        @client.event
        async def on_raw_message_delete(payload: discord.RawMessageDeleteEvent):
            self.handle_message_delete(payload)

        @client.event
        async def on_raw_bulk_message_delete(payload: discord.RawBulkMessageDeleteEvent):
            self.handle_bulk_message_delete(payload)

        return client

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord session and block until it ends.

        Returns normally after shutdown(); raises on fatal session errors.
        """
        if self._client is not None:
            raise RuntimeError("Discord gateway already running")

        log.info("Connecting to Discord...")

        self._client = self._build_client()

        try:
            await self._client.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord gateway task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord gateway crashed: {e}")
            raise
        finally:
            log.info("Discord gateway closed")

    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully close the Discord connection.
        """
        if not self._client:
            return

        log.info("Closing Discord connection")

        try:
            await self._client.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._client = None
        self._ready_event.clear()

    # --------------------------------------------------

    @property
    def client(self) -> Optional[discord.Client]:
        """
        Expose the client instance (read-only) for supervisor hooks.
        """
        return self._client

    @property
    def ready(self) -> bool:
        return self._ready_event.is_set()
