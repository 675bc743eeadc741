"""
Audit Runtime Supervisor

Owns one run of the audit bridge.

This supervisor wires:
- the Discord gateway adapter (event source, cache owner)
- the event router (event -> audit records)
- the record emitter (records -> sinks)
- the lifecycle manager (cancellation + cleanup)

Shutdown order:
1. cancel the lifecycle (signal or gateway failure), so handlers stop emitting
2. close the gateway and wait for the session task to return
3. register the sink close action (the writer is idle from here on)
4. drain the cleanup stack

IMPORTANT:
- MUST NOT create its own event loop
- MUST NOT install signal handlers
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from shared.audit.events import LifecycleEvent
from shared.config.audit import AuditConfig
from shared.errors import ConnectionLost, ShutdownRequested
from shared.logging.logger import get_logger

from services.audit.emitter import RecordEmitter
from services.audit.router import EventRouter
from services.audit.runtime.lifecycle import LifecycleManager, LifecycleState
from services.audit.sinks import build_sinks
from services.discord.cache import SnapshotCache
from services.discord.client import DiscordGateway

log = get_logger("audit.supervisor")

EXIT_OK = 0
EXIT_CONNECTION_FAILED = 1

SESSION_STOP_TIMEOUT = 10


class AuditSupervisor:
    """
    Owns the audit runtime lifecycle.

    Contract:
    - run(stop_event) is awaitable and returns the process exit code
    - handle_event() is the only gateway subscriber
    """

    def __init__(
        self,
        config: AuditConfig,
        *,
        gateway: Optional[DiscordGateway] = None,
        emitter: Optional[RecordEmitter] = None,
        cache: Optional[SnapshotCache] = None,
        lifecycle: Optional[LifecycleManager] = None,
    ):
        self._config = config
        self.lifecycle = lifecycle or LifecycleManager()

        if gateway is not None:
            self.cache = gateway.cache
        else:
            self.cache = cache if cache is not None else SnapshotCache(config.cache_size)

        self.router = EventRouter(self.cache)
        self.emitter = emitter or RecordEmitter(build_sinks(config))

        self.gateway = gateway or DiscordGateway(
            config.gateway_token,
            cache=self.cache,
            on_connected=self.lifecycle.mark_connected,
        )
        self.gateway.subscribe(self.handle_event)

        self._emitted = 0
        self._dropped = 0

        self.lifecycle.register_cleanup("clear message cache", self.cache.clear)
        self.lifecycle.register_cleanup("log run summary", self._log_summary)

    # --------------------------------------------------
    # Event path
    # --------------------------------------------------

    def handle_event(self, event: LifecycleEvent) -> None:
        if self.lifecycle.cancelled:
            self._dropped += 1
            log.debug(f"Dropping {type(event).__name__}; shutdown in progress")
            return

        for record in self.router.route(event):
            self.emitter.emit(record)
            self._emitted += 1

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def run(self, stop_event: asyncio.Event) -> int:
        """
        Run the gateway session until stop_event is set or the session ends.
        """
        log.info("Starting audit supervisor")

        session = asyncio.create_task(self.gateway.run())
        stopper = asyncio.create_task(stop_event.wait())

        try:
            done, _ = await asyncio.wait(
                {session, stopper},
                return_when=asyncio.FIRST_COMPLETED,
            )

            if session in done:
                error = None if session.cancelled() else session.exception()
                if error is not None:
                    self.lifecycle.cancel(ConnectionLost(error))
                else:
                    self.lifecycle.cancel(ShutdownRequested("gateway session ended"))
            else:
                self.lifecycle.cancel(ShutdownRequested("interrupt signal received"))

        finally:
            # Reached on cancellation of run() itself as well
            self.lifecycle.cancel(ShutdownRequested("supervisor cancelled"))

            stopper.cancel()
            await self._stop_session(session)
            await asyncio.gather(stopper, return_exceptions=True)

            self.lifecycle.register_cleanup("close audit sinks", self.emitter.close)
            failed = self.lifecycle.teardown()
            if failed:
                log.warning(f"Cleanup finished with failures: {', '.join(failed)}")

        if self.lifecycle.connection_failed:
            return EXIT_CONNECTION_FAILED
        return EXIT_OK

    async def _stop_session(self, session: asyncio.Task) -> None:
        """
        Close the gateway and wait for its run loop to return.
        """
        try:
            await self.gateway.shutdown()
        except Exception as e:
            log.warning(f"Discord gateway shutdown error ignored: {e}")

        if not session.done():
            await asyncio.wait({session}, timeout=SESSION_STOP_TIMEOUT)
            if not session.done():
                log.warning("Discord gateway did not stop in time; cancelling")
                session.cancel()

        results = await asyncio.gather(session, return_exceptions=True)
        error = results[0]
        if isinstance(error, BaseException) and not isinstance(error, asyncio.CancelledError):
            if not self.lifecycle.connection_failed:
                log.warning(f"Discord gateway ended with error during shutdown: {error}")

    # --------------------------------------------------

    def _log_summary(self) -> None:
        log.info(
            f"Audit run finished: emitted={self._emitted} "
            f"dropped={self._dropped} cause={self.lifecycle.cause}"
        )

    # --------------------------------------------------
    # Read-only Introspection
    # --------------------------------------------------

    @property
    def emitted(self) -> int:
        return self._emitted

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def running(self) -> bool:
        return self.lifecycle.state in (LifecycleState.STARTING, LifecycleState.CONNECTED)

    def snapshot(self) -> Dict[str, Any]:
        """
        Full supervisor state snapshot for diagnostics.
        """
        return {
            "running": self.running,
            "connected": self.gateway.ready,
            "cached_messages": len(self.cache),
            "emitted": self._emitted,
            "dropped": self._dropped,
            "lifecycle": self.lifecycle.snapshot(),
        }
