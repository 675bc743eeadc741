"""
Audit Runtime Lifecycle

Owns process-wide cancellation and the teardown order of one run.

States:
    STARTING -> CONNECTED -> SHUTTING_DOWN -> TERMINATED

- cancel(cause) moves any live state to SHUTTING_DOWN and records why
  (ShutdownRequested for signals, ConnectionLost for gateway failures);
  only the first cause is kept
- cleanup actions are kept on an explicit stack and drained exactly once,
  last registered first; a failing action is logged and the rest still run

This module does NOT:
- Start asyncio tasks
- Own the Discord client
- Perform network I/O
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from shared.errors import ConnectionLost, ShutdownRequested
from shared.logging.logger import get_logger

log = get_logger("audit.runtime.lifecycle")

CleanupAction = Callable[[], None]


class LifecycleState(Enum):
    STARTING = "starting"
    CONNECTED = "connected"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class LifecycleManager:
    def __init__(self):
        self._state = LifecycleState.STARTING
        self._cause: Optional[BaseException] = None
        self._cancelled = asyncio.Event()
        self._cleanup: List[Tuple[str, CleanupAction]] = []
        self._tearing_down = False

        self._started_at: datetime = datetime.now(timezone.utc)
        self._connected_at: Optional[datetime] = None
        self._cancelled_at: Optional[datetime] = None
        self._terminated_at: Optional[datetime] = None

    # --------------------------------------------------
    # Transitions
    # --------------------------------------------------

    def mark_connected(self) -> None:
        """
        Gateway session established. Ignored once shutdown has begun.
        """
        if self._state is not LifecycleState.STARTING:
            return

        self._state = LifecycleState.CONNECTED
        self._connected_at = datetime.now(timezone.utc)
        log.info("connected")

    def cancel(self, cause: Optional[BaseException] = None) -> bool:
        """
        Begin shutting down. Returns False if shutdown had already begun.
        """
        if self._state in (LifecycleState.SHUTTING_DOWN, LifecycleState.TERMINATED):
            return False

        self._cause = cause if cause is not None else ShutdownRequested()
        self._state = LifecycleState.SHUTTING_DOWN
        self._cancelled_at = datetime.now(timezone.utc)
        self._cancelled.set()

        if isinstance(self._cause, ConnectionLost):
            log.error(f"Shutting down after connection failure: {self._cause.error}")
        else:
            log.info(f"Shutting down: {self._cause}")
        return True

    async def wait_cancelled(self) -> BaseException:
        await self._cancelled.wait()
        return self._cause

    # --------------------------------------------------
    # Cleanup stack
    # --------------------------------------------------

    def register_cleanup(self, name: str, action: CleanupAction) -> None:
        if self._tearing_down or self._state is LifecycleState.TERMINATED:
            raise RuntimeError(f"Cannot register cleanup {name!r} after teardown")
        if not callable(action):
            raise TypeError(f"Cleanup action {name!r} is not callable")

        self._cleanup.append((name, action))
        log.debug(f"Cleanup registered: {name}")

    def teardown(self) -> List[str]:
        """
        Run every cleanup action once, in reverse registration order.

        Returns the names of the actions that failed. Calling it again is
        a no-op. Nothing here waits on the cancellation event.
        """
        if self._state is LifecycleState.TERMINATED:
            return []

        if self._state is not LifecycleState.SHUTTING_DOWN:
            self.cancel(ShutdownRequested("teardown without explicit shutdown"))

        self._tearing_down = True
        failed: List[str] = []
        while self._cleanup:
            name, action = self._cleanup.pop()
            try:
                action()
                log.debug(f"Cleanup finished: {name}")
            except Exception as e:
                failed.append(name)
                log.warning(f"Cleanup action {name!r} failed: {e}")

        self._state = LifecycleState.TERMINATED
        self._terminated_at = datetime.now(timezone.utc)
        log.info("closed")
        return failed

    # --------------------------------------------------
    # Introspection
    # --------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def connection_failed(self) -> bool:
        return isinstance(self._cause, ConnectionLost)

    @property
    def pending_cleanup(self) -> List[str]:
        return [name for name, _ in self._cleanup]

    def snapshot(self) -> Dict[str, Any]:
        """
        Return a structured snapshot of lifecycle state.
        """
        def iso(ts: Optional[datetime]) -> Optional[str]:
            return ts.isoformat() if ts else None

        return {
            "state": self._state.value,
            "cause": str(self._cause) if self._cause else None,
            "started_at": iso(self._started_at),
            "connected_at": iso(self._connected_at),
            "cancelled_at": iso(self._cancelled_at),
            "terminated_at": iso(self._terminated_at),
            "pending_cleanup": self.pending_cleanup,
        }


__all__ = ["LifecycleManager", "LifecycleState", "CleanupAction"]
