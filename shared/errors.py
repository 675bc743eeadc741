"""Exception hierarchy for the audit bridge runtime."""

from __future__ import annotations


class AuditBridgeError(Exception):
    """Base class for all audit bridge errors."""


class ConfigError(AuditBridgeError):
    """Raised when the runtime configuration is unusable."""


class SinkWriteError(AuditBridgeError):
    """Raised by a sink writer when a record could not be written."""


class ShutdownRequested(AuditBridgeError):
    """Cancellation cause for an operator-initiated shutdown (signal)."""

    def __init__(self, reason: str = "shutdown requested"):
        super().__init__(reason)
        self.reason = reason


class ConnectionLost(AuditBridgeError):
    """Cancellation cause for a fatal gateway session failure."""

    def __init__(self, error: BaseException):
        super().__init__(f"gateway connection lost: {error}")
        self.error = error


__all__ = [
    "AuditBridgeError",
    "ConfigError",
    "SinkWriteError",
    "ShutdownRequested",
    "ConnectionLost",
]
