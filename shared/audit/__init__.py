"""Audit event schema shared by the gateway adapter and the audit pipeline."""

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

__all__ = [
    "ACTION_CREATE",
    "ACTION_UPDATE",
    "ACTION_DELETE",
    "AuditRecord",
    "LifecycleEvent",
    "MessageCreated",
    "MessageUpdated",
    "MessageDeleted",
    "MessagesBulkDeleted",
    "MessageSnapshot",
]
