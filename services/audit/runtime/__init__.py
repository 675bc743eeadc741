"""
Audit Runtime Package

This package defines the runtime of the Discord audit bridge.

Contained responsibilities:
- Runtime supervision (start / stop orchestration)
- Lifecycle state tracking, cancellation cause and cleanup ordering

IMPORTANT:
- Importing this package MUST NOT start the Discord client
- Importing this package MUST NOT create asyncio tasks
- All runtime execution is owned by AuditSupervisor
"""

from services.audit.runtime.lifecycle import LifecycleManager, LifecycleState
from services.audit.runtime.supervisor import AuditSupervisor

__all__ = [
    "AuditSupervisor",
    "LifecycleManager",
    "LifecycleState",
]
