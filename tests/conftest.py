"""Shared pytest fixtures for the audit bridge test suite."""

import os
from datetime import datetime, timezone

# Milestone loggers write to stderr only during tests
os.environ["AUDIT_LOG_DIR"] = ""

import pytest

from shared.audit.events import MessageSnapshot
from tests.fakes import CollectingSink


@pytest.fixture
def snapshot():
    return MessageSnapshot(
        author="alice",
        content="hi",
        type=0,
        flags=4,
        timestamp=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        edited=None,
    )


@pytest.fixture
def sink():
    return CollectingSink()
