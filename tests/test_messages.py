from datetime import datetime, timezone
from types import SimpleNamespace

from services.discord.messages import (
    channel_id_of,
    guild_id_of,
    snapshot_from_message,
    snapshot_from_payload,
)
from shared.audit.events import MessageSnapshot


def test_snapshot_from_full_update_payload():
    data = {
        "author": {"username": "alice", "id": "1"},
        "content": "hello",
        "type": 19,
        "flags": 4,
        "timestamp": "2026-10-19T12:00:00.123000+00:00",
        "edited_timestamp": None,
    }

    snapshot = snapshot_from_payload(data)

    assert snapshot.author == "alice"
    assert snapshot.content == "hello"
    assert (snapshot.type, snapshot.flags) == (19, 4)
    assert snapshot.timestamp == datetime(2026, 10, 19, 12, 0, 0, 123000, tzinfo=timezone.utc)
    assert snapshot.edited is None


def test_payload_without_previous_falls_back_to_empty_values():
    snapshot = snapshot_from_payload({"content": "x"})

    assert snapshot == MessageSnapshot(author="", content="x")


def test_unparseable_timestamp_is_dropped():
    snapshot = snapshot_from_payload({"timestamp": "yesterday-ish"})

    assert snapshot.timestamp is None


def test_snapshot_from_message_reads_enum_values():
    message = SimpleNamespace(
        author=SimpleNamespace(name="bob"),
        content=None,
        type=SimpleNamespace(value=7),
        flags=SimpleNamespace(value=64),
        created_at=None,
        edited_at=None,
    )

    snapshot = snapshot_from_message(message)

    assert snapshot == MessageSnapshot(author="bob", content="", type=7, flags=64)


def test_identifier_helpers():
    payload = SimpleNamespace(guild_id=None, channel_id=5)
    message = SimpleNamespace(guild=SimpleNamespace(id=9), channel=SimpleNamespace(id=3))

    assert guild_id_of(payload) == 0
    assert guild_id_of(message) == 9
    assert channel_id_of(payload) == 5
    assert channel_id_of(message) == 3
