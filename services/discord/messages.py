"""Conversion of discord.py objects and raw gateway payloads into snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shared.audit.events import MessageSnapshot


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        parsed = datetime.fromisoformat(str(raw))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _enum_value(value: Any) -> int:
    """
    Return the integer behind discord.py enums / flag sets (or plain ints).
    """
    if value is None:
        return 0
    raw = getattr(value, "value", value)
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def snapshot_from_message(message: Any) -> MessageSnapshot:
    """
    Build a snapshot from a discord.Message.
    """
    author = getattr(message, "author", None)
    return MessageSnapshot(
        author=getattr(author, "name", "") or "",
        content=getattr(message, "content", "") or "",
        type=_enum_value(getattr(message, "type", 0)),
        flags=_enum_value(getattr(message, "flags", 0)),
        timestamp=getattr(message, "created_at", None),
        edited=getattr(message, "edited_at", None),
    )


def snapshot_from_payload(
    data: Dict[str, Any],
    previous: Optional[MessageSnapshot] = None,
) -> MessageSnapshot:
    """
    Build a snapshot from a raw MESSAGE_UPDATE payload.

    Partial payloads (e.g. embed-only edits) fall back to the previously
    known snapshot for every key they omit.
    """
    author_raw = data.get("author")
    if isinstance(author_raw, dict):
        author = author_raw.get("username") or ""
    else:
        author = previous.author if previous else ""

    def pick(key: str, fallback: Any) -> Any:
        return data[key] if key in data else fallback

    return MessageSnapshot(
        author=author,
        content=pick("content", previous.content if previous else "") or "",
        type=_enum_value(pick("type", previous.type if previous else 0)),
        flags=_enum_value(pick("flags", previous.flags if previous else 0)),
        timestamp=_parse_timestamp(pick("timestamp", previous.timestamp if previous else None)),
        edited=_parse_timestamp(pick("edited_timestamp", previous.edited if previous else None)),
    )


def guild_id_of(obj: Any) -> int:
    """
    Guild id of a message or raw payload; 0 for direct messages.
    """
    guild_id = getattr(obj, "guild_id", None)
    if guild_id is None:
        guild = getattr(obj, "guild", None)
        guild_id = getattr(guild, "id", None)
    return int(guild_id or 0)


def channel_id_of(message: Any) -> int:
    channel_id = getattr(message, "channel_id", None)
    if channel_id is None:
        channel_id = getattr(getattr(message, "channel", None), "id", 0)
    return int(channel_id or 0)


__all__ = [
    "snapshot_from_message",
    "snapshot_from_payload",
    "guild_id_of",
    "channel_id_of",
]
