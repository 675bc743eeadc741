"""Structured audit record formatting.

Audit records are rendered as one JSON object per line. The generic level
field is renamed for the log collector through ``FIELD_RENAME_MAP``; this is
the only schema transformation applied to records.

Example output:
    {
        "severity": "INFO",
        "message": "delete",
        "action": "delete",
        "id": 42,
        "channel": 7,
        "guild": 1,
        "time": "2026-10-19T10:30:00.123456+00:00"
    }
"""

from __future__ import annotations

from pythonjsonlogger.json import JsonFormatter

# Fields every audit line carries, ahead of the record payload
RECORD_BASE_FIELDS = ("levelname", "message")

# Collector compatibility: Graylog expects "severity", not "level"
FIELD_RENAME_MAP = {
    "levelname": "severity",
}

TIMESTAMP_FIELD = "time"


def create_record_formatter() -> JsonFormatter:
    """Build the JSON formatter shared by every audit sink."""
    format_string = " ".join(f"%({field})s" for field in RECORD_BASE_FIELDS)

    return JsonFormatter(
        format_string,
        rename_fields=FIELD_RENAME_MAP,
        timestamp=TIMESTAMP_FIELD,
    )


__all__ = [
    "FIELD_RENAME_MAP",
    "RECORD_BASE_FIELDS",
    "TIMESTAMP_FIELD",
    "create_record_formatter",
]
