"""
Record Emitter (Audit Pipeline)

Writes audit records to every configured sink writer, synchronously.

- one write per sink per record, a single attempt each
- a failing sink is logged as a warning and skipped; other sinks still
  receive the record
- emission is serialized so sinks never see interleaved writes or a write
  racing close()
"""

from __future__ import annotations

import logging
import threading
from typing import List, Sequence

from shared.audit.events import AuditRecord
from shared.logging.logger import get_logger

log = get_logger("audit.emitter")

RECORD_LOGGER_NAME = "audit.records"


class RecordEmitter:
    def __init__(self, sinks: Sequence[logging.Handler]):
        self._sinks: List[logging.Handler] = list(sinks)
        self._lock = threading.Lock()
        self._closed = False

        # Only used as a LogRecord factory; never attached to a handler
        self._factory = logging.getLogger(RECORD_LOGGER_NAME)

    # --------------------------------------------------

    def _make_entry(self, record: AuditRecord) -> logging.LogRecord:
        return self._factory.makeRecord(
            RECORD_LOGGER_NAME,
            logging.INFO,
            "(audit)",
            0,
            record.action,
            None,
            None,
            extra=record.fields(),
        )

    def emit(self, record: AuditRecord) -> int:
        """
        Write one record to all sinks. Returns the number of sinks written.
        """
        entry = self._make_entry(record)
        written = 0

        with self._lock:
            if self._closed:
                log.warning(f"Emitter closed; dropping {record.action} record for message {record.message_id}")
                return 0

            for sink in self._sinks:
                try:
                    sink.handle(entry)
                    written += 1
                except Exception as e:
                    log.warning(
                        f"Audit sink write failed ({sink.get_name() or type(sink).__name__}): {e}"
                    )

        return written

    # --------------------------------------------------

    def close(self) -> None:
        """
        Flush and close every sink. Safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

            for sink in self._sinks:
                try:
                    sink.flush()
                    sink.close()
                except Exception as e:
                    log.warning(
                        f"Failed to close audit sink ({sink.get_name() or type(sink).__name__}): {e}"
                    )

        log.info("Audit sinks closed")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sinks(self) -> List[logging.Handler]:
        return list(self._sinks)


__all__ = ["RecordEmitter", "RECORD_LOGGER_NAME"]
