"""
Audit sink writers.

Each sink is a logging.Handler carrying the shared JSON record formatter:
- stdout: one JSON line per record
- graylog: GELF over UDP (graypy); the JSON line becomes the short message
  and every record field is also attached as a GELF additional field

Sinks report write failures by raising SinkWriteError instead of printing a
traceback, so the emitter can log a warning and move on.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, List, Optional, TextIO

import graypy

from shared.audit.events import RECORD_FIELDS
from shared.config.audit import AuditConfig
from shared.errors import SinkWriteError
from shared.logging.logger import get_logger
from shared.logging.records import create_record_formatter

log = get_logger("audit.sinks")

GELF_FACILITY = "discord-audit"


class _RaiseOnErrorMixin:
    """
    Turn logging's handleError() hook into an exception for the caller.
    """

    def handleError(self, record: logging.LogRecord) -> None:
        error = sys.exc_info()[1]

        sock = getattr(self, "sock", None)
        if sock is not None:
            sock.close()
            self.sock = None

        if error is None:
            return
        raise SinkWriteError(f"{self.name or type(self).__name__}: {error}") from error


class StdoutSink(_RaiseOnErrorMixin, logging.StreamHandler):
    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__(stream if stream is not None else sys.stdout)
        self.set_name("stdout")
        self.setFormatter(create_record_formatter())


class GelfSink(_RaiseOnErrorMixin, graypy.GELFUDPHandler):
    def __init__(self, host: str, port: int):
        super().__init__(
            host,
            port,
            debugging_fields=False,
            extra_fields=True,
            facility=GELF_FACILITY,
        )
        self.set_name(f"graylog({host}:{port})")
        self.setFormatter(create_record_formatter())

    def _make_gelf_dict(self, record: logging.LogRecord) -> Dict[str, Any]:
        gelf = super()._make_gelf_dict(record)

        # graypy copies any unknown LogRecord attribute (_logger, _stack_info,
        # _taskName); only audit fields go out as additional fields
        return {
            key: value
            for key, value in gelf.items()
            if not key.startswith("_") or key[1:] in RECORD_FIELDS
        }


def build_sinks(config: AuditConfig) -> List[logging.Handler]:
    sinks: List[logging.Handler] = []

    if config.stdout_enabled:
        sinks.append(StdoutSink())

    if config.graylog_address:
        log.info(f"connecting to graylog: {config.graylog_address}")
        sinks.append(GelfSink(config.graylog_host, config.graylog_port))

    if not sinks:
        log.warning("No audit sinks configured; records will be dropped")

    return sinks


__all__ = ["StdoutSink", "GelfSink", "build_sinks", "GELF_FACILITY"]
