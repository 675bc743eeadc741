"""Record emission: field schema, severity rename, sink failure isolation."""

import io
import json
import threading
import time

import pytest

from services.audit.emitter import RecordEmitter
from services.audit.sinks import StdoutSink
from shared.audit.events import RECORD_FIELDS, AuditRecord
from shared.errors import SinkWriteError
from shared.logging.records import FIELD_RENAME_MAP
from tests.fakes import CollectingSink, FailingSink


def test_full_record_schema(sink, snapshot):
    emitter = RecordEmitter([sink])

    written = emitter.emit(AuditRecord("create", 42, 7, 1, snapshot))

    assert written == 1
    (line,) = sink.lines
    assert line["severity"] == "INFO"
    assert "levelname" not in line
    assert line["message"] == "create"
    assert line["action"] == "create"
    assert (line["id"], line["channel"], line["guild"]) == (42, 7, 1)
    assert line["author"] == "alice"
    assert line["content"] == "hi"
    assert line["type"] == 0
    assert line["flags"] == 4
    assert line["timestamp"] == "2026-10-19T12:00:00+00:00"
    assert "time" in line


def test_missing_edit_timestamp_is_zero_instant(sink, snapshot):
    RecordEmitter([sink]).emit(AuditRecord("create", 42, 7, 1, snapshot))

    assert sink.lines[0]["edited"] == "0001-01-01T00:00:00+00:00"


def test_minimal_record_has_identifiers_only(sink):
    RecordEmitter([sink]).emit(AuditRecord("delete", 42, 7, 1))

    line = sink.lines[0]
    assert line["action"] == "delete"
    assert (line["id"], line["channel"], line["guild"]) == (42, 7, 1)
    for key in ("author", "content", "type", "flags", "timestamp", "edited"):
        assert key not in line


def test_rename_map_only_touches_level():
    assert FIELD_RENAME_MAP == {"levelname": "severity"}


def test_failing_sink_does_not_block_others(snapshot):
    broken = FailingSink()
    healthy = CollectingSink()
    emitter = RecordEmitter([broken, healthy])

    written = emitter.emit(AuditRecord("create", 1, 2, 3, snapshot))

    assert written == 1
    assert broken.attempts == 1
    assert len(healthy.lines) == 1


def test_failed_write_is_not_retried(snapshot):
    broken = FailingSink()
    emitter = RecordEmitter([broken])

    emitter.emit(AuditRecord("delete", 1, 2, 3))
    emitter.emit(AuditRecord("delete", 4, 2, 3))

    assert broken.attempts == 2


def test_close_closes_every_sink_once(sink):
    emitter = RecordEmitter([sink])

    emitter.close()
    emitter.close()

    assert sink.closed
    assert emitter.closed


def test_emit_after_close_is_dropped(sink):
    emitter = RecordEmitter([sink])
    emitter.close()

    assert emitter.emit(AuditRecord("delete", 1, 2, 3)) == 0
    assert sink.lines == []


class TestStdoutSink:
    def test_writes_one_json_line_per_record(self, snapshot):
        stream = io.StringIO()
        emitter = RecordEmitter([StdoutSink(stream)])

        emitter.emit(AuditRecord("update", 42, 7, 1, snapshot))
        emitter.emit(AuditRecord("delete", 42, 7, 1))

        lines = stream.getvalue().splitlines()
        assert [json.loads(line)["action"] for line in lines] == ["update", "delete"]

    def test_broken_stream_raises_sink_write_error(self):
        class BrokenStream(io.StringIO):
            def write(self, s):
                raise OSError("pipe closed")

        sink = StdoutSink(BrokenStream())
        entry = RecordEmitter([])._make_entry(AuditRecord("delete", 1, 2, 3))

        with pytest.raises(SinkWriteError):
            sink.handle(entry)


def test_field_order_puts_time_last(sink, snapshot):
    RecordEmitter([sink]).emit(AuditRecord("create", 42, 7, 1, snapshot))

    keys = list(sink.lines[0])

    assert keys[:2] == ["severity", "message"]
    assert keys[-1] == "time"
    assert [k for k in keys if k in RECORD_FIELDS] == list(RECORD_FIELDS)


class TestConcurrentEmission:
    def test_parallel_emits_are_serialized_and_complete(self, snapshot):
        class OverlapTrackingSink(CollectingSink):
            def __init__(self):
                super().__init__()
                self.active = 0
                self.max_active = 0

            def emit(self, record):
                self.active += 1
                self.max_active = max(self.max_active, self.active)
                time.sleep(0)
                super().emit(record)
                self.active -= 1

        sink = OverlapTrackingSink()
        emitter = RecordEmitter([sink])

        def worker(channel_id):
            for message_id in range(200):
                emitter.emit(AuditRecord("create", message_id, channel_id, 1, snapshot))

        threads = [threading.Thread(target=worker, args=(channel,)) for channel in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(sink.lines) == 1600
        assert sink.max_active == 1
        assert {(line["channel"], line["id"]) for line in sink.lines} == {
            (channel, message_id) for channel in range(8) for message_id in range(200)
        }

    def test_close_waits_for_in_flight_write(self):
        order = []
        entered = threading.Event()
        release = threading.Event()

        class SlowSink(CollectingSink):
            def emit(self, record):
                entered.set()
                release.wait(timeout=5)
                super().emit(record)
                order.append("write")

            def close(self):
                order.append("close")
                super().close()

        sink = SlowSink()
        emitter = RecordEmitter([sink])

        writer = threading.Thread(target=emitter.emit, args=(AuditRecord("delete", 1, 2, 3),))
        writer.start()
        assert entered.wait(timeout=5)

        closer = threading.Thread(target=emitter.close)
        closer.start()
        closer.join(timeout=0.1)
        assert closer.is_alive()
        assert order == []

        release.set()
        writer.join(timeout=5)
        closer.join(timeout=5)

        assert order == ["write", "close"]
        assert emitter.emit(AuditRecord("delete", 4, 2, 3)) == 0
        assert len(sink.lines) == 1
