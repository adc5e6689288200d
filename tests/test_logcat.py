"""Tests for the binary log stream decoder and the log service."""

from __future__ import annotations

import struct

import pytest

from adb_host_mcp.exceptions import AdbTransportError
from adb_host_mcp.models.device import Device
from adb_host_mcp.models.log_entry import AndroidLogEntry, LogEntry, LogId
from adb_host_mcp.protocol.logcat import LogReader, decode_entry, parse_text_payload
from adb_host_mcp.streaming import CancellationToken, StreamState

from fakes import make_client, okay

DEVICE = Device(serial="emulator-5554")


def text_payload(priority: int, tag: str, message: str) -> bytes:
    return bytes([priority]) + tag.encode() + b"\x00" + message.encode() + b"\x00"


def entry_v1(payload: bytes, pid=100, tid=101, sec=1_700_000_000, nsec=5) -> bytes:
    return struct.pack("<HHiIII", len(payload), 0, pid, tid, sec, nsec) + payload


def entry_v4(payload: bytes, lid: int, uid=1000, pid=200, tid=201, sec=1_700_000_001, nsec=0) -> bytes:
    return struct.pack("<HHiIIIII", len(payload), 28, pid, tid, sec, nsec, lid, uid) + payload


def reader_for(*chunks: bytes) -> LogReader:
    _, server = make_client(list(chunks))
    conn = server(None)
    conn.open()
    return LogReader(conn)


class TestTextPayload:
    def test_parses_priority_tag_message(self):
        assert parse_text_payload(text_payload(4, "ActivityManager", "Start proc")) == (
            4, "ActivityManager", "Start proc",
        )

    def test_missing_tag_terminator(self):
        assert parse_text_payload(b"\x04notag") is None

    def test_too_short(self):
        assert parse_text_payload(b"\x04") is None


class TestDecodeEntry:
    def test_v1_text(self):
        raw = entry_v1(text_payload(6, "AndroidRuntime", "FATAL EXCEPTION"))
        entry = decode_entry(raw[:20], raw[20:])
        assert isinstance(entry, AndroidLogEntry)
        assert entry.pid == 100
        assert entry.tid == 101
        assert entry.log_id is None
        assert entry.uid is None
        assert entry.tag == "AndroidRuntime"
        assert entry.message == "FATAL EXCEPTION"

    def test_v4_events_stays_binary(self):
        payload = b"\x01\x02\x03\x04"
        raw = entry_v4(payload, lid=LogId.EVENTS)
        entry = decode_entry(raw[:28], raw[28:])
        assert type(entry) is LogEntry
        assert entry.log_id == LogId.EVENTS
        assert entry.uid == 1000
        assert entry.data == payload

    def test_timestamp(self):
        raw = entry_v1(b"", sec=0, nsec=500_000_000)
        entry = decode_entry(raw[:20], raw[20:])
        assert entry.timestamp.timestamp() == pytest.approx(0.5)


class TestLogReader:
    def test_reads_entries_in_order(self):
        first = entry_v4(text_payload(4, "a", "one"), lid=LogId.MAIN)
        second = entry_v1(text_payload(5, "b", "two"))
        reader = reader_for(first + second[:7], second[7:])

        assert reader.read_entry().message == "one"
        assert reader.read_entry().message == "two"
        assert reader.read_entry() is None

    def test_end_inside_entry_is_end_of_stream(self):
        raw = entry_v1(text_payload(4, "tag", "cut short"))
        reader = reader_for(raw[:-3])
        assert reader.read_entry() is None

    def test_end_inside_header_is_end_of_stream(self):
        reader = reader_for(entry_v1(b"xx")[:10])
        assert reader.read_entry() is None

    def test_larger_header_skips_unknown_fields(self):
        payload = text_payload(3, "t", "m")
        raw = struct.pack("<HHiIIIII", len(payload), 32, 1, 2, 3, 4, 0, 0) + b"\xff" * 4 + payload
        entry = reader_for(raw).read_entry()
        assert entry.tag == "t"
        assert entry.message == "m"

    def test_header_size_too_small(self):
        reader = reader_for(struct.pack("<HH", 0, 8) + b"\x00" * 16)
        with pytest.raises(AdbTransportError):
            reader.read_entry()


class TestRunLogService:
    def test_delivers_entries_and_completes(self):
        entries = [entry_v4(text_payload(4, "t", str(i)), lid=LogId.SYSTEM) for i in range(3)]
        client, server = make_client([okay() + okay() + b"".join(entries)])
        received = []

        state = client.run_log_service(DEVICE, received.append, LogId.SYSTEM, "crash")

        assert state == StreamState.COMPLETED
        assert [e.message for e in received] == ["0", "1", "2"]
        assert server.last.requests == [
            "host:transport:emulator-5554",
            "shell:logcat -B -b system -b crash",
        ]
        assert server.last.closed

    def test_sink_cancels(self):
        entries = [entry_v1(text_payload(4, "t", str(i))) for i in range(5)]
        client, server = make_client([okay() + okay() + b"".join(entries)])
        token = CancellationToken()
        received = []

        def sink(entry):
            received.append(entry)
            if len(received) == 2:
                token.cancel()

        state = client.run_log_service(DEVICE, sink, LogId.MAIN, cancellation=token)

        assert state == StreamState.CANCELLED
        assert len(received) == 2
        assert server.last.abort_count == 1
        assert server.last.closed

    def test_cancel_while_blocked(self):
        token = CancellationToken()
        client, _ = make_client(
            [okay() + okay() + entry_v1(text_payload(4, "t", "x")), token.cancel]
        )
        received = []

        state = client.run_log_service(DEVICE, received.append, cancellation=token)

        assert state == StreamState.CANCELLED
        assert len(received) == 1

    def test_truncated_stream_completes(self):
        raw = entry_v1(text_payload(4, "t", "whole")) + entry_v1(text_payload(4, "t", "half"))[:9]
        client, _ = make_client([okay() + okay() + raw])
        received = []

        state = client.run_log_service(DEVICE, received.append, LogId.MAIN)

        assert state == StreamState.COMPLETED
        assert [e.message for e in received] == ["whole"]

    def test_requires_sink(self):
        client, server = make_client()
        with pytest.raises(ValueError):
            client.run_log_service(DEVICE, None, LogId.MAIN)
        assert server.connections == []

    def test_transport_failure_propagates(self):
        def reset():
            raise AdbTransportError("Receive failed: connection reset")

        client, _ = make_client([okay() + okay(), reset])
        with pytest.raises(AdbTransportError):
            client.run_log_service(DEVICE, lambda entry: None, LogId.MAIN)
