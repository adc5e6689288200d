"""Tests for cancellation tokens and shell output receivers."""

from __future__ import annotations

import logging

from adb_host_mcp.streaming import (
    CancellationToken,
    CollectingReceiver,
    LoggingReceiver,
    StreamState,
)


class TestCancellationToken:
    def test_callbacks_run_once(self):
        token = CancellationToken()
        calls = []
        token.register(lambda: calls.append("a"))
        token.register(lambda: calls.append("b"))

        token.cancel()
        token.cancel()

        assert token.cancelled
        assert calls == ["a", "b"]

    def test_register_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []
        unregister = token.register(lambda: calls.append(1))
        assert calls == [1]
        unregister()

    def test_unregister(self):
        token = CancellationToken()
        calls = []
        unregister = token.register(lambda: calls.append(1))
        unregister()
        token.cancel()
        assert calls == []

    def test_cancel_after(self):
        token = CancellationToken()
        token.cancel_after(0.01)
        assert token.wait(5)
        assert token.cancelled

    def test_dispose_stops_timer(self):
        token = CancellationToken()
        token.cancel_after(0.05)
        token.dispose()
        assert not token.wait(0.2)
        assert not token.cancelled


def test_stream_state_values():
    assert StreamState.CANCELLED.value == "cancelled"
    assert StreamState.COMPLETED.value == "completed"


def test_collecting_receiver():
    receiver = CollectingReceiver()
    receiver.add_output("a")
    receiver.add_output("b")
    receiver.flush()
    assert receiver.output == "a\nb"
    assert receiver.flushed


def test_logging_receiver(caplog):
    log = logging.getLogger("test.shell")
    receiver = LoggingReceiver(log, level=logging.WARNING)
    with caplog.at_level(logging.DEBUG, logger="test.shell"):
        receiver.add_output("hello")
        receiver.flush()
    assert receiver.line_count == 1
    assert ("test.shell", logging.WARNING, "hello") in caplog.record_tuples
