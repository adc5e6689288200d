"""Cancellation, stream states and shell output receivers.

Streams block in a read between lines or entries. Cancelling a
:class:`CancellationToken` runs its callbacks (the client registers the
connection's ``abort``), which forces that read to fail; the stream then
reports :attr:`StreamState.CANCELLED` instead of an error.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    OPENING = "opening"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CancellationToken:
    """A thread-safe, one-shot cancellation signal with callbacks."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run every registered callback once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation.

        If the token is already cancelled the callback runs immediately.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        callback()
        return lambda: None

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def cancel_after(self, seconds: float) -> None:
        """Cancel automatically once ``seconds`` have elapsed."""
        timer = threading.Timer(seconds, self.cancel)
        timer.daemon = True
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = timer
        timer.start()

    def dispose(self) -> None:
        """Stop a pending :meth:`cancel_after` timer without cancelling."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()


class ShellOutputReceiver:
    """Sink for the lines of a remote command's output.

    ``add_output`` is called once per line in arrival order and ``flush``
    exactly once when the stream ends, however it ends.
    """

    def add_output(self, line: str) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        pass


class CollectingReceiver(ShellOutputReceiver):
    """Keeps every line in memory."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.flushed = False

    def add_output(self, line: str) -> None:
        self.lines.append(line)

    def flush(self) -> None:
        self.flushed = True

    @property
    def output(self) -> str:
        return "\n".join(self.lines)


class LoggingReceiver(ShellOutputReceiver):
    """Forwards each line to a logger."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._log = log or logger
        self._level = level
        self.line_count = 0

    def add_output(self, line: str) -> None:
        self.line_count += 1
        self._log.log(self._level, "%s", line)

    def flush(self) -> None:
        self._log.debug("Shell output finished after %d lines", self.line_count)
