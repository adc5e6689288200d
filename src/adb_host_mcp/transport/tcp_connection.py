"""TCP connection to the ADB server.

One :class:`TcpConnection` carries exactly one logical operation: a
request/response exchange or one stream. Reads are buffered so that bytes
arriving together with the status token are not lost to the payload reader.

Usage::

    with TcpConnection(Endpoint("127.0.0.1", 5037)) as conn:
        conn.send(build_request("host:version"))
        read_response(conn)
"""

from __future__ import annotations

import logging
import socket
import threading

from ..config import BUFFER_SIZE, CONNECT_TIMEOUT, ENCODING
from ..exceptions import AdbTransportError, ConnectionClosedError
from ..models.endpoint import Endpoint

logger = logging.getLogger(__name__)


class TcpConnection:
    """A blocking socket with exact-length, line and chunk reads."""

    def __init__(
        self,
        endpoint: Endpoint,
        connect_timeout: float | None = CONNECT_TIMEOUT,
    ) -> None:
        self._endpoint = endpoint
        self._connect_timeout = connect_timeout
        self._sock: socket.socket | None = None
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._aborted = False

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def __enter__(self) -> TcpConnection:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        """Connect to the endpoint.

        Raises:
            AdbTransportError: If the server cannot be reached.
        """
        try:
            sock = socket.create_connection(
                (self._endpoint.host, self._endpoint.port),
                timeout=self._connect_timeout,
            )
        except OSError as e:
            raise AdbTransportError(
                f"Could not connect to ADB server at {self._endpoint}. "
                f"Ensure the server is running (adb start-server). "
                f"Last error: {e}"
            ) from e

        # Streams may legitimately stay silent for a long time
        sock.settimeout(None)
        with self._lock:
            self._sock = sock
            self._aborted = False
        logger.debug("Connected to %s", self._endpoint)

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        with self._lock:
            sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            logger.warning("Error closing connection to %s: %s", self._endpoint, e)
        finally:
            self._buffer.clear()
            logger.debug("Disconnected from %s", self._endpoint)

    def abort(self) -> None:
        """Force the connection down from another thread.

        Shutting the socket down wakes any thread blocked in a read on it,
        which is how stream cancellation interrupts an in-flight read.
        """
        with self._lock:
            sock = self._sock
            self._aborted = True
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already disconnected
        logger.debug("Aborted connection to %s", self._endpoint)

    def _require_socket(self) -> socket.socket:
        if self._aborted:
            raise AdbTransportError("Connection was aborted")
        if self._sock is None:
            raise AdbTransportError("Not connected to ADB server")
        return self._sock

    def _fill(self) -> bool:
        """Receive one chunk into the buffer. Returns False at end of stream."""
        sock = self._require_socket()
        try:
            chunk = sock.recv(BUFFER_SIZE)
        except OSError as e:
            raise AdbTransportError(f"Receive failed: {e}") from e
        if self._aborted:
            raise AdbTransportError("Connection was aborted")
        if not chunk:
            return False
        self._buffer.extend(chunk)
        return True

    def send(self, data: bytes) -> None:
        """Send all of ``data``.

        Raises:
            AdbTransportError: If the connection is closed or the send fails.
        """
        sock = self._require_socket()
        try:
            sock.sendall(data)
        except OSError as e:
            raise AdbTransportError(f"Send failed: {e}") from e
        logger.debug("Sent %d bytes: %r", len(data), data[:64])

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes.

        Raises:
            ConnectionClosedError: If the stream ends first.
            AdbTransportError: If the receive fails.
        """
        while len(self._buffer) < size:
            if not self._fill():
                raise ConnectionClosedError(size, len(self._buffer))
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def read(self, max_size: int) -> bytes:
        """Read up to ``max_size`` bytes; an empty result means end of stream."""
        if not self._buffer:
            self._fill()
        data = bytes(self._buffer[:max_size])
        del self._buffer[:max_size]
        return data

    def read_line(self) -> str | None:
        """Read one line, without its ``\\n`` or ``\\r\\n`` terminator.

        Returns:
            The decoded line, or ``None`` at end of stream. A final line
            without a terminator is still returned.
        """
        while True:
            index = self._buffer.find(b"\n")
            if index != -1:
                raw = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                break
            if not self._fill():
                if not self._buffer:
                    return None
                raw = bytes(self._buffer)
                self._buffer.clear()
                break
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        return raw.decode(ENCODING)
