"""ADB host protocol client.

Every public method opens its own connection to the ADB server, optionally
pins it to a device with ``host:transport:<serial>``, sends one request,
reads the status, handles the service's payload and closes the connection
again, whatever the outcome. No state is shared between calls, so one
:class:`AdbClient` may be used from several threads at once.

Usage::

    client = AdbClient()
    for device in client.get_devices():
        receiver = CollectingReceiver()
        client.execute_remote_command("getprop ro.product.model", device, receiver)
        print(device.serial, receiver.output)
"""

from __future__ import annotations

import logging
import os
import time
from functools import partial
from typing import BinaryIO, Callable

from .config import (
    CONNECT_TIMEOUT,
    DEFAULT_DEVICE_PORT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    INSTALL_CHUNK_SIZE,
    ROOT_RESTART_DELAY,
    STATUS_BUFFER_SIZE,
    ClientConfig,
)
from .exceptions import (
    AdbError,
    AdbProtocolError,
    AdbTransportError,
    DeviceNotFoundError,
    ShellCommandUnresponsiveError,
)
from .models.device import Device
from .models.endpoint import Endpoint
from .models.forward import ForwardRule, ForwardSpec
from .models.framebuffer import Framebuffer, FramebufferHeader
from .models.log_entry import LogEntry, LogId
from .protocol import commands
from .protocol.commands import Service
from .protocol.framing import build_request
from .protocol.logcat import LogReader
from .protocol.parser import (
    parse_device_list,
    parse_forward_list,
    parse_version,
    read_response,
    read_string,
)
from .streaming import CancellationToken, ShellOutputReceiver, StreamState
from .transport.tcp_connection import TcpConnection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[Endpoint], TcpConnection]


class AdbClient:
    """Talks to an ADB server over its host protocol.

    Args:
        endpoint: Where the ADB server listens (default ``127.0.0.1:5037``).
        connection_factory: Builds an unopened connection for an endpoint.
            Defaults to :class:`TcpConnection`.
    """

    def __init__(
        self,
        endpoint: Endpoint | None = None,
        connection_factory: ConnectionFactory | None = None,
        connect_timeout: float | None = CONNECT_TIMEOUT,
    ) -> None:
        self._endpoint = endpoint or Endpoint(DEFAULT_HOST, DEFAULT_PORT)
        if connection_factory is None:
            connection_factory = partial(TcpConnection, connect_timeout=connect_timeout)
        self._connection_factory = connection_factory

    @classmethod
    def from_config(cls, config: ClientConfig) -> AdbClient:
        return cls(
            Endpoint(config.host, config.port),
            connect_timeout=config.connect_timeout,
        )

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def _open(self) -> TcpConnection:
        """Build a connection; entering its ``with`` block opens it."""
        return self._connection_factory(self._endpoint)

    @staticmethod
    def _ensure_device(device: Device | None) -> Device:
        if device is None:
            raise ValueError("A device is required")
        if not device.serial:
            raise ValueError("You must specify a serial number for the device")
        return device

    def _request(self, conn: TcpConnection, command: str) -> None:
        """Send one framed request and consume its status."""
        logger.debug("Request: %s", command)
        conn.send(build_request(command))
        read_response(conn)

    # ─── SESSION SELECTION ───────────────────────────────────────────

    def set_device(self, conn: TcpConnection, device: Device | None) -> None:
        """Pin ``conn`` to ``device``; a ``None`` device leaves it host-scoped.

        Raises:
            DeviceNotFoundError: If the daemon does not know the serial.
            AdbProtocolError: For any other rejection.
        """
        if device is None:
            return
        self._ensure_device(device)
        try:
            self._request(conn, commands.build_transport(device.serial))
        except AdbProtocolError as e:
            if e.message.lower() == "device not found":
                raise DeviceNotFoundError(device.serial) from e
            raise

    # ─── HOST SERVICES ───────────────────────────────────────────────

    def get_adb_version(self) -> int:
        """Return the ADB server's protocol version."""
        with self._open() as conn:
            self._request(conn, Service.VERSION.value)
            version = parse_version(read_string(conn))
        logger.info("ADB server version %d", version)
        return version

    def kill_adb(self) -> None:
        """Ask the ADB server to exit.

        The server drops the connection as soon as it accepts the request,
        so no reply is read.
        """
        with self._open() as conn:
            conn.send(build_request(Service.KILL.value))
        logger.info("Sent kill request to %s", self._endpoint)

    def get_devices(self) -> list[Device]:
        """List attached devices in the order the server reports them."""
        with self._open() as conn:
            self._request(conn, Service.DEVICES.value)
            reply = read_string(conn)
        devices = parse_device_list(reply)
        logger.debug("Found %d device(s)", len(devices))
        return devices

    def connect(self, endpoint: Endpoint | str) -> str:
        """Attach a device over TCP/IP. Returns the server's status text."""
        if isinstance(endpoint, str):
            endpoint = Endpoint.parse(endpoint, DEFAULT_DEVICE_PORT)
        with self._open() as conn:
            self._request(conn, commands.build_connect(endpoint.host, endpoint.port))
            status = read_string(conn)
        logger.info("connect %s: %s", endpoint, status)
        return status

    def disconnect(self, endpoint: Endpoint | str) -> str:
        """Detach a TCP/IP device. Returns the server's status text."""
        if isinstance(endpoint, str):
            endpoint = Endpoint.parse(endpoint, DEFAULT_DEVICE_PORT)
        with self._open() as conn:
            self._request(conn, commands.build_disconnect(endpoint.host, endpoint.port))
            status = read_string(conn)
        logger.info("disconnect %s: %s", endpoint, status)
        return status

    # ─── FORWARDS ────────────────────────────────────────────────────

    def create_forward(
        self,
        device: Device,
        local: ForwardSpec | str,
        remote: ForwardSpec | str,
        allow_rebind: bool = True,
    ) -> None:
        """Forward ``local`` on the host to ``remote`` on the device.

        Raises:
            AdbProtocolError: If the server refuses, e.g. the local side is
                already bound and ``allow_rebind`` is False.
        """
        device = self._ensure_device(device)
        request = commands.build_forward(
            device.serial, str(local), str(remote), allow_rebind
        )
        with self._open() as conn:
            self._request(conn, request)
        logger.info("Forward %s -> %s on %s", local, remote, device.serial)

    def remove_forward(self, device: Device, local_port: int) -> None:
        device = self._ensure_device(device)
        with self._open() as conn:
            self._request(conn, commands.build_kill_forward(device.serial, local_port))

    def remove_all_forwards(self, device: Device) -> None:
        device = self._ensure_device(device)
        with self._open() as conn:
            self._request(conn, commands.build_kill_forward_all(device.serial))

    def list_forward(self, device: Device) -> list[ForwardRule]:
        """List the forward rules the server holds for ``device``."""
        device = self._ensure_device(device)
        with self._open() as conn:
            self._request(conn, commands.build_list_forward(device.serial))
            reply = read_string(conn)
        return parse_forward_list(reply)

    # ─── DEVICE SERVICES ─────────────────────────────────────────────

    def reboot(self, device: Device, into: str = "") -> None:
        """Reboot ``device``, optionally into ``bootloader``, ``recovery``..."""
        device = self._ensure_device(device)
        with self._open() as conn:
            self.set_device(conn, device)
            self._request(conn, commands.build_reboot(into))
        logger.info("Rebooting %s%s", device.serial, f" into {into}" if into else "")

    def root(self, device: Device) -> None:
        """Restart adbd on ``device`` with root permissions."""
        self._root(Service.ROOT.value, device)

    def unroot(self, device: Device) -> None:
        """Restart adbd on ``device`` without root permissions."""
        self._root(Service.UNROOT.value, device)

    def _root(self, request: str, device: Device) -> None:
        device = self._ensure_device(device)
        with self._open() as conn:
            self.set_device(conn, device)
            self._request(conn, request)
            reply = conn.read(STATUS_BUFFER_SIZE).decode("utf-8", errors="replace")

        if reply.lower() != "restarting":
            raise AdbProtocolError(reply)

        # adbd is restarting and unreachable for a moment
        logger.info("%s restarting on %s", request, device.serial)
        time.sleep(ROOT_RESTART_DELAY)

    def get_framebuffer(self, device: Device) -> Framebuffer:
        """Capture the screen as a header plus raw pixel bytes."""
        device = self._ensure_device(device)
        with self._open() as conn:
            self.set_device(conn, device)
            self._request(conn, Service.FRAMEBUFFER.value)
            version_bytes = conn.read_exact(4)
            version = int.from_bytes(version_bytes, "little")
            count = FramebufferHeader.field_count(version)
            if count is None:
                raise AdbTransportError(f"Unsupported framebuffer version {version}")
            header = FramebufferHeader.from_bytes(
                version_bytes + conn.read_exact((count - 1) * 4)
            )
            data = conn.read_exact(header.size)
        return Framebuffer(header=header, data=data)

    # ─── STREAMS ─────────────────────────────────────────────────────

    def execute_remote_command(
        self,
        command: str,
        device: Device,
        receiver: ShellOutputReceiver | None = None,
        cancellation: CancellationToken | None = None,
    ) -> StreamState:
        """Run ``command`` and stream its output to ``receiver`` line by line.

        Cancelling ``cancellation`` closes the connection under the pending
        read. That ends the stream as :attr:`StreamState.CANCELLED`, which is
        not an error. ``receiver.flush()`` runs exactly once, before the
        connection is released.

        Returns:
            :attr:`StreamState.COMPLETED` or :attr:`StreamState.CANCELLED`.

        Raises:
            ShellCommandUnresponsiveError: If the output stream failed while
                no cancellation was requested.
        """
        device = self._ensure_device(device)
        token = cancellation or CancellationToken()
        state = StreamState.OPENING

        with self._open() as conn:
            unregister = token.register(conn.abort)
            try:
                try:
                    self.set_device(conn, device)
                    self._request(conn, commands.build_shell(command))
                except AdbTransportError:
                    if not token.cancelled:
                        raise
                    state = StreamState.CANCELLED
                    return state

                state = StreamState.RUNNING
                try:
                    while not token.cancelled:
                        line = conn.read_line()
                        if line is None:
                            break
                        if receiver is not None:
                            receiver.add_output(line)
                except (AdbError, UnicodeDecodeError) as e:
                    if not token.cancelled:
                        state = StreamState.FAILED
                        raise ShellCommandUnresponsiveError(command, e) from e

                state = StreamState.CANCELLED if token.cancelled else StreamState.COMPLETED
                return state
            finally:
                unregister()
                if receiver is not None:
                    receiver.flush()
                logger.debug("shell:%s on %s ended %s", command, device.serial, state.value)

    def run_log_service(
        self,
        device: Device,
        sink: Callable[[LogEntry], None],
        *log_names: LogId | str,
        cancellation: CancellationToken | None = None,
    ) -> StreamState:
        """Stream binary logcat entries from ``log_names`` buffers into ``sink``.

        Entries are delivered one at a time in stream order. The end of the
        stream, even inside an entry, is a normal end.

        Returns:
            :attr:`StreamState.COMPLETED` or :attr:`StreamState.CANCELLED`.
        """
        if sink is None:
            raise ValueError("A message sink is required")
        device = self._ensure_device(device)
        token = cancellation or CancellationToken()
        request = commands.build_logcat(
            [n if isinstance(n, str) else LogId(n).name for n in log_names]
        )

        with self._open() as conn:
            unregister = token.register(conn.abort)
            try:
                self.set_device(conn, device)
                self._request(conn, request)
                reader = LogReader(conn)
                while not token.cancelled:
                    entry = reader.read_entry()
                    if entry is None:
                        break
                    sink(entry)
            except AdbTransportError:
                if not token.cancelled:
                    raise
            finally:
                unregister()

        state = StreamState.CANCELLED if token.cancelled else StreamState.COMPLETED
        logger.debug("logcat on %s ended %s", device.serial, state.value)
        return state

    def install(
        self,
        device: Device,
        apk: BinaryIO,
        *arguments: str,
        chunk_size: int = INSTALL_CHUNK_SIZE,
    ) -> str:
        """Stream a package to ``cmd package`` on the device.

        Args:
            device: Target device.
            apk: Readable, seekable binary stream; everything from the
                current position to the end is sent.
            arguments: Extra ``cmd package`` tokens, e.g. ``"install", "-r"``.
            chunk_size: Bytes per send.

        Returns:
            The package manager's final status text, unparsed.

        Raises:
            ValueError: If ``apk`` is not a readable, seekable stream.
            AdbTransportError: If the payload could not be sent completely.
        """
        device = self._ensure_device(device)
        if apk is None or not apk.readable() or not apk.seekable():
            raise ValueError("The apk stream must be a readable and seekable stream")
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")

        start = apk.tell()
        length = apk.seek(0, os.SEEK_END) - start
        apk.seek(start)

        with self._open() as conn:
            self.set_device(conn, device)
            self._request(conn, commands.build_install(length, arguments))

            sent = 0
            while sent < length:
                chunk = apk.read(min(chunk_size, length - sent))
                if not chunk:
                    raise AdbTransportError(
                        f"Package source ended after {sent} of {length} bytes"
                    )
                conn.send(chunk)
                sent += len(chunk)

            status = conn.read(STATUS_BUFFER_SIZE).decode("utf-8", errors="replace")

        logger.info("Installed %d bytes on %s: %s", length, device.serial, status.strip())
        return status
