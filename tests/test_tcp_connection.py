"""Tests for TcpConnection over a local socket pair."""

from __future__ import annotations

import socket
import threading

import pytest

from adb_host_mcp.exceptions import AdbTransportError, ConnectionClosedError
from adb_host_mcp.models.endpoint import Endpoint
from adb_host_mcp.protocol.framing import build_request
from adb_host_mcp.protocol.parser import read_response, read_string
from adb_host_mcp.transport import tcp_connection
from adb_host_mcp.transport.tcp_connection import TcpConnection

ENDPOINT = Endpoint("127.0.0.1", 5037)


@pytest.fixture
def connect_calls():
    return []


@pytest.fixture
def peer(monkeypatch, connect_calls):
    """Connect TcpConnection to one end of a socket pair; yield the other end."""
    client_sock, server_sock = socket.socketpair()

    def fake_create_connection(address, timeout=None):
        connect_calls.append((address, timeout))
        return client_sock

    monkeypatch.setattr(tcp_connection.socket, "create_connection", fake_create_connection)
    yield server_sock
    server_sock.close()
    client_sock.close()


def test_open_uses_endpoint_and_timeout(peer, connect_calls):
    with TcpConnection(ENDPOINT, connect_timeout=2.5) as conn:
        assert conn.connected
    assert connect_calls == [(("127.0.0.1", 5037), 2.5)]
    assert not conn.connected


def test_open_failure(monkeypatch):
    def refuse(address, timeout=None):
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(tcp_connection.socket, "create_connection", refuse)
    with pytest.raises(AdbTransportError, match="adb start-server"):
        TcpConnection(ENDPOINT).open()


def test_send_request(peer):
    with TcpConnection(ENDPOINT) as conn:
        conn.send(build_request("host:version"))
        assert peer.recv(64) == b"000Chost:version"


def test_status_and_payload_in_one_segment(peer):
    peer.sendall(b"OKAY00040029")
    with TcpConnection(ENDPOINT) as conn:
        read_response(conn)
        assert read_string(conn) == "0029"


def test_read_exact_across_segments(peer):
    with TcpConnection(ENDPOINT) as conn:
        peer.sendall(b"OK")
        result = []
        reader = threading.Thread(target=lambda: result.append(conn.read_exact(4)))
        reader.start()
        peer.sendall(b"AY")
        reader.join(timeout=5)
        assert result == [b"OKAY"]


def test_read_exact_short_stream(peer):
    peer.sendall(b"OK")
    peer.shutdown(socket.SHUT_WR)
    with TcpConnection(ENDPOINT) as conn:
        with pytest.raises(ConnectionClosedError) as exc_info:
            conn.read_exact(4)
    assert exc_info.value.expected == 4
    assert exc_info.value.received == 2


def test_read_line(peer):
    peer.sendall(b"first\r\nsecond\nlast")
    peer.shutdown(socket.SHUT_WR)
    with TcpConnection(ENDPOINT) as conn:
        assert conn.read_line() == "first"
        assert conn.read_line() == "second"
        assert conn.read_line() == "last"
        assert conn.read_line() is None


def test_read_returns_buffered_bytes_first(peer):
    peer.sendall(b"OKAYrestarting")
    with TcpConnection(ENDPOINT) as conn:
        read_response(conn)
        assert conn.read(1024) == b"restarting"


def test_abort_unblocks_pending_read(peer):
    with TcpConnection(ENDPOINT) as conn:
        errors = []

        def read():
            try:
                conn.read_line()
            except AdbTransportError as e:
                errors.append(e)

        reader = threading.Thread(target=read)
        reader.start()
        conn.abort()
        reader.join(timeout=5)

        assert not reader.is_alive()
        assert len(errors) == 1
        with pytest.raises(AdbTransportError):
            conn.send(b"x")


def test_close_is_idempotent(peer):
    conn = TcpConnection(ENDPOINT)
    conn.open()
    conn.close()
    conn.close()
    with pytest.raises(AdbTransportError):
        conn.send(b"x")
