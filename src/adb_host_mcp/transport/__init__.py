"""Byte-stream transport to the ADB server."""

from .tcp_connection import TcpConnection
