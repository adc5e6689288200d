"""Response reading and host-data reply parsing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import ENCODING
from ..exceptions import AdbProtocolError, AdbTransportError
from ..models.device import Device
from ..models.forward import ForwardRule
from .framing import FAIL, LENGTH_SIZE, OKAY, STATUS_SIZE, decode_length

if TYPE_CHECKING:
    from ..transport.tcp_connection import TcpConnection

logger = logging.getLogger(__name__)


def read_status(conn: TcpConnection) -> bool:
    """Read the 4-byte status token.

    Returns:
        True for ``OKAY``, False for ``FAIL``.

    Raises:
        AdbTransportError: On a short read or an unknown token.
    """
    token = conn.read_exact(STATUS_SIZE)
    if token == OKAY:
        return True
    if token == FAIL:
        return False
    raise AdbTransportError(f"Malformed status token: {token!r}")


def read_string(conn: TcpConnection) -> str:
    """Read a ``<4-hex-length><text>`` value and decode it as ISO-8859-1."""
    prefix = conn.read_exact(LENGTH_SIZE)
    length = decode_length(prefix)
    if length is None:
        raise AdbTransportError(f"Malformed length prefix: {prefix!r}")
    if length == 0:
        return ""
    return conn.read_exact(length).decode(ENCODING)


def read_response(conn: TcpConnection) -> None:
    """Consume one status token, raising if the daemon rejected the request.

    On success nothing past the token is read; the payload shape belongs
    to the individual service.

    Raises:
        AdbProtocolError: The daemon answered ``FAIL``; carries its message.
        AdbTransportError: The reply was cut short or malformed.
    """
    if read_status(conn):
        return
    message = read_string(conn)
    logger.debug("Daemon replied FAIL: %s", message)
    raise AdbProtocolError(message)


def parse_version(text: str) -> int:
    """Parse the hex protocol version sent in reply to ``host:version``."""
    try:
        return int(text, 16)
    except ValueError as e:
        raise AdbTransportError(f"Malformed version reply: {text!r}") from e


def split_lines(text: str) -> list[str]:
    """Split a reply into non-empty lines, accepting ``\\n`` and ``\\r\\n``."""
    return [line for line in text.replace("\r", "\n").split("\n") if line]


def parse_device_list(text: str) -> list[Device]:
    """Parse a ``host:devices-l`` reply, preserving order.

    Lines the device parser rejects are logged and skipped.
    """
    devices = []
    for line in split_lines(text):
        device = Device.from_adb_line(line)
        if device is None:
            logger.warning("Skipping unparseable device line: %r", line)
            continue
        devices.append(device)
    return devices


def parse_forward_list(text: str) -> list[ForwardRule]:
    """Parse a ``list-forward`` reply, preserving order."""
    rules = []
    for line in split_lines(text):
        rule = ForwardRule.from_adb_line(line)
        if rule is None:
            logger.warning("Skipping unparseable forward line: %r", line)
            continue
        rules.append(rule)
    return rules
