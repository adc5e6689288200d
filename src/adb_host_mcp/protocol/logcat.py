"""Decoder for the binary ``logcat -B`` entry stream.

Entry layout (``struct logger_entry``, little-endian)::

    +--------+----------+-----+-----+-----+------+-----+-----+---------+
    | len    | hdr_size | pid | tid | sec | nsec | lid | uid | payload |
    | uint16 | uint16   | i32 | u32 | u32 | u32  | u32 | u32 | len B   |
    +--------+----------+-----+-----+-----+------+-----+-----+---------+

- v1 headers send ``hdr_size`` as 0 and stop after ``nsec`` (20 bytes)
- v3 adds ``lid`` (24 bytes), v4 adds ``uid`` (28 bytes)
- larger headers are accepted; unknown trailing fields are skipped

Text buffers carry ``priority(1) tag\\0 message\\0`` as the payload.
"""

from __future__ import annotations

import logging
import struct
from typing import TYPE_CHECKING

from ..exceptions import AdbTransportError, ConnectionClosedError
from ..models.log_entry import AndroidLogEntry, LogEntry, TEXT_LOG_IDS

if TYPE_CHECKING:
    from ..transport.tcp_connection import TcpConnection

logger = logging.getLogger(__name__)

PREFIX_SIZE = 4
V1_HEADER_SIZE = 20
LID_HEADER_SIZE = 24
UID_HEADER_SIZE = 28

_PREFIX = struct.Struct("<HH")
_BASE = struct.Struct("<iIII")


def parse_text_payload(payload: bytes) -> tuple[int, str, str] | None:
    """Split a text payload into (priority, tag, message).

    Returns:
        The three parts, or ``None`` if the payload is not priority/tag/text.
    """
    if len(payload) < 2:
        return None
    priority = payload[0]
    tag, sep, rest = payload[1:].partition(b"\x00")
    if not sep:
        return None
    message = rest.split(b"\x00", 1)[0]
    return (
        priority,
        tag.decode("utf-8", errors="replace"),
        message.decode("utf-8", errors="replace").rstrip("\n"),
    )


def decode_entry(header: bytes, payload: bytes) -> LogEntry:
    """Build a log entry from a complete header and its payload."""
    pid, tid, sec, nsec = _BASE.unpack_from(header, PREFIX_SIZE)
    log_id = uid = None
    if len(header) >= LID_HEADER_SIZE:
        (log_id,) = struct.unpack_from("<I", header, V1_HEADER_SIZE)
    if len(header) >= UID_HEADER_SIZE:
        (uid,) = struct.unpack_from("<I", header, LID_HEADER_SIZE)

    if log_id is None or log_id in TEXT_LOG_IDS:
        text = parse_text_payload(payload)
        if text is not None:
            priority, tag, message = text
            return AndroidLogEntry(
                pid=pid, tid=tid, seconds=sec, nanoseconds=nsec,
                data=payload, log_id=log_id, uid=uid,
                priority=priority, tag=tag, message=message,
            )

    return LogEntry(
        pid=pid, tid=tid, seconds=sec, nanoseconds=nsec,
        data=payload, log_id=log_id, uid=uid,
    )


class LogReader:
    """Reads entries one at a time from a connection carrying ``logcat -B``."""

    def __init__(self, conn: TcpConnection) -> None:
        self._conn = conn

    def read_entry(self) -> LogEntry | None:
        """Decode the next entry.

        Returns:
            The entry, or ``None`` when the stream ends, including in the
            middle of an entry.
        """
        try:
            prefix = self._conn.read_exact(PREFIX_SIZE)
            payload_size, header_size = _PREFIX.unpack(prefix)
            if header_size == 0:
                header_size = V1_HEADER_SIZE
            if header_size < V1_HEADER_SIZE:
                raise AdbTransportError(f"Log entry header too short: {header_size} bytes")
            header = prefix + self._conn.read_exact(header_size - PREFIX_SIZE)
            payload = self._conn.read_exact(payload_size) if payload_size else b""
        except ConnectionClosedError as e:
            if e.received:
                logger.debug("Log stream ended inside an entry: %s", e)
            return None
        return decode_entry(header, payload)
