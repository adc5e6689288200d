"""Request framing for the ADB host protocol.

Request layout::

    +--------------+------------------------------+
    | Length       | Command                      |
    | 4 hex digits |  ``Length`` bytes, ISO-8859-1 |
    +--------------+------------------------------+

- Length: uppercase hexadecimal byte count of the command
- Command: the service string, no trailing terminator

Replies start with a 4-byte status token (``OKAY`` / ``FAIL``). Failure
text and several success payloads reuse the same 4-hex length prefix.
"""

from __future__ import annotations

from ..config import ENCODING

OKAY = b"OKAY"
FAIL = b"FAIL"
STATUS_SIZE = 4
LENGTH_SIZE = 4
MAX_REQUEST_LENGTH = 0xFFFF


def encode_length(length: int) -> bytes:
    """Encode a byte count as 4 uppercase hex digits.

    Raises:
        ValueError: If the length does not fit in 4 hex digits.
    """
    if not 0 <= length <= MAX_REQUEST_LENGTH:
        raise ValueError(
            f"Length must be 0-{MAX_REQUEST_LENGTH:#06x}, got {length}"
        )
    return f"{length:04X}".encode("ascii")


def decode_length(data: bytes) -> int | None:
    """Parse a 4-hex-digit length prefix.

    Returns:
        The decoded length, or ``None`` if ``data`` is not 4 hex digits.
    """
    if len(data) != LENGTH_SIZE:
        return None
    try:
        text = data.decode("ascii")
    except UnicodeDecodeError:
        return None
    if not all(c in "0123456789abcdefABCDEF" for c in text):
        return None
    return int(text, 16)


def build_request(command: str) -> bytes:
    """Frame a service command for the wire.

    Args:
        command: Service string, e.g. ``"host:version"``.

    Returns:
        ``<4-hex-length><command>`` encoded as ISO-8859-1.

    Raises:
        ValueError: If the command is longer than 0xFFFF bytes or holds
            characters outside ISO-8859-1.
    """
    body = command.encode(ENCODING)
    if len(body) > MAX_REQUEST_LENGTH:
        raise ValueError(
            f"Request is {len(body)} bytes, the protocol allows at most "
            f"{MAX_REQUEST_LENGTH}"
        )
    return encode_length(len(body)) + body
