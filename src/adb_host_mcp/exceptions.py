"""Exception hierarchy for ADB host protocol failures.

Transport failures (the connection broke or spoke garbage) are kept apart
from protocol failures (the daemon answered ``FAIL``) so callers can tell
"the server rejected the request" from "the socket went away".
"""

from __future__ import annotations


class AdbError(Exception):
    """Base class for every error raised by this package."""


class AdbTransportError(AdbError):
    """The connection could not be opened, closed early, or sent malformed data."""


class ConnectionClosedError(AdbTransportError):
    """The peer closed the connection before the expected bytes arrived."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Connection closed after {received} of {expected} bytes"
        )


class AdbProtocolError(AdbError):
    """The daemon replied with a ``FAIL`` status.

    Attributes:
        message: The daemon's error text, verbatim (may be empty).
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DeviceNotFoundError(AdbProtocolError):
    """Session selection failed because the daemon does not know the device."""

    def __init__(self, serial: str) -> None:
        self.serial = serial
        super().__init__(f"device '{serial}' not found")


class ShellCommandUnresponsiveError(AdbError):
    """A shell command's output stream failed without a cancellation request."""

    def __init__(self, command: str, cause: BaseException) -> None:
        self.command = command
        self.cause = cause
        super().__init__(
            f"Remote command '{command}' became unresponsive: {cause}"
        )
