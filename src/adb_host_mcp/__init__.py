"""ADB host protocol client with an MCP server front end."""

from .client import AdbClient
from .config import ClientConfig
from .exceptions import (
    AdbError,
    AdbProtocolError,
    AdbTransportError,
    DeviceNotFoundError,
    ShellCommandUnresponsiveError,
)
from .models import Device, DeviceState, Endpoint, ForwardSpec, ForwardRule, LogId
from .streaming import CancellationToken, CollectingReceiver, ShellOutputReceiver, StreamState

__version__ = "0.1.0"
