"""Device model and ``host:devices-l`` line parsing.

A listing line looks like::

    emulator-5554  device product:sdk_gphone64 model:sdk_gphone64 device:emu64 transport_id:1

The serial and state are positional; the rest are ``key:value`` pairs in
no guaranteed order.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class DeviceState(str, Enum):
    """Connection states reported by the daemon."""

    ONLINE = "device"
    OFFLINE = "offline"
    BOOTLOADER = "bootloader"
    UNAUTHORIZED = "unauthorized"
    AUTHORIZING = "authorizing"
    CONNECTING = "connecting"
    RECOVERY = "recovery"
    RESCUE = "rescue"
    SIDELOAD = "sideload"
    HOST = "host"
    NO_PERMISSIONS = "no permissions"
    UNKNOWN = "unknown"

    @classmethod
    def from_adb(cls, text: str) -> DeviceState:
        try:
            return cls(text.lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Device:
    """A device known to the daemon. Only ``serial`` is required."""

    serial: str
    state: DeviceState = DeviceState.UNKNOWN
    product: str = ""
    model: str = ""
    name: str = ""
    transport_id: str = ""
    usb: str = ""
    features: str = ""

    def to_dict(self) -> dict:
        d = asdict(self)
        d["state"] = self.state.value
        return d

    @classmethod
    def from_adb_line(cls, line: str) -> Device | None:
        """Parse one listing line.

        Returns:
            The device, or ``None`` if the line has no serial and state.
        """
        tokens = line.split()
        if len(tokens) < 2:
            return None

        serial = tokens[0]
        rest = tokens[2:]
        if tokens[1] == "no" and rest and rest[0] == "permissions":
            state = DeviceState.NO_PERMISSIONS
            # "no permissions (user in plugdev group; ...)" carries free text
            rest = [t for t in rest[1:] if ":" in t and not t.startswith("(")]
        else:
            state = DeviceState.from_adb(tokens[1])

        fields: dict[str, str] = {}
        for token in rest:
            key, sep, value = token.partition(":")
            if sep:
                fields[key] = value

        return cls(
            serial=serial,
            state=state,
            product=fields.get("product", ""),
            model=fields.get("model", ""),
            name=fields.get("device", ""),
            transport_id=fields.get("transport_id", ""),
            usb=fields.get("usb", ""),
            features=fields.get("features", ""),
        )
