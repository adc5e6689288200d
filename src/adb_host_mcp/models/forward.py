"""Port-forward specifications and listed forward rules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ForwardProtocol(str, Enum):
    """Socket kinds a forward side can name."""

    TCP = "tcp"
    LOCAL_ABSTRACT = "localabstract"
    LOCAL_RESERVED = "localreserved"
    LOCAL_FILESYSTEM = "localfilesystem"
    DEVICE = "dev"
    JDWP = "jdwp"


_INTEGER_PROTOCOLS = (ForwardProtocol.TCP, ForwardProtocol.JDWP)


@dataclass(frozen=True)
class ForwardSpec:
    """One side of a forward rule.

    ``tcp`` specs use ``port`` (and optionally ``address``), ``jdwp`` uses
    ``process_id``, and the socket kinds use ``socket_name``.
    """

    protocol: ForwardProtocol
    port: int | None = None
    address: str | None = None
    socket_name: str | None = None
    process_id: int | None = None

    @classmethod
    def tcp(cls, port: int, address: str | None = None) -> ForwardSpec:
        if not 0 <= port <= 65535:
            raise ValueError(f"Port must be 0-65535, got {port}")
        return cls(ForwardProtocol.TCP, port=port, address=address)

    @classmethod
    def jdwp(cls, process_id: int) -> ForwardSpec:
        return cls(ForwardProtocol.JDWP, process_id=process_id)

    @classmethod
    def socket(cls, protocol: ForwardProtocol, name: str) -> ForwardSpec:
        if protocol in _INTEGER_PROTOCOLS:
            raise ValueError(f"{protocol.value} does not take a socket name")
        if not name:
            raise ValueError("Socket name must not be empty")
        return cls(protocol, socket_name=name)

    def __str__(self) -> str:
        if self.protocol == ForwardProtocol.TCP:
            if self.address:
                return f"tcp:{self.port}:{self.address}"
            return f"tcp:{self.port}"
        if self.protocol == ForwardProtocol.JDWP:
            return f"jdwp:{self.process_id}"
        return f"{self.protocol.value}:{self.socket_name}"

    @classmethod
    def parse(cls, text: str) -> ForwardSpec | None:
        """Parse the canonical string form.

        Returns:
            The parsed side, or ``None`` for an unknown protocol or a bad number.
        """
        kind, sep, value = text.partition(":")
        if not sep or not value:
            return None
        try:
            protocol = ForwardProtocol(kind)
        except ValueError:
            return None

        if protocol == ForwardProtocol.TCP:
            port, _, address = value.partition(":")
            if not port.isdigit() or int(port) > 65535:
                return None
            return cls(protocol, port=int(port), address=address or None)
        if protocol == ForwardProtocol.JDWP:
            if not value.isdigit():
                return None
            return cls(protocol, process_id=int(value))
        return cls(protocol, socket_name=value)


@dataclass(frozen=True)
class ForwardRule:
    """A forward rule as listed by the daemon."""

    serial: str
    local: str
    remote: str

    @property
    def local_spec(self) -> ForwardSpec | None:
        return ForwardSpec.parse(self.local)

    @property
    def remote_spec(self) -> ForwardSpec | None:
        return ForwardSpec.parse(self.remote)

    def to_dict(self) -> dict:
        return {"serial": self.serial, "local": self.local, "remote": self.remote}

    @classmethod
    def from_adb_line(cls, line: str) -> ForwardRule | None:
        """Parse ``<serial> <local> <remote>``; ``None`` if malformed."""
        parts = line.split()
        if len(parts) != 3:
            return None
        return cls(serial=parts[0], local=parts[1], remote=parts[2])
