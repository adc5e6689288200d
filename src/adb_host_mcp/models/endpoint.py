"""Network endpoint model for the daemon and TCP/IP devices."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import DEFAULT_DEVICE_PORT


@dataclass(frozen=True)
class Endpoint:
    """A host plus TCP port."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("Endpoint host must not be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Port must be 1-65535, got {self.port}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, text: str, default_port: int = DEFAULT_DEVICE_PORT) -> Endpoint:
        """Parse ``host`` or ``host:port``.

        Raises:
            ValueError: If the port is not a number or out of range.
        """
        host, sep, port = text.strip().rpartition(":")
        if not sep:
            return cls(host=port, port=default_port)
        try:
            return cls(host=host, port=int(port))
        except ValueError as e:
            raise ValueError(f"Invalid endpoint '{text}': {e}") from e
