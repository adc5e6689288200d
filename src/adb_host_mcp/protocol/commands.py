"""Service name constants and request builders.

Every function returns the service string; framing happens in
:func:`~.framing.build_request` when the string is sent.
"""

from __future__ import annotations

from enum import Enum


class Service(str, Enum):
    """Fixed service names."""

    VERSION = "host:version"
    KILL = "host:kill"
    DEVICES = "host:devices-l"
    ROOT = "root:"
    UNROOT = "unroot:"
    FRAMEBUFFER = "framebuffer:"


def _require_serial(serial: str) -> None:
    if not serial:
        raise ValueError("A device serial number is required")


def _require_port(port: int) -> None:
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be 1-65535, got {port}")


def build_transport(serial: str) -> str:
    """Build the session selection request for ``serial``."""
    _require_serial(serial)
    return f"host:transport:{serial}"


def build_connect(host: str, port: int) -> str:
    """Build a ``host:connect`` request for a network device."""
    _require_port(port)
    return f"host:connect:{host}:{port}"


def build_disconnect(host: str, port: int) -> str:
    """Build a ``host:disconnect`` request for a network device."""
    _require_port(port)
    return f"host:disconnect:{host}:{port}"


def build_forward(serial: str, local: str, remote: str, allow_rebind: bool = True) -> str:
    """Build a forward creation request.

    Args:
        serial: Device serial the rule belongs to.
        local: Local side, e.g. ``"tcp:8080"``.
        remote: Remote side, e.g. ``"localabstract:scrcpy"``.
        allow_rebind: If False, the daemon refuses to replace an existing
            rule on the same local side.
    """
    _require_serial(serial)
    if not local or not remote:
        raise ValueError("Both forward sides must be given")
    rebind = "" if allow_rebind else "norebind:"
    return f"host-serial:{serial}:forward:{rebind}{local};{remote}"


def build_kill_forward(serial: str, local_port: int) -> str:
    """Build a request removing the forward bound to ``tcp:<local_port>``."""
    _require_serial(serial)
    _require_port(local_port)
    return f"host-serial:{serial}:killforward:tcp:{local_port}"


def build_kill_forward_all(serial: str) -> str:
    """Build a request removing every forward of a device."""
    _require_serial(serial)
    return f"host-serial:{serial}:killforward-all"


def build_list_forward(serial: str) -> str:
    _require_serial(serial)
    return f"host-serial:{serial}:list-forward"


def build_shell(command: str) -> str:
    return f"shell:{command}"


def build_logcat(log_names: list[str]) -> str:
    """Build the binary logcat request, one ``-b`` switch per buffer."""
    request = "shell:logcat -B"
    for name in log_names:
        request += f" -b {name.lower()}"
    return request


def build_reboot(into: str = "") -> str:
    """Build a reboot request; ``into`` is e.g. ``"bootloader"`` or ``""``."""
    return f"reboot:{into}"


def build_install(length: int, arguments: tuple[str, ...] | list[str] = ()) -> str:
    """Build a streaming install request.

    The ``-S`` size switch is always appended last so it wins over any
    size token the caller passed in ``arguments``.
    """
    if length < 0:
        raise ValueError(f"Payload length must be non-negative, got {length}")
    request = "exec:cmd package"
    for argument in arguments:
        request += f" {argument}"
    return request + f" -S {length}"
