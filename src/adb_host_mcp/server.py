"""MCP server entry point for the ADB host client.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import AdbClient
from .config import ClientConfig
from .exceptions import AdbError
from .models.device import Device
from .models.forward import ForwardSpec
from .models.log_entry import LogEntry, LogId
from .streaming import CancellationToken, CollectingReceiver

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "adb-host",
    instructions="MCP server for Android devices attached to a local ADB server",
)

DEFAULT_SHELL_TIMEOUT = 30.0
DEFAULT_LOGCAT_TIMEOUT = 5.0
MAX_SHELL_LINES = 5000
MAX_LOGCAT_ENTRIES = 2000


def _get_client() -> AdbClient:
    """Build a client for the ADB server named by the environment."""
    return AdbClient.from_config(ClientConfig.from_env())


def _device(serial: str) -> Device:
    return Device(serial=serial)


# ─── SERVER TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def get_server_version() -> dict[str, Any]:
    """Query the ADB server's protocol version."""
    client = _get_client()
    return {"endpoint": str(client.endpoint), "version": client.get_adb_version()}


@mcp.tool()
def kill_server() -> dict[str, bool]:
    """Stop the ADB server. It restarts on the next `adb` command line call."""
    _get_client().kill_adb()
    return {"killed": True}


@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List attached devices with state, product and model."""
    devices = _get_client().get_devices()
    return {"devices": [d.to_dict() for d in devices]}


@mcp.tool()
def connect_device(address: str) -> dict[str, Any]:
    """Attach a device over TCP/IP.

    Args:
        address: `host` or `host:port` (default port 5555).
    """
    status = _get_client().connect(address)
    return {"address": address, "status": status}


@mcp.tool()
def disconnect_device(address: str) -> dict[str, Any]:
    """Detach a TCP/IP device.

    Args:
        address: `host` or `host:port` (default port 5555).
    """
    status = _get_client().disconnect(address)
    return {"address": address, "status": status}


# ─── FORWARD TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def create_forward(
    serial: str,
    local: str,
    remote: str,
    allow_rebind: bool = True,
) -> dict[str, Any]:
    """Forward a host socket to a device socket.

    Args:
        serial: Device serial.
        local: Host side, e.g. "tcp:8080".
        remote: Device side, e.g. "tcp:8080" or "localabstract:chrome_devtools_remote".
        allow_rebind: Replace an existing rule on the same host side.
    """
    local_spec = ForwardSpec.parse(local)
    remote_spec = ForwardSpec.parse(remote)
    if local_spec is None or remote_spec is None:
        return {"error": f"Invalid forward spec: {local if local_spec is None else remote}"}

    _get_client().create_forward(_device(serial), local_spec, remote_spec, allow_rebind)
    return {"serial": serial, "local": str(local_spec), "remote": str(remote_spec)}


@mcp.tool()
def remove_forward(serial: str, local_port: int) -> dict[str, Any]:
    """Remove the forward bound to host port `local_port`.

    Args:
        serial: Device serial.
        local_port: Host TCP port (1-65535).
    """
    if not 1 <= local_port <= 65535:
        return {"error": "Port must be 1-65535"}
    _get_client().remove_forward(_device(serial), local_port)
    return {"removed": True, "local_port": local_port}


@mcp.tool()
def remove_all_forwards(serial: str) -> dict[str, Any]:
    """Remove every forward of a device."""
    _get_client().remove_all_forwards(_device(serial))
    return {"removed": True, "serial": serial}


@mcp.tool()
def list_forwards(serial: str) -> dict[str, Any]:
    """List the forwards the ADB server holds for a device."""
    rules = _get_client().list_forward(_device(serial))
    return {"forwards": [r.to_dict() for r in rules]}


# ─── SHELL & LOG TOOLS ───────────────────────────────────────────────

@mcp.tool()
def shell(
    serial: str,
    command: str,
    timeout: float = DEFAULT_SHELL_TIMEOUT,
    max_lines: int = 500,
) -> dict[str, Any]:
    """Run a shell command on a device and return its output.

    The command is cancelled once `timeout` seconds have passed; whatever
    was printed until then is returned with state "cancelled".

    Args:
        serial: Device serial.
        command: Shell command line.
        timeout: Seconds before the command is cancelled.
        max_lines: Keep at most this many trailing lines (1-5000).
    """
    if timeout <= 0:
        return {"error": "Timeout must be positive"}
    if not 1 <= max_lines <= MAX_SHELL_LINES:
        return {"error": f"max_lines must be 1-{MAX_SHELL_LINES}"}

    receiver = CollectingReceiver()
    token = CancellationToken()
    token.cancel_after(timeout)
    try:
        state = _get_client().execute_remote_command(
            command, _device(serial), receiver, token
        )
    finally:
        token.dispose()

    lines = receiver.lines
    return {
        "state": state.value,
        "output": "\n".join(lines[-max_lines:]),
        "line_count": len(lines),
        "truncated": len(lines) > max_lines,
    }


@mcp.tool()
def logcat(
    serial: str,
    buffers: list[str] | None = None,
    max_entries: int = 200,
    timeout: float = DEFAULT_LOGCAT_TIMEOUT,
) -> dict[str, Any]:
    """Read log entries from a device.

    Reading stops after `max_entries` entries or `timeout` seconds,
    whichever comes first.

    Args:
        serial: Device serial.
        buffers: Log buffers, e.g. ["main", "system", "crash"]. Default: main.
        max_entries: Entries to collect (1-2000).
        timeout: Seconds to keep reading.
    """
    names = [b.lower() for b in (buffers or ["main"])]
    valid = {log_id.name.lower() for log_id in LogId}
    for name in names:
        if name not in valid:
            return {"error": f"Unknown buffer '{name}'. Valid: {sorted(valid)}"}
    if not 1 <= max_entries <= MAX_LOGCAT_ENTRIES:
        return {"error": f"max_entries must be 1-{MAX_LOGCAT_ENTRIES}"}
    if timeout <= 0:
        return {"error": "Timeout must be positive"}

    entries: list[LogEntry] = []
    token = CancellationToken()

    def sink(entry: LogEntry) -> None:
        entries.append(entry)
        if len(entries) >= max_entries:
            token.cancel()

    token.cancel_after(timeout)
    try:
        state = _get_client().run_log_service(
            _device(serial), sink, *[LogId[n.upper()] for n in names],
            cancellation=token,
        )
    finally:
        token.dispose()

    return {
        "state": state.value,
        "entries": [e.to_dict() for e in entries],
        "count": len(entries),
    }


# ─── DEVICE CONTROL TOOLS ────────────────────────────────────────────

@mcp.tool()
def reboot(serial: str, into: str = "") -> dict[str, Any]:
    """Reboot a device.

    Args:
        serial: Device serial.
        into: "" for a normal reboot, or "bootloader", "recovery", "sideload".
    """
    _get_client().reboot(_device(serial), into)
    return {"rebooting": True, "serial": serial, "into": into or "system"}


@mcp.tool()
def root(serial: str) -> dict[str, Any]:
    """Restart adbd on the device as root (userdebug/eng builds only)."""
    _get_client().root(_device(serial))
    return {"root": True, "serial": serial}


@mcp.tool()
def unroot(serial: str) -> dict[str, Any]:
    """Restart adbd on the device without root."""
    _get_client().unroot(_device(serial))
    return {"root": False, "serial": serial}


@mcp.tool()
def install_apk(
    serial: str,
    apk_path: str,
    reinstall: bool = False,
    grant_permissions: bool = False,
) -> dict[str, Any]:
    """Install an APK by streaming it to the device's package manager.

    Args:
        serial: Device serial.
        apk_path: Path to the .apk file on this machine.
        reinstall: Replace an installed app, keeping its data (-r).
        grant_permissions: Grant all runtime permissions (-g).
    """
    path = Path(apk_path)
    if not path.is_file():
        return {"error": f"File not found: {apk_path}"}

    arguments = ["install"]
    if reinstall:
        arguments.append("-r")
    if grant_permissions:
        arguments.append("-g")

    with path.open("rb") as apk:
        status = _get_client().install(_device(serial), apk, *arguments)

    return {
        "installed": status.strip().startswith("Success"),
        "status": status.strip(),
        "size": path.stat().st_size,
    }


@mcp.tool()
def get_framebuffer_info(serial: str) -> dict[str, Any]:
    """Capture the screen and describe the framebuffer format."""
    framebuffer = _get_client().get_framebuffer(_device(serial))
    info = framebuffer.header.to_dict()
    info["data_length"] = len(framebuffer.data)
    return info


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("adb://server/info")
def resource_server_info() -> str:
    """ADB server endpoint and protocol version."""
    client = _get_client()
    try:
        version = client.get_adb_version()
    except AdbError as e:
        return json.dumps({
            "endpoint": str(client.endpoint),
            "running": False,
            "error": str(e),
        })
    return json.dumps({
        "endpoint": str(client.endpoint),
        "running": True,
        "version": version,
    })


@mcp.resource("adb://devices")
def resource_devices() -> str:
    """Attached devices."""
    devices = _get_client().get_devices()
    return json.dumps({"devices": [d.to_dict() for d in devices]})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def diagnose_device(serial: str) -> str:
    """Guide the AI through a health check of one device.

    Args:
        serial: Device serial.
    """
    return f"""Check the health of device {serial}.
Steps:
- Use list_devices to confirm the device state is "device"
- Use shell to run `getprop ro.build.fingerprint` and `uptime`
- Use shell to run `dumpsys battery` and `df -h /data`
- Use logcat with buffers ["crash"] to look for recent crashes

Summarize anything unusual and suggest next steps."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    config = ClientConfig.from_env()
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))
    logger.info("Using ADB server at %s:%d", config.host, config.port)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
