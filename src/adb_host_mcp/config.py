"""Configuration defaults and environment loading."""

from __future__ import annotations

import os
from dataclasses import dataclass

# ========= Protocol constants =========
ENCODING = "ISO-8859-1"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5037
DEFAULT_DEVICE_PORT = 5555

# ========= Timing / sizes =========
CONNECT_TIMEOUT = 10.0
BUFFER_SIZE = 4096
INSTALL_CHUNK_SIZE = 1024
STATUS_BUFFER_SIZE = 1024
ROOT_RESTART_DELAY = 3.0

DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class ClientConfig:
    """Where the ADB server lives and how long to wait for it."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    connect_timeout: float | None = CONNECT_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a config from ``ANDROID_ADB_SERVER_*`` style variables.

        Unset variables keep their defaults. A connect timeout of ``0``
        disables the timeout entirely.
        """
        env = os.environ if environ is None else environ
        config = cls()
        config.host = env.get("ANDROID_ADB_SERVER_ADDRESS", config.host)
        config.port = int(env.get("ANDROID_ADB_SERVER_PORT", config.port))

        timeout = env.get("ADB_HOST_MCP_CONNECT_TIMEOUT")
        if timeout is not None:
            value = float(timeout)
            config.connect_timeout = value if value > 0 else None

        config.log_level = env.get("ADB_HOST_MCP_LOG_LEVEL", config.log_level).upper()
        return config
