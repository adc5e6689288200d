"""Log entry models for the binary ``logcat -B`` stream."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import IntEnum


class LogId(IntEnum):
    """Log buffer identifiers, as numbered in ``logger_entry.lid``."""

    MAIN = 0
    RADIO = 1
    EVENTS = 2
    SYSTEM = 3
    CRASH = 4
    STATS = 5
    SECURITY = 6
    KERNEL = 7


# Buffers whose payload is priority + tag + message text
TEXT_LOG_IDS = frozenset(
    {LogId.MAIN, LogId.RADIO, LogId.SYSTEM, LogId.CRASH, LogId.KERNEL}
)


class LogPriority(IntEnum):
    UNKNOWN = 0
    DEFAULT = 1
    VERBOSE = 2
    DEBUG = 3
    INFO = 4
    WARN = 5
    ERROR = 6
    FATAL = 7
    SILENT = 8


@dataclass
class LogEntry:
    """A raw log record. ``log_id`` and ``uid`` are absent on v1 headers."""

    pid: int
    tid: int
    seconds: int
    nanoseconds: int
    data: bytes
    log_id: int | None = None
    uid: int | None = None

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(
            self.seconds + self.nanoseconds / 1e9, tz=timezone.utc
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["data"] = self.data.hex()
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass
class AndroidLogEntry(LogEntry):
    """A text log record: priority, tag and message decoded from ``data``."""

    priority: int = LogPriority.UNKNOWN
    tag: str = ""
    message: str = ""

    def to_dict(self) -> dict:
        d = super().to_dict()
        del d["data"]
        try:
            d["priority"] = LogPriority(self.priority).name
        except ValueError:
            d["priority"] = str(self.priority)
        return d
