"""Bounded in-memory activity log served by GET /logs.

One LogBuffer is created per app and handed to every component.
Entries are echoed to the standard logging module so they also
reach the process log.

Blocking SDK calls run in worker threads, so appends and reads are
guarded by a lock.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("failed_payments.activity")

DEFAULT_CAPACITY = 100

_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def utc_now_iso() -> str:
    """Current UTC instant as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LogBuffer:
    """FIFO ring of the most recent activity entries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._total = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    @property
    def total(self) -> int:
        """Number of entries ever recorded, including evicted ones."""
        with self._lock:
            return self._total

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def record(self, message: str, level: str = "info") -> LogEntry:
        """Append an entry stamped with the current time. Oldest entries fall off."""
        if level not in _LEVELS:
            raise ValueError(f"Unknown log level: {level!r}")
        entry = LogEntry(timestamp=utc_now_iso(), level=level, message=message)
        with self._lock:
            self._entries.append(entry)
            self._total += 1
        logger.log(_LEVELS[level], "[%s] %s", level.upper(), message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.record(message, "info")

    def warn(self, message: str) -> LogEntry:
        return self.record(message, "warn")

    def error(self, message: str) -> LogEntry:
        return self.record(message, "error")

    def recent(self, n: int) -> list[LogEntry]:
        """Last n entries, oldest first. Does not mutate the buffer."""
        if n <= 0:
            return []
        with self._lock:
            entries = list(self._entries)
        return entries[-n:]
