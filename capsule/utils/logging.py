"""
Centralized logging for the time capsule service.

Every message goes to Python logging and to an in-memory buffer, so the
delivery CLI can report recent errors and warnings without external log
aggregation.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from collections import deque
from enum import Enum
from threading import Lock

class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

class LogEntry:
    """A single buffered log entry."""

    def __init__(
        self,
        level: LogLevel,
        message: str,
        source: str = "capsule",
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.timestamp = datetime.now(timezone.utc)
        self.level = level
        self.message = message
        self.source = source
        self.metadata = metadata or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "source": self.source,
            "metadata": self.metadata
        }

class LogBuffer:
    """Thread-safe bounded buffer of the most recent log entries."""

    def __init__(self, max_size: int = 500):
        self._buffer: deque = deque(maxlen=max_size)
        self._lock = Lock()

    def add(self, entry: LogEntry):
        with self._lock:
            self._buffer.append(entry)

    def get_recent(
        self,
        limit: int = 100,
        level: Optional[LogLevel] = None,
        source: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get recent entries, newest first, optionally filtered."""
        with self._lock:
            entries = list(self._buffer)

        if level:
            entries = [e for e in entries if e.level == level]
        if source:
            entries = [e for e in entries if e.source == source]

        entries.reverse()
        return [e.to_dict() for e in entries[:limit]]

    def get_errors(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent errors, newest first."""
        with self._lock:
            entries = [
                e for e in self._buffer
                if e.level == LogLevel.ERROR
            ]
        entries.reverse()
        return [e.to_dict() for e in entries[:limit]]

    def get_stats(self) -> Dict[str, Any]:
        """Count buffered entries by level and by source."""
        by_level: Dict[str, int] = {}
        by_source: Dict[str, int] = {}
        with self._lock:
            total = len(self._buffer)
            for entry in self._buffer:
                by_level[entry.level.value] = by_level.get(entry.level.value, 0) + 1
                by_source[entry.source] = by_source.get(entry.source, 0) + 1

        return {
            "total": total,
            "by_level": by_level,
            "by_source": by_source,
        }

    def clear(self):
        with self._lock:
            self._buffer.clear()

_log_buffer = LogBuffer()

def get_log_buffer() -> LogBuffer:
    """Get the process-wide log buffer."""
    return _log_buffer

class AppLogger:
    """
    Logger that writes to both Python logging and the in-memory buffer.

    Keyword arguments passed to the level methods are kept as structured
    metadata on the buffered entry and appended to the stdlib message.
    """

    def __init__(self, source: str):
        self.source = source
        self._logger = logging.getLogger(f"capsule.{source}")

    def _log(
        self,
        level: LogLevel,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        _log_buffer.add(LogEntry(level, message, self.source, metadata))

        log_level = getattr(logging, level.value.upper())
        extra_msg = f" | {metadata}" if metadata else ""
        self._logger.log(log_level, f"{message}{extra_msg}")

    def info(self, message: str, **metadata):
        self._log(LogLevel.INFO, message, metadata if metadata else None)

    def warning(self, message: str, **metadata):
        self._log(LogLevel.WARNING, message, metadata if metadata else None)

    def error(self, message: str, **metadata):
        self._log(LogLevel.ERROR, message, metadata if metadata else None)

# Pre-configured loggers for common sources
store_logger = AppLogger("store")
delivery_logger = AppLogger("delivery")
scheduler_logger = AppLogger("scheduler")
