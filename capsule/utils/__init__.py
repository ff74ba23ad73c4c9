"""Utility modules for the time capsule service."""

from capsule.utils.logging import (
    get_log_buffer,
    LogLevel,
    LogEntry,
    LogBuffer,
    AppLogger,
    store_logger,
    delivery_logger,
    scheduler_logger,
)

__all__ = [
    "get_log_buffer",
    "LogLevel",
    "LogEntry",
    "LogBuffer",
    "AppLogger",
    "store_logger",
    "delivery_logger",
    "scheduler_logger",
]
