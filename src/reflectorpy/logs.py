"""Hierarchical, depth-indented log accumulator."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

_INDENT = "  "


class LogType(Enum):
    """Severity of a log entry."""

    TRACE = "Trace"
    DEBUG = "Debug"
    INFO = "Info"
    SUCCESS = "Success"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"


_STDLIB_LEVELS: dict[LogType, int] = {
    LogType.TRACE: logging.DEBUG,
    LogType.DEBUG: logging.DEBUG,
    LogType.INFO: logging.INFO,
    LogType.SUCCESS: logging.INFO,
    LogType.WARNING: logging.WARNING,
    LogType.ERROR: logging.WARNING,
    LogType.CRITICAL: logging.ERROR,
}


def padding(depth: int) -> str:
    """Indentation prefix for a recursion depth."""
    return _INDENT * max(depth, 0)


@dataclass(frozen=True)
class LogEntry:
    """A single message recorded at a recursion depth."""

    depth: int
    message: str
    type: LogType = LogType.INFO

    def __str__(self) -> str:
        return f"{padding(self.depth)}[{self.type.value}] {self.message}"


@dataclass
class Logs:
    """Ordered collection of log entries.

    Each recursive reflector call appends at its own depth, so printing the
    collection gives an indented tree that mirrors the walked object graph.
    Entries are also forwarded to the stdlib ``reflectorpy`` logger at debug
    level and above.

    Example:
        logs = Logs()
        reflector.populate(obj, data, logs=logs)
        print(logs)

    """

    entries: list[LogEntry] = field(default_factory=list)

    def append(self, message: str, depth: int = 0, type: LogType = LogType.INFO) -> None:
        entry = LogEntry(depth=depth, message=message, type=type)
        self.entries.append(entry)
        logger.log(_STDLIB_LEVELS[type], "%s", entry)

    def trace(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.TRACE)

    def debug(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.DEBUG)

    def info(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.INFO)

    def success(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.SUCCESS)

    def warning(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.WARNING)

    def error(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.ERROR)

    def critical(self, message: str, depth: int = 0) -> None:
        self.append(message, depth, LogType.CRITICAL)

    def of_type(self, type: LogType) -> list[LogEntry]:
        """Return entries with the given severity."""
        return [e for e in self.entries if e.type is type]

    @property
    def has_errors(self) -> bool:
        return any(e.type in (LogType.ERROR, LogType.CRITICAL) for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.entries)

    def __str__(self) -> str:
        return "\n".join(str(e) for e in self.entries)
