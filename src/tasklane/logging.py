"""Logging infrastructure for tasklane.

Provides the Logger interface used for dependency injection of diagnostic output.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod


class LogLevel(enum.Enum):
    """Log verbosity levels for tasklane diagnostic messages.

    Lower numeric values represent higher severity / less verbosity.
    """
    FATAL = 0  # Only unrecoverable errors (malformed config, cycles, unknown tasks)
    ERROR = 1  # Fatal errors plus task execution failures
    WARN = 2   # Errors plus warnings (cache problems, failing finally commands)
    INFO = 3   # Warnings plus normal execution progress and task output (default)
    DEBUG = 4  # Info plus commands, probe results, resolved shell
    TRACE = 5  # Debug plus cache loads, saves and fingerprints


class Logger(ABC):
    """Abstract logger.

    Implementations decide where messages go; callers only choose a level.
    """

    @abstractmethod
    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        ...

    def fatal(self, *args, **kwargs) -> None:
        self.log(LogLevel.FATAL, *args, **kwargs)

    def error(self, *args, **kwargs) -> None:
        self.log(LogLevel.ERROR, *args, **kwargs)

    def warn(self, *args, **kwargs) -> None:
        self.log(LogLevel.WARN, *args, **kwargs)

    def info(self, *args, **kwargs) -> None:
        self.log(LogLevel.INFO, *args, **kwargs)

    def debug(self, *args, **kwargs) -> None:
        self.log(LogLevel.DEBUG, *args, **kwargs)

    def trace(self, *args, **kwargs) -> None:
        self.log(LogLevel.TRACE, *args, **kwargs)


def parse_log_level(value: str) -> LogLevel:
    """Convert a user-supplied level name (case-insensitive) to a LogLevel.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LogLevel[value.strip().upper()]
    except KeyError:
        valid = ", ".join(level.name.lower() for level in LogLevel)
        raise ValueError(f"Invalid log level '{value}'. Valid levels: {valid}") from None
