"""Exception types raised by tasklane."""

from __future__ import annotations


class TasklaneError(Exception):
    """Base class for all tasklane errors."""

    pass


class ConfigError(TasklaneError):
    """Raised when the configuration is malformed or conflicting."""

    pass


class CycleError(TasklaneError):
    """Raised when a dependency cycle is detected.

    The ``cycle`` attribute holds the ordered path, first node repeated at the end.
    """

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class UnknownTaskError(TasklaneError):
    """Raised when a task or a dependency name does not resolve to a defined task."""

    def __init__(self, name: str, referenced_by: str | None = None):
        self.name = name
        self.referenced_by = referenced_by
        if referenced_by:
            message = f"Task '{referenced_by}' depends on unknown task '{name}'"
        else:
            message = f"Task not found: {name}"
        super().__init__(message)


class DynamicVariableError(TasklaneError):
    """Raised when a $(command) environment value cannot be resolved."""

    pass


class SpawnError(TasklaneError):
    """Raised when a command or its shell could not be launched."""

    pass


class CommandExecutionError(TasklaneError):
    """Raised when a command fails in a way that fails its task."""

    pass


class TaskTimeoutError(TasklaneError):
    """Raised when a command exceeds its task's timeout and is terminated."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s: {command}")


class CacheIOError(TasklaneError):
    """Raised when the cache store or a source file cannot be read or written."""

    pass
