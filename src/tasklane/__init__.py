"""tasklane - a cross-platform task runner with dependency scheduling and caching."""

__version__ = "0.1.0"

from tasklane.errors import (
    CacheIOError,
    CommandExecutionError,
    ConfigError,
    CycleError,
    DynamicVariableError,
    SpawnError,
    TaskTimeoutError,
    TasklaneError,
    UnknownTaskError,
)
from tasklane.executor import ExecutionResult, Executor, RunSummary, SkipReason, Status, TaskStatus
from tasklane.graph import DependencyGraph, TaskGroup, build_dependency_tree
from tasklane.hasher import fingerprint, is_fresh
from tasklane.parser import Project, Recipe, Task, find_recipe_file, parse_recipe
from tasklane.state import CacheEntry, StateManager

__all__ = [
    "__version__",
    "Executor",
    "ExecutionResult",
    "RunSummary",
    "SkipReason",
    "Status",
    "TaskStatus",
    "DependencyGraph",
    "TaskGroup",
    "build_dependency_tree",
    "fingerprint",
    "is_fresh",
    "Project",
    "Recipe",
    "Task",
    "find_recipe_file",
    "parse_recipe",
    "CacheEntry",
    "StateManager",
    "TasklaneError",
    "ConfigError",
    "CycleError",
    "UnknownTaskError",
    "DynamicVariableError",
    "SpawnError",
    "CommandExecutionError",
    "TaskTimeoutError",
    "CacheIOError",
]
