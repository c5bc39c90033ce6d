"""Cache record persistence."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from tasklane.errors import CacheIOError
from tasklane.logging import Logger

CACHE_FORMAT_VERSION = 1


@dataclass
class CacheEntry:
    """Last known fingerprint of a task plus the outputs that existed."""

    digest: str
    outputs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "digest": self.digest,
            "outputs": self.outputs,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """Create from a stored entry.

        Raises:
            KeyError, TypeError, ValueError: If the entry is malformed
        """
        digest = data["digest"]
        outputs = data.get("outputs", [])
        if not isinstance(digest, str) or not isinstance(outputs, list):
            raise ValueError("malformed cache entry")
        return cls(digest=digest, outputs=[str(o) for o in outputs])


class StateManager:
    """
    Manages the cache record at .tasklane/cache.json.

    The record is read once (best-effort), updated in memory under a lock as
    tasks succeed, and written back once by save().
    """

    STATE_DIR = ".tasklane"
    STATE_FILE = "cache.json"

    def __init__(self, project_root: Path, logger: Optional[Logger] = None):
        self.logger = logger
        self.project_root = project_root
        self.state_path = project_root / self.STATE_DIR / self.STATE_FILE
        self._state: dict[str, CacheEntry] = {}
        self._loaded = False
        self._dirty = False
        self._lock = threading.Lock()

    def load(self) -> None:
        """
        Load the cache record if it exists.

        Unreadable or corrupt files are treated as an empty record. Malformed
        entries are dropped individually; unknown keys are ignored.
        """
        with self._lock:
            self._state = {}
            self._loaded = True

            if not self.state_path.exists():
                self._trace(f"No cache file found at {self.state_path}")
                return

            self._trace(f"Loading cache from {self.state_path}")
            try:
                with open(self.state_path, "r") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                if self.logger:
                    self.logger.warn(f"[yellow]Cache file unreadable, starting fresh: {e}[/yellow]")
                return

            tasks = data.get("tasks", {}) if isinstance(data, dict) else {}
            if not isinstance(tasks, dict):
                tasks = {}

            for name, value in tasks.items():
                try:
                    self._state[name] = CacheEntry.from_dict(value)
                except (KeyError, TypeError, ValueError):
                    self._trace(f"Ignoring malformed cache entry for '{name}'")

            self._trace(f"Loaded {len(self._state)} cache entr(ies)")

    def save(self) -> None:
        """
        Write the cache record.

        Raises:
            CacheIOError: If the file cannot be written
        """
        with self._lock:
            data = {
                "version": CACHE_FORMAT_VERSION,
                "tasks": {name: entry.to_dict() for name, entry in sorted(self._state.items())},
            }
            self._trace(f"Saving cache to {self.state_path} ({len(self._state)} entr(ies))")
            try:
                self.state_path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.state_path.with_suffix(".tmp")
                with open(tmp_path, "w") as f:
                    json.dump(data, f, indent=2)
                tmp_path.replace(self.state_path)
            except OSError as e:
                raise CacheIOError(f"Cannot write cache file {self.state_path}: {e}") from e
            self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get(self, task_name: str) -> CacheEntry | None:
        if not self._loaded:
            self.load()
        with self._lock:
            return self._state.get(task_name)

    def set(self, task_name: str, entry: CacheEntry) -> None:
        if not self._loaded:
            self.load()
        with self._lock:
            self._state[task_name] = entry
            self._dirty = True

    def prune(self, valid_task_names: set[str]) -> None:
        """Remove entries for tasks that no longer exist."""
        if not self._loaded:
            self.load()
        with self._lock:
            stale = [name for name in self._state if name not in valid_task_names]
            if stale:
                self._trace(f"Pruning {len(stale)} stale cache entr(ies): {', '.join(stale[:5])}{'...' if len(stale) > 5 else ''}")
            for name in stale:
                del self._state[name]
                self._dirty = True

    def clear(self) -> None:
        with self._lock:
            self._state = {}
            self._loaded = True
            self._dirty = True

    def _trace(self, message: str) -> None:
        if self.logger:
            self.logger.trace(message)
