"""Content-addressable fingerprints for task cache freshness."""

from __future__ import annotations

import glob
import hashlib
import os
from pathlib import Path
from typing import Mapping, Optional

from tasklane.errors import CacheIOError
from tasklane.parser import Task
from tasklane.state import CacheEntry

# Section tags keep the three components of the digest apart
_SOURCES_TAG = b"S"
_ENV_TAG = b"E"
_COMMANDS_TAG = b"C"


def _update_field(hasher, data: bytes) -> None:
    # Length prefix avoids "ab"+"c" / "a"+"bc" collisions
    hasher.update(len(data).to_bytes(8, "big"))
    hasher.update(data)


def _glob(pattern: str, project_root: Path) -> list[Path]:
    """Matches for a pattern relative to the project root; absolute patterns are used as is.

    Raises:
        CacheIOError: If the pattern cannot be expanded
    """
    try:
        matches = glob.glob(pattern, root_dir=project_root, recursive=True)
    except (OSError, ValueError) as e:
        raise CacheIOError(f"Cannot expand pattern '{pattern}': {e}") from e
    return [project_root / match for match in matches]


def _key(path: Path, project_root: Path) -> str:
    """Stable POSIX key for a path: relative to the project root where possible."""
    try:
        return Path(os.path.relpath(path, project_root)).as_posix()
    except ValueError:
        # Different drive on Windows
        return path.as_posix()


def expand_sources(patterns: list[str], project_root: Path) -> list[str]:
    """Expand source globs to files, as POSIX paths relative to the project root sorted lexically.

    Raises:
        CacheIOError: If a pattern cannot be expanded
    """
    files: set[str] = set()
    for pattern in patterns:
        for match in _glob(pattern, project_root):
            if match.is_file():
                files.add(_key(match, project_root))
    return sorted(files)


def fingerprint(
    task: Task,
    env: Mapping[str, str],
    commands: list[str],
    project_root: Path,
) -> str:
    """Compute the cache digest of a task's inputs.

    The digest covers the content of every file matched by ``sources``
    (keyed by path), every resolved environment variable, and the command
    texts selected for the current platform.

    Raises:
        CacheIOError: If a source pattern cannot be expanded or a matched file cannot be read
    """
    hasher = hashlib.blake2b(digest_size=32)

    source_files = expand_sources(task.sources, project_root)
    hasher.update(_SOURCES_TAG)
    _update_field(hasher, str(len(source_files)).encode())
    for rel_path in source_files:
        try:
            content = (project_root / rel_path).read_bytes()
        except OSError as e:
            raise CacheIOError(f"Cannot read source file '{rel_path}': {e}") from e
        _update_field(hasher, rel_path.encode())
        _update_field(hasher, content)

    hasher.update(_ENV_TAG)
    _update_field(hasher, str(len(env)).encode())
    for name in sorted(env):
        _update_field(hasher, name.encode())
        _update_field(hasher, env[name].encode())

    hasher.update(_COMMANDS_TAG)
    _update_field(hasher, str(len(commands)).encode())
    for command in commands:
        _update_field(hasher, command.encode())

    return hasher.hexdigest()


def _pattern_matches(pattern: str, project_root: Path) -> list[Path]:
    if any(ch in pattern for ch in "*?["):
        return _glob(pattern, project_root)
    path = project_root / pattern
    return [path] if path.exists() else []


def missing_outputs(task: Task, project_root: Path) -> list[str]:
    """Output patterns with nothing matching on disk."""
    return [p for p in task.outputs if not _pattern_matches(p, project_root)]


def matched_outputs(task: Task, project_root: Path) -> list[str]:
    """Existing output paths, relative to the project root where possible, sorted.

    Raises:
        CacheIOError: If a pattern cannot be expanded
    """
    found: set[str] = set()
    for pattern in task.outputs:
        for path in _pattern_matches(pattern, project_root):
            found.add(_key(path, project_root))
    return sorted(found)


def is_fresh(
    task: Task,
    digest: str,
    entry: Optional[CacheEntry],
    project_root: Path,
) -> bool:
    """Check whether a task's previous results are still valid.

    Fresh iff the task is cacheable, the stored digest equals ``digest``,
    every declared output currently exists, and every output path recorded
    with the entry still exists.

    Raises:
        CacheIOError: If an output pattern cannot be expanded
    """
    if not task.cacheable or entry is None:
        return False
    if entry.digest != digest:
        return False
    if missing_outputs(task, project_root):
        return False
    return all((project_root / path).exists() for path in entry.outputs)
