"""Portable built-in file operations invoked with the ``p:`` prefix.

A command string is classified once at dispatch time into either a
``BuiltIn`` operation handled in-process or an ``External`` command passed
to the shell.
"""

from __future__ import annotations

import glob
import shlex
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from tasklane.platforms import _IS_WINDOWS
from tasklane.process_runner import Outcome, OutputCallback

PREFIX = "p:"


@dataclass(frozen=True)
class BuiltIn:
    op: str
    args: tuple[str, ...]


@dataclass(frozen=True)
class External:
    command_text: str


Command = Union[BuiltIn, External]


class PortableCommandError(Exception):
    """Raised by a built-in handler when the operation cannot be completed."""

    pass


def classify_command(command_text: str) -> Command:
    """Decide whether a command is a portable built-in or an external command.

    Raises:
        PortableCommandError: If a ``p:`` command cannot be tokenized
    """
    stripped = command_text.strip()
    if not stripped.startswith(PREFIX):
        return External(command_text)

    try:
        words = shlex.split(stripped, posix=not _IS_WINDOWS)
    except ValueError as e:
        raise PortableCommandError(f"Failed to parse portable command '{stripped}': {e}") from e

    return BuiltIn(op=words[0][len(PREFIX):], args=tuple(words[1:]))


def is_builtin(command_text: str) -> bool:
    return command_text.strip().startswith(PREFIX)


def run_builtin(
    command: BuiltIn, cwd: Path, on_output: Optional[OutputCallback] = None
) -> Outcome:
    """Execute a built-in in-process.

    Handler failures become exit code 1 with the message on the stderr stream.
    """
    lines: list[str] = []

    def emit(stream_name: str, line: str) -> None:
        lines.append(line)
        if on_output is not None:
            on_output(stream_name, line)

    start = time.monotonic()
    handler = HANDLERS.get(command.op)
    exit_code = 0
    try:
        if handler is None:
            raise PortableCommandError(f"Unknown portable command: {PREFIX}{command.op}")
        handler(list(command.args), cwd, lambda line: emit("stdout", line))
    except (PortableCommandError, OSError) as e:
        emit("stderr", f"{PREFIX}{command.op}: {e}")
        exit_code = 1

    return Outcome(exit_code=exit_code, duration=time.monotonic() - start, output="\n".join(lines))


def _split_flags(args: list[str]) -> tuple[set[str], list[str]]:
    flags: set[str] = set()
    paths: list[str] = []
    for arg in args:
        if arg.startswith("-") and len(arg) > 1:
            if arg.startswith("--"):
                flags.add(arg)
            else:
                flags.update(arg[1:])
        else:
            paths.append(arg)
    return flags, paths


def expand_globs(args: list[str], cwd: Path) -> list[str]:
    """Expand glob arguments relative to cwd.

    Matches are sorted; a pattern without matches is kept literally.
    """
    expanded: list[str] = []
    for arg in args:
        if any(ch in arg for ch in "*?["):
            matches = sorted(glob.glob(arg, root_dir=cwd, recursive=True))
            expanded.extend(matches if matches else [arg])
        else:
            expanded.append(arg)
    return expanded


def _resolve(cwd: Path, path: str) -> Path:
    return cwd / path


def handle_rm(args: list[str], cwd: Path, write: Callable[[str], None]) -> None:
    flags, paths = _split_flags(args)
    recursive = bool(flags & {"r", "R", "--recursive"})
    force = bool(flags & {"f", "--force"})

    for name in expand_globs(paths, cwd):
        path = _resolve(cwd, name)
        if not path.exists() and not path.is_symlink():
            if not force:
                raise PortableCommandError(f"File not found: {name}")
            continue

        if path.is_dir() and not path.is_symlink():
            if not recursive:
                raise PortableCommandError(f"Cannot remove directory '{name}' without -r")
            shutil.rmtree(path)
        else:
            path.unlink()


def handle_mkdir(args: list[str], cwd: Path, write: Callable[[str], None]) -> None:
    flags, paths = _split_flags(args)
    parents = bool(flags & {"p", "--parents"})

    for name in paths:
        path = _resolve(cwd, name)
        if parents:
            path.mkdir(parents=True, exist_ok=True)
        else:
            path.mkdir()


def _sources_and_destination(
    op: str, paths: list[str], cwd: Path
) -> tuple[list[str], Path, str]:
    if len(paths) < 2:
        raise PortableCommandError(f"{op} requires at least source and destination")

    destination = paths[-1]
    sources = expand_globs(paths[:-1], cwd)
    dest_path = _resolve(cwd, destination)

    if len(sources) > 1 and not dest_path.is_dir():
        raise PortableCommandError(f"Target '{destination}' is not a directory")

    return sources, dest_path, destination


def handle_cp(args: list[str], cwd: Path, write: Callable[[str], None]) -> None:
    flags, paths = _split_flags(args)
    recursive = bool(flags & {"r", "R", "--recursive"})
    sources, dest_path, _ = _sources_and_destination("cp", paths, cwd)

    for name in sources:
        src = _resolve(cwd, name)
        if not src.exists():
            raise PortableCommandError(f"Source not found: {name}")

        target = dest_path / src.name if dest_path.is_dir() else dest_path
        if src.is_dir():
            if not recursive:
                raise PortableCommandError(f"Omitting directory '{name}' (use -r to copy)")
            shutil.copytree(src, target, dirs_exist_ok=True)
        else:
            shutil.copy2(src, target)


def handle_mv(args: list[str], cwd: Path, write: Callable[[str], None]) -> None:
    _, paths = _split_flags(args)
    sources, dest_path, _ = _sources_and_destination("mv", paths, cwd)

    for name in sources:
        src = _resolve(cwd, name)
        if not src.exists():
            raise PortableCommandError(f"Source not found: {name}")

        target = dest_path / src.name if dest_path.is_dir() else dest_path
        shutil.move(str(src), str(target))


def handle_ls(args: list[str], cwd: Path, write: Callable[[str], None]) -> None:
    _, paths = _split_flags(args)
    directory = _resolve(cwd, paths[0] if paths else ".")
    if not directory.is_dir():
        raise PortableCommandError(f"Failed to read directory: {paths[0] if paths else '.'}")

    for entry in sorted(p.name for p in directory.iterdir()):
        write(entry)


def handle_cat(args: list[str], cwd: Path, write: Callable[[str], None]) -> None:
    names = expand_globs(args, cwd)
    if not names:
        write("Usage: p:cat <file1> <file2> ...")
        return

    for name in names:
        path = _resolve(cwd, name)
        if not path.exists():
            write(f"cat: {name}: No such file")
            continue
        if path.is_dir():
            write(f"cat: {name}: Is a directory")
            continue
        for line in path.read_text(errors="replace").splitlines():
            write(line)


HANDLERS: dict[str, Callable[[list[str], Path, Callable[[str], None]], None]] = {
    "rm": handle_rm,
    "mkdir": handle_mkdir,
    "cp": handle_cp,
    "mv": handle_mv,
    "ls": handle_ls,
    "cat": handle_cat,
}
