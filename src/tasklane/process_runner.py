"""Process execution abstraction layer.

This module provides an interface for running a single shell command as a
subprocess, allowing for better testability and dependency injection.
"""

from __future__ import annotations

import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import Thread
from typing import Any, Callable, Mapping, Optional

from tasklane.errors import SpawnError, TaskTimeoutError
from tasklane.logging import Logger
from tasklane.platforms import Shell

__all__ = [
    "Outcome",
    "OutputCallback",
    "ProcessRunner",
    "SubprocessRunner",
    "TaskOutputTypes",
    "make_process_runner",
    "stream_output",
]

# Called with ("stdout" | "stderr", line without trailing newline)
OutputCallback = Callable[[str, str], None]


class TaskOutputTypes(Enum):
    """Task output control modes."""

    ALL = "all"
    NONE = "none"
    OUT = "out"
    ERR = "err"

    def shows(self, stream: str) -> bool:
        if self is TaskOutputTypes.ALL:
            return True
        if self is TaskOutputTypes.OUT:
            return stream == "stdout"
        if self is TaskOutputTypes.ERR:
            return stream == "stderr"
        return False


@dataclass
class Outcome:
    """Result of one command invocation."""

    exit_code: int
    duration: float
    output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class ProcessRunner(ABC):
    """Abstract interface for running one command to completion."""

    @abstractmethod
    def run(
        self,
        command: str,
        shell: Shell,
        env: Mapping[str, str],
        cwd: Path,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> Outcome:
        """
        Run a command through the shell.

        Args:
            command: Command text interpreted by the shell
            shell: Shell executable and flag
            env: Complete environment for the process
            cwd: Working directory
            timeout: Seconds before the process is killed (None for no limit)
            on_output: Receives every output line as it is produced

        Returns:
            Outcome with exit code, duration and the combined captured output

        Raises:
            SpawnError: If the shell could not be launched
            TaskTimeoutError: If the timeout elapsed; the process has been killed
        """
        ...


def stream_output(pipe: Any, stream_name: str, sink: Callable[[str, str], None]) -> None:
    """
    Forward lines from a pipe to a sink.

    If the pipe is closed or an I/O error occurs while reading, the function
    returns without raising, which is expected when the process is killed.
    """
    if pipe:
        try:
            for line in pipe:
                sink(stream_name, line.rstrip("\r\n"))
        except (OSError, ValueError):
            pass


class SubprocessRunner(ProcessRunner):
    """
    Process runner built on subprocess.Popen.

    stdout and stderr are read by two threads so that output is forwarded
    line by line while it is also collected for the Outcome.
    """

    join_timeout_secs = 1.0

    def __init__(self, logger: Logger) -> None:
        self._logger = logger

    def run(
        self,
        command: str,
        shell: Shell,
        env: Mapping[str, str],
        cwd: Path,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> Outcome:
        lines: list[str] = []
        lock = threading.Lock()

        def sink(stream_name: str, line: str) -> None:
            with lock:
                lines.append(line)
            if on_output is not None:
                on_output(stream_name, line)

        self._logger.trace(f"Spawning {shell.argv(command)!r} in {cwd}", markup=False)
        start = time.monotonic()
        try:
            process = subprocess.Popen(
                shell.argv(command),
                cwd=cwd,
                env=dict(env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise SpawnError(f"Could not launch shell '{shell.executable}': {e}") from e

        threads = [
            Thread(target=stream_output, args=(process.stdout, "stdout", sink), name="stdout-streamer"),
            Thread(target=stream_output, args=(process.stderr, "stderr", sink), name="stderr-streamer"),
        ]
        for thread in threads:
            thread.start()

        try:
            exit_code = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
            self._join(threads)
            raise TaskTimeoutError(command, timeout) from None

        self._join(threads)
        with lock:
            output = "\n".join(lines)
        return Outcome(exit_code=exit_code, duration=time.monotonic() - start, output=output)

    def _join(self, threads: list[Thread]) -> None:
        for thread in threads:
            thread.join(timeout=self.join_timeout_secs)
            if thread.is_alive():
                self._logger.warn(
                    f"Stream thread did not complete within timeout of {self.join_timeout_secs} seconds"
                )


def make_process_runner(logger: Logger) -> ProcessRunner:
    """Factory for the default ProcessRunner."""
    return SubprocessRunner(logger)
