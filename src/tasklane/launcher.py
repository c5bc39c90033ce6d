"""Command dispatch and retry policy.

Commands starting with ``p:`` are routed to the portable built-ins; every
other command is launched through the ProcessRunner with the selected shell.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from rich.markup import escape

from tasklane.errors import TaskTimeoutError
from tasklane.logging import Logger
from tasklane.platforms import Shell
from tasklane.portable import BuiltIn, PortableCommandError, classify_command, run_builtin
from tasklane.process_runner import Outcome, OutputCallback, ProcessRunner


@dataclass
class CommandRecord:
    """One finished command invocation, kept for execution log files."""

    command: str
    exit_code: Optional[int]  # None when the command timed out
    duration: float
    output: str = ""


@dataclass
class RunReport:
    """Final outcome of a command list after the retry policy was applied."""

    attempts: int = 0
    exit_code: Optional[int] = 0
    failed_command: Optional[str] = None
    error: Optional[str] = None
    history: list[CommandRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed_command is None


class CommandLauncher:
    """Launches commands by dispatching on the ``p:`` prefix."""

    def __init__(self, process_runner: ProcessRunner, shell: Shell, logger: Logger):
        self.process_runner = process_runner
        self.shell = shell
        self.logger = logger

    def launch(
        self,
        command: str,
        env: Mapping[str, str],
        cwd: Path,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> Outcome:
        """Run one command to completion.

        Raises:
            SpawnError: If an external command's shell could not be launched
            TaskTimeoutError: If an external command exceeded the timeout
        """
        try:
            kind = classify_command(command)
        except PortableCommandError as e:
            message = str(e)
            if on_output is not None:
                on_output("stderr", message)
            return Outcome(exit_code=1, duration=0.0, output=message)

        if isinstance(kind, BuiltIn):
            return run_builtin(kind, cwd, on_output)

        return self.process_runner.run(
            kind.command_text, self.shell, env, cwd, timeout=timeout, on_output=on_output
        )

    def launch_with_retry(
        self,
        commands: list[str],
        env: Mapping[str, str],
        cwd: Path,
        timeout: Optional[float] = None,
        retry: int = 0,
        retry_delay: float = 0.0,
        cancel_event: Optional[threading.Event] = None,
        on_output: Optional[OutputCallback] = None,
        label: str = "",
    ) -> RunReport:
        """
        Run a command list as one attempt, retrying the attempt on failure.

        An attempt stops at the first command that exits non-zero or times
        out. While retry budget remains and no cancellation was requested, the
        launcher waits ``retry_delay`` seconds and starts a new attempt, for at
        most ``retry + 1`` attempts. The last attempt decides the report.

        Raises:
            SpawnError: Never retried; propagated to the caller immediately
        """
        report = RunReport()
        max_attempts = retry + 1

        while True:
            report.attempts += 1
            report.exit_code = 0
            report.failed_command = None
            report.error = None

            for command in commands:
                self.logger.debug(f"[dim]{escape(label)}$[/dim] {escape(command)}")
                start = time.monotonic()
                try:
                    outcome = self.launch(command, env, cwd, timeout=timeout, on_output=on_output)
                except TaskTimeoutError as e:
                    report.history.append(
                        CommandRecord(command, None, time.monotonic() - start)
                    )
                    report.exit_code = None
                    report.failed_command = command
                    report.error = str(e)
                    break

                report.history.append(
                    CommandRecord(command, outcome.exit_code, outcome.duration, outcome.output)
                )
                if not outcome.succeeded:
                    report.exit_code = outcome.exit_code
                    report.failed_command = command
                    report.error = f"'{command}' exited with code {outcome.exit_code}"
                    break

            if report.succeeded or report.attempts >= max_attempts:
                return report

            if cancel_event is not None and cancel_event.is_set():
                self.logger.debug(f"Not retrying {label or 'command'}: run cancelled")
                return report

            self.logger.warn(
                f"[yellow]{escape(label) or 'Command'} failed (attempt {report.attempts}/{max_attempts}); "
                f"retrying in {retry_delay:g}s[/yellow]"
            )
            if cancel_event is not None:
                # Wakes early when the run is cancelled
                if cancel_event.wait(retry_delay):
                    return report
            elif retry_delay:
                time.sleep(retry_delay)
