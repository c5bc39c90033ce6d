"""Evaluation of run_if / skip_if probe commands."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Mapping

from rich.markup import escape

from tasklane.errors import CommandExecutionError, SpawnError, TaskTimeoutError
from tasklane.launcher import CommandLauncher
from tasklane.logging import Logger
from tasklane.parser import Task


class Condition(enum.Enum):
    ELIGIBLE = "eligible"
    SKIPPED_BY_RUN_IF = "run_if"
    SKIPPED_BY_SKIP_IF = "skip_if"


class ConditionEvaluator:
    """Reduces a task's probe commands to an eligibility decision.

    ``skip_if`` is checked first: exit code 0 skips the task and ``run_if`` is
    never executed. Otherwise a non-zero ``run_if`` skips the task. Probes are
    never retried and a non-zero probe is a routing decision, not a failure.
    """

    def __init__(self, launcher: CommandLauncher, logger: Logger):
        self.launcher = launcher
        self.logger = logger

    def evaluate(self, task: Task, env: Mapping[str, str], cwd: Path) -> Condition:
        """
        Raises:
            CommandExecutionError: If a probe could not be spawned or timed out
        """
        if task.skip_if is not None:
            if self._probe(task, "skip_if", task.skip_if, env, cwd) == 0:
                return Condition.SKIPPED_BY_SKIP_IF

        if task.run_if is not None:
            if self._probe(task, "run_if", task.run_if, env, cwd) != 0:
                return Condition.SKIPPED_BY_RUN_IF

        return Condition.ELIGIBLE

    def _probe(self, task: Task, kind: str, command: str, env: Mapping[str, str], cwd: Path) -> int:
        def log_line(stream_name: str, line: str) -> None:
            self.logger.debug(f"[dim]{escape(task.name)} {kind} {stream_name}:[/dim] {escape(line)}")

        try:
            outcome = self.launcher.launch(command, env, cwd, timeout=task.timeout, on_output=log_line)
        except (SpawnError, TaskTimeoutError) as e:
            raise CommandExecutionError(
                f"Task '{task.name}': {kind} probe '{command}' could not be evaluated: {e}"
            ) from e

        self.logger.debug(
            f"Task '{escape(task.name)}': {kind} '{escape(command)}' exited with {outcome.exit_code}"
        )
        return outcome.exit_code
