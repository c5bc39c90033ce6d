"""Task execution: scheduling, conditions, caching, retries and finally blocks."""

from __future__ import annotations

import enum
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Sequence

from rich.markup import escape

from tasklane.conditions import Condition, ConditionEvaluator
from tasklane.errors import CacheIOError, CommandExecutionError, SpawnError, TaskTimeoutError
from tasklane.graph import DependencyGraph, TaskGroup
from tasklane.hasher import fingerprint, is_fresh, matched_outputs
from tasklane.launcher import CommandLauncher, RunReport
from tasklane.logging import Logger
from tasklane.parser import Recipe, Task
from tasklane.platforms import current_platform
from tasklane.process_runner import ProcessRunner, TaskOutputTypes, make_process_runner
from tasklane.state import CacheEntry, StateManager
from tasklane.substitution import expand_command
from tasklane.task_log import write_task_log


class Status(enum.Enum):
    EXECUTED = "executed"
    CACHED = "cached"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(enum.Enum):
    RUN_IF = "run_if"
    SKIP_IF = "skip_if"
    DEPENDENCY_FAILED = "dependency_failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionResult:
    """Terminal state of one task."""

    task_name: str
    status: Status
    reason: Optional[SkipReason] = None
    cause: Optional[str] = None
    exit_code: Optional[int] = None
    attempts: int = 0
    duration: float = 0.0
    ignored: bool = False

    @property
    def blocks_dependents(self) -> bool:
        """True if tasks depending on this one must not run."""
        if self.status is Status.FAILED:
            return not self.ignored
        if self.status is Status.SKIPPED:
            return self.reason in (SkipReason.DEPENDENCY_FAILED, SkipReason.CANCELLED)
        return False


@dataclass
class RunSummary:
    """Results of one invocation, in completion order."""

    root: str
    results: list[ExecutionResult] = field(default_factory=list)

    def result(self, task_name: str) -> ExecutionResult | None:
        for result in self.results:
            if result.task_name == task_name:
                return result
        return None

    @property
    def failures(self) -> list[ExecutionResult]:
        return [r for r in self.results if r.status is Status.FAILED and not r.ignored]

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class TaskStatus:
    """Status of a task for execution planning."""

    task_name: str
    will_run: bool
    reason: str  # "fresh", "stale", "not_cached", "conditional"
    commands: list[str] = field(default_factory=list)
    group: int = 0
    parallel: bool = False


class _RunContext:
    """Mutable state shared by the tasks of one invocation."""

    def __init__(self, root: str, extra_args: Sequence[str], env: dict[str, str]):
        self.root = root
        self.extra_args = list(extra_args)
        self.env = env
        self.cancel = threading.Event()
        self.summary = RunSummary(root)
        self._results: dict[str, ExecutionResult] = {}
        self._lock = threading.Lock()

    def record(self, result: ExecutionResult) -> None:
        with self._lock:
            self._results[result.task_name] = result
            self.summary.results.append(result)

    def get(self, task_name: str) -> ExecutionResult | None:
        with self._lock:
            return self._results.get(task_name)


class Executor:
    """Runs a task and its dependencies through the per-task state machine.

    Each task moves through dependency check, condition check, cache check,
    running (with retry) and the finally phase. Sequential groups run on the
    calling thread; parallel groups run on a thread pool.
    """

    def __init__(
        self,
        recipe: Recipe,
        state: StateManager,
        logger: Logger,
        process_runner: Optional[ProcessRunner] = None,
        jobs: Optional[int] = None,
        task_output: TaskOutputTypes = TaskOutputTypes.ALL,
        platform_name: Optional[str] = None,
        finally_on_skip: Optional[bool] = None,
    ):
        """Initialize executor.

        Args:
            recipe: Parsed recipe containing all tasks
            state: Cache record for fingerprints
            logger: Logger for progress and task output
            process_runner: Runner for external commands (defaults to subprocess)
            jobs: Worker pool size for parallel groups (defaults to the CPU count)
            task_output: Which task output streams are shown
            platform_name: Platform key for OS-specific commands (defaults to the current one)
            finally_on_skip: Run finally blocks for condition or dependency skips
                (defaults to the project setting)
        """
        self.recipe = recipe
        self.state = state
        self.logger = logger
        self.process_runner = process_runner or make_process_runner(logger)
        self.jobs = jobs or os.cpu_count() or 1
        self.task_output = task_output
        self.platform_name = platform_name or current_platform()
        if finally_on_skip is None:
            finally_on_skip = recipe.project.finally_on_skip
        self.finally_on_skip = finally_on_skip

        self.launcher = CommandLauncher(self.process_runner, recipe.shell, logger)
        self.conditions = ConditionEvaluator(self.launcher, logger)

    def commands_for(self, task: Task, root: str, extra_args: Sequence[str]) -> list[str]:
        """OS-selected commands, with pass-through arguments for the root task only."""
        commands = task.commands_for(self.platform_name)
        if task.name == root and extra_args:
            commands = [expand_command(cmd, list(extra_args)) for cmd in commands]
        return commands

    def execute_task(self, task_name: str, extra_args: Sequence[str] = ()) -> RunSummary:
        """Execute a task and its dependencies.

        Args:
            task_name: Name of task to execute
            extra_args: Pass-through arguments for the task's own commands

        Returns:
            RunSummary with one result per task, in completion order

        Raises:
            UnknownTaskError: If the task or one of its dependencies is not defined
            CycleError: If the dependency graph contains a cycle
        """
        graph = DependencyGraph.build(self.recipe.tasks)
        groups = graph.resolution_order(task_name)

        ctx = _RunContext(task_name, extra_args, self.recipe.environment.as_dict())

        for group in groups:
            if group.parallel:
                self._run_parallel(ctx, group)
            else:
                for name in group.tasks:
                    self._run_task(ctx, name, buffered=False)

        self._flush_cache()
        return ctx.summary

    def plan(self, task_name: str, extra_args: Sequence[str] = ()) -> list[TaskStatus]:
        """Compute the execution plan without launching anything.

        Raises:
            UnknownTaskError: If the task or one of its dependencies is not defined
            CycleError: If the dependency graph contains a cycle
        """
        graph = DependencyGraph.build(self.recipe.tasks)
        groups = graph.resolution_order(task_name)
        env = self.recipe.environment.as_dict()

        statuses: list[TaskStatus] = []
        for index, group in enumerate(groups):
            for name in group.tasks:
                task = self.recipe.tasks[name]
                commands = self.commands_for(task, task_name, extra_args)
                will_run, reason = self._plan_reason(task, env, commands)
                statuses.append(
                    TaskStatus(
                        task_name=name,
                        will_run=will_run,
                        reason=reason,
                        commands=commands,
                        group=index,
                        parallel=group.parallel,
                    )
                )
        return statuses

    def _plan_reason(self, task: Task, env: dict[str, str], commands: list[str]) -> tuple[bool, str]:
        # Probe outcomes are unknown without running them
        if task.run_if is not None or task.skip_if is not None:
            return True, "conditional"
        if not task.cacheable:
            return True, "not_cached"
        try:
            digest = fingerprint(task, env, commands, self.recipe.project_root)
            fresh = is_fresh(task, digest, self.state.get(task.name), self.recipe.project_root)
        except CacheIOError:
            return True, "stale"
        if fresh:
            return False, "fresh"
        return True, "stale"

    def _run_parallel(self, ctx: _RunContext, group: TaskGroup) -> None:
        workers = max(1, min(self.jobs, len(group.tasks)))
        self.logger.debug(f"Starting parallel group: {escape(', '.join(group.tasks))}")
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tasklane") as pool:
            futures = [pool.submit(self._run_task, ctx, name, True) for name in group.tasks]
            for future in futures:
                future.result()

    def _run_task(self, ctx: _RunContext, name: str, buffered: bool) -> ExecutionResult:
        task = self.recipe.tasks[name]
        start = time.monotonic()
        lines: list[str] = []

        def on_output(stream_name: str, line: str) -> None:
            if not self.task_output.shows(stream_name):
                return
            if buffered:
                lines.append(f"[{name}] {line}")
            else:
                self.logger.info(line, markup=False, highlight=False, soft_wrap=True)

        result = self._advance(ctx, task, on_output)
        result.duration = time.monotonic() - start

        if self._runs_finally(result) and task.finally_cmds:
            self._run_finally(ctx, task, on_output)

        if buffered and lines:
            self.logger.info("\n".join(lines), markup=False, highlight=False, soft_wrap=True)

        if result.status is Status.FAILED and not result.ignored:
            ctx.cancel.set()

        self._report(result)
        ctx.record(result)
        return result

    def _advance(self, ctx: _RunContext, task: Task, on_output) -> ExecutionResult:
        name = task.name
        cwd = self.recipe.project_root

        # Pending: every dependency has already reached a terminal state
        for dep in task.deps:
            dep_result = ctx.get(dep)
            if dep_result is not None and dep_result.blocks_dependents:
                return ExecutionResult(
                    name,
                    Status.SKIPPED,
                    reason=SkipReason.DEPENDENCY_FAILED,
                    cause=f"dependency '{dep}' did not succeed",
                )

        if ctx.cancel.is_set():
            return ExecutionResult(name, Status.SKIPPED, reason=SkipReason.CANCELLED)

        try:
            condition = self.conditions.evaluate(task, ctx.env, cwd)
        except CommandExecutionError as e:
            return ExecutionResult(name, Status.FAILED, cause=str(e), ignored=task.ignore_failure)

        if condition is Condition.SKIPPED_BY_SKIP_IF:
            return ExecutionResult(name, Status.SKIPPED, reason=SkipReason.SKIP_IF)
        if condition is Condition.SKIPPED_BY_RUN_IF:
            return ExecutionResult(name, Status.SKIPPED, reason=SkipReason.RUN_IF)

        commands = self.commands_for(task, ctx.root, ctx.extra_args)

        digest = None
        if task.cacheable:
            try:
                digest = fingerprint(task, ctx.env, commands, cwd)
                fresh = is_fresh(task, digest, self.state.get(name), cwd)
            except CacheIOError as e:
                digest = None
                self.logger.warn(f"[yellow]{escape(name)}: {escape(str(e))}; treating as stale[/yellow]")
            else:
                if fresh:
                    return ExecutionResult(name, Status.CACHED)

        self.logger.info(f"[bold cyan]{escape(name)}[/bold cyan] running")
        try:
            report = self.launcher.launch_with_retry(
                commands,
                ctx.env,
                cwd,
                timeout=task.timeout,
                retry=task.retry,
                retry_delay=task.retry_delay,
                cancel_event=ctx.cancel,
                on_output=on_output,
                label=name,
            )
        except SpawnError as e:
            return ExecutionResult(
                name, Status.FAILED, cause=str(e), attempts=1, ignored=task.ignore_failure
            )

        self._write_logs(ctx, task, report)

        if not report.succeeded:
            return ExecutionResult(
                name,
                Status.FAILED,
                cause=report.error,
                exit_code=report.exit_code,
                attempts=report.attempts,
                ignored=task.ignore_failure,
            )

        if digest is not None:
            try:
                self.state.set(name, CacheEntry(digest, matched_outputs(task, cwd)))
            except CacheIOError as e:
                self.logger.warn(f"[yellow]{escape(name)}: {escape(str(e))}; result not cached[/yellow]")

        return ExecutionResult(name, Status.EXECUTED, exit_code=0, attempts=report.attempts)

    def _runs_finally(self, result: ExecutionResult) -> bool:
        if result.status in (Status.EXECUTED, Status.FAILED):
            return True
        if result.status is Status.SKIPPED:
            return self.finally_on_skip
        return False

    def _run_finally(self, ctx: _RunContext, task: Task, on_output) -> None:
        """Run every finally command once; failures are logged and never change the task status."""
        for command in task.finally_cmds:
            self.logger.debug(f"[dim]{escape(task.name)} finally$[/dim] {escape(command)}")
            try:
                outcome = self.launcher.launch(
                    command, ctx.env, self.recipe.project_root, timeout=task.timeout, on_output=on_output
                )
            except (SpawnError, TaskTimeoutError) as e:
                self.logger.warn(f"[yellow]{escape(task.name)}: finally command failed: {escape(str(e))}[/yellow]")
                continue
            if not outcome.succeeded:
                self.logger.warn(
                    f"[yellow]{escape(task.name)}: finally command '{escape(command)}' "
                    f"exited with code {outcome.exit_code}[/yellow]"
                )

    def _write_logs(self, ctx: _RunContext, task: Task, report: RunReport) -> None:
        if self.recipe.project.log_strategy == "none":
            return
        for record in report.history:
            try:
                path = write_task_log(
                    self.recipe.project_root,
                    self.recipe.project,
                    task.name,
                    record.command,
                    record.output,
                    record.exit_code,
                    record.duration,
                    ctx.env,
                )
            except OSError as e:
                self.logger.warn(f"[yellow]Could not write execution log for '{escape(task.name)}': {e}[/yellow]")
                continue
            if path is not None:
                self.logger.trace(f"Wrote execution log {path}")

    def _report(self, result: ExecutionResult) -> None:
        name = escape(result.task_name)
        if result.status is Status.EXECUTED:
            self.logger.debug(f"[green]{name}[/green] finished in {result.duration:.2f}s")
        elif result.status is Status.CACHED:
            self.logger.info(f"[green]{name}[/green] up to date (cached)")
        elif result.status is Status.SKIPPED:
            self.logger.info(f"[yellow]{name}[/yellow] skipped ({result.reason.value})")
        elif result.ignored:
            self.logger.warn(f"[yellow]{name} failed (ignored): {escape(result.cause or '')}[/yellow]")
        else:
            self.logger.error(f"[red]{name} failed: {escape(result.cause or '')}[/red]")

    def _flush_cache(self) -> None:
        if not self.state.dirty:
            return
        try:
            self.state.save()
        except CacheIOError as e:
            self.logger.warn(f"[yellow]{escape(str(e))}[/yellow]")
