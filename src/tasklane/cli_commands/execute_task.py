"""Execute task command implementation."""

from __future__ import annotations

from typing import Optional, Sequence

import typer
from rich.markup import escape
from rich.table import Table

from tasklane.cli_commands import get_action_failure_string, get_action_success_string
from tasklane.errors import TasklaneError
from tasklane.executor import Executor, ExecutionResult, RunSummary, Status
from tasklane.logging import Logger
from tasklane.parser import Recipe
from tasklane.process_runner import TaskOutputTypes, make_process_runner
from tasklane.state import StateManager

_STATUS_STYLES = {
    Status.EXECUTED: "green",
    Status.CACHED: "green",
    Status.SKIPPED: "yellow",
    Status.FAILED: "red",
}


def execute_task(
    logger: Logger,
    recipe: Recipe,
    task_name: str,
    extra_args: Sequence[str] = (),
    jobs: Optional[int] = None,
    task_output: TaskOutputTypes = TaskOutputTypes.ALL,
) -> None:
    """
    Execute a task with its dependencies and print the run summary.

    Args:
    logger: Logger interface for output
    recipe: Loaded recipe
    task_name: Task to run
    extra_args: Pass-through arguments for the task's own commands
    jobs: Worker pool size for parallel groups
    task_output: Control task subprocess output (all, out, err, none)

    Raises:
    typer.Exit: With status 1 on a structural error or a non-ignored failure
    """
    if recipe.get_task(task_name) is None:
        logger.error(f"[red]Task not found: {escape(task_name)}[/red]")
        logger.info("\nAvailable tasks:")
        for name in sorted(recipe.task_names()):
            logger.info(f"  - {escape(name)}")
        raise typer.Exit(1)

    state = StateManager(recipe.project_root, logger)
    state.load()
    state.prune(set(recipe.task_names()))

    executor = Executor(
        recipe,
        state,
        logger,
        make_process_runner(logger),
        jobs=jobs,
        task_output=task_output,
    )

    try:
        summary = executor.execute_task(task_name, extra_args)
    except TasklaneError as e:
        logger.error(f"[red]{get_action_failure_string()} {escape(str(e))}[/red]")
        raise typer.Exit(1)

    logger.info(_summary_table(summary))

    if summary.succeeded:
        logger.info(
            f"[green]{get_action_success_string()} Task '{escape(task_name)}' completed successfully[/green]",
        )
    else:
        logger.error(
            f"[red]{get_action_failure_string()} Task '{escape(task_name)}' failed[/red]"
        )
        raise typer.Exit(1)


def _summary_table(summary: RunSummary) -> Table:
    table = Table(title="Summary", show_edge=False, box=None, padding=(0, 2))
    table.add_column("Task", style="bold cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Attempts", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Details", style="dim", overflow="fold")

    for result in summary.results:
        style = _STATUS_STYLES[result.status]
        if result.status is Status.FAILED and result.ignored:
            style = "yellow"
        table.add_row(
            escape(result.task_name),
            f"[{style}]{_status_label(result)}[/{style}]",
            str(result.attempts) if result.attempts else "",
            f"{result.duration:.2f}s",
            escape(result.cause or ""),
        )
    return table


def _status_label(result: ExecutionResult) -> str:
    label = result.status.value
    if result.status is Status.SKIPPED and result.reason is not None:
        label += f" ({result.reason.value})"
    elif result.status is Status.FAILED and result.ignored:
        label += " (ignored)"
    return label
