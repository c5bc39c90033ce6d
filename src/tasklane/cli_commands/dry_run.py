"""Dry run command implementation."""

from __future__ import annotations

from typing import Sequence

import typer
from rich.markup import escape

from tasklane.errors import TasklaneError
from tasklane.executor import Executor
from tasklane.logging import Logger
from tasklane.parser import Recipe
from tasklane.portable import is_builtin
from tasklane.state import StateManager


def dry_run(logger: Logger, recipe: Recipe, task_name: str, extra_args: Sequence[str] = ()) -> None:
    """
    Show what would be executed without actually running anything.
    """
    state = StateManager(recipe.project_root, logger)
    state.load()
    executor = Executor(recipe, state, logger)

    try:
        statuses = executor.plan(task_name, extra_args)
    except TasklaneError as e:
        logger.error(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    logger.info(f"[bold]Execution plan for '{escape(task_name)}':[/bold]\n")

    current_group = None
    for status in statuses:
        if status.group != current_group:
            current_group = status.group
            label = "parallel group" if status.parallel else "step"
            logger.info(f"[dim]{label} {status.group + 1}[/dim]")

        if status.will_run:
            logger.info(f"  [yellow]{escape(status.task_name)}[/yellow] ({status.reason})")
        else:
            logger.info(f"  [green]{escape(status.task_name)}[/green] (fresh, will skip)")

        for command in status.commands:
            marker = " [dim](built-in)[/dim]" if is_builtin(command) else ""
            logger.info(f"    $ {escape(command)}{marker}")

    will_run = sum(1 for s in statuses if s.will_run)
    logger.info(f"\n{will_run} of {len(statuses)} task(s) would run")
