"""Command-line interface for tasklane."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from tasklane import __version__
from tasklane.cli_commands import get_recipe
from tasklane.cli_commands.clean_state import clean_state
from tasklane.cli_commands.clean_targets import clean_targets
from tasklane.cli_commands.dry_run import dry_run
from tasklane.cli_commands.execute_task import execute_task
from tasklane.cli_commands.init_recipe import init_recipe
from tasklane.cli_commands.list_tasks import list_tasks
from tasklane.cli_commands.show_env import show_env
from tasklane.cli_commands.show_info import show_info
from tasklane.cli_commands.show_tree import show_tree
from tasklane.config import UserConfig, load_user_config
from tasklane.console_logger import ConsoleLogger
from tasklane.errors import ConfigError
from tasklane.logging import LogLevel, parse_log_level
from tasklane.process_runner import TaskOutputTypes
from tasklane.redaction import SecretRedactor

DEFAULT_TASK = "default"

app = typer.Typer(
    help="tasklane - a cross-platform task runner with dependency scheduling and caching",
    add_completion=False,
    no_args_is_help=False,
)


def _version_callback(value: bool):
    if value:
        Console().print(f"tasklane version {__version__}")
        raise typer.Exit()


@app.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
def run(
    task_args: Optional[List[str]] = typer.Argument(
        None, help="Task name followed by arguments passed to its commands"
    ),
    list_opt: bool = typer.Option(False, "--list", "-l", help="List all available tasks"),
    env: bool = typer.Option(False, "--env", "-e", help="Show the resolved environment"),
    trace: bool = typer.Option(False, "--trace", help="With --env: show where each value came from"),
    info: bool = typer.Option(False, "--info", "-i", help="Show project metadata"),
    dry_run_opt: bool = typer.Option(
        False, "--dry-run", "-d", help="Show the execution plan for TASK without running it"
    ),
    tree: bool = typer.Option(False, "--tree", help="Show the dependency tree of TASK"),
    clean: bool = typer.Option(False, "--clean", help="Remove the project's clean targets"),
    clean_cache: bool = typer.Option(False, "--clean-cache", help="Remove the task cache"),
    init: bool = typer.Option(False, "--init", help="Create a blank tasklane.yaml"),
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-L", help="Verbosity: fatal, error, warn, info, debug or trace"
    ),
    jobs: Optional[int] = typer.Option(
        None, "--jobs", "-j", min=1, help="Maximum tasks run at once in a parallel group"
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Load .env.<profile> instead of .env (default: $TASKLANE_ENV)"
    ),
    task_output: TaskOutputTypes = typer.Option(
        TaskOutputTypes.ALL, "--task-output", case_sensitive=False, help="Which task output to show"
    ),
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-C", file_okay=False, exists=True, help="Run as if started in this directory"
    ),
):
    """
    Run TASK (or 'default') with its dependencies.
    """
    console = Console()
    logger = ConsoleLogger(console, LogLevel.INFO)

    try:
        user_config = load_user_config()
    except ConfigError as e:
        logger.error(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    try:
        level = _resolve_log_level(log_level, user_config)
    except ValueError as e:
        logger.error(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    logger = ConsoleLogger(console, level)

    start_dir = directory.resolve() if directory else None

    if init:
        init_recipe(logger, start_dir)
        return

    if clean_cache:
        clean_state(logger, start_dir)
        return

    recipe = get_recipe(logger, start_dir, profile=profile, default_shell=user_config.shell)
    if recipe.project.secrets:
        logger.set_redactor(SecretRedactor(recipe.project.secrets))

    if list_opt:
        list_tasks(logger, recipe)
        return

    if env:
        show_env(logger, recipe, trace=trace)
        return

    if info:
        show_info(logger, recipe)
        return

    if clean:
        clean_targets(logger, recipe)
        return

    task_name = task_args[0] if task_args else None
    extra_args = list(task_args[1:]) if task_args else []

    if dry_run_opt or tree:
        option = "--dry-run" if dry_run_opt else "--tree"
        if task_name is None:
            logger.error(f"[red]Error: {option} requires a task name[/red]")
            logger.info(f"Usage: tl {option} <task-name>")
            raise typer.Exit(1)
        if recipe.get_task(task_name) is None:
            logger.error(f"[red]Task not found: {escape(task_name)}[/red]")
            raise typer.Exit(1)
        if dry_run_opt:
            dry_run(logger, recipe, task_name, extra_args)
        else:
            show_tree(logger, recipe, task_name)
        return

    if task_name is None:
        if recipe.get_task(DEFAULT_TASK) is None:
            list_tasks(logger, recipe)
            return
        task_name = DEFAULT_TASK

    execute_task(
        logger,
        recipe,
        task_name,
        extra_args,
        jobs=jobs or user_config.jobs,
        task_output=task_output,
    )


def _resolve_log_level(cli_value: Optional[str], user_config: UserConfig) -> LogLevel:
    """CLI flag, then user configuration, then INFO.

    Raises:
        ValueError: If the CLI value is not a known level
    """
    if cli_value is not None:
        return parse_log_level(cli_value)
    if user_config.log_level is not None:
        return user_config.log_level
    return LogLevel.INFO


def main():
    """Entry point for the tl command."""
    app()


if __name__ == "__main__":
    main()
