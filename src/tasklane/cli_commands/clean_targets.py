"""Remove the project's declared clean targets."""

from __future__ import annotations

import typer
from rich.markup import escape

from tasklane.cli_commands import get_action_failure_string, get_action_success_string
from tasklane.logging import Logger
from tasklane.parser import Recipe
from tasklane.portable import PortableCommandError, expand_globs, handle_rm


def clean_targets(logger: Logger, recipe: Recipe) -> None:
    """
    Delete every path matched by ``clean.targets``, relative to the project root.

    Raises:
        typer.Exit: If a matched path cannot be removed
    """
    if not recipe.clean_targets:
        logger.info("[yellow]No clean targets defined[/yellow]")
        return

    root = recipe.project_root
    removed = 0
    for name in expand_globs(recipe.clean_targets, root):
        path = root / name
        if not path.exists() and not path.is_symlink():
            logger.debug(f"Nothing to remove at {escape(name)}")
            continue
        try:
            handle_rm(["-r", "-f", name], root, logger.debug)
        except (PortableCommandError, OSError) as e:
            logger.error(f"[red]{get_action_failure_string()} Could not remove {escape(name)}: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        logger.info(f"[green]{get_action_success_string()} Removed {escape(name)}[/green]")
        removed += 1

    if not removed:
        logger.info("Nothing to clean")
