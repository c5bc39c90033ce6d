"""Clean cache command implementation."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from tasklane.cli_commands import get_action_success_string
from tasklane.logging import Logger
from tasklane.parser import find_recipe_file
from tasklane.state import StateManager


def clean_state(logger: Logger, start_dir: Optional[Path] = None) -> None:
    """
    Remove the cache record so that every cacheable task runs on next execution.
    """
    recipe_path = find_recipe_file(start_dir)
    if recipe_path is None:
        logger.warn("[yellow]No recipe file found[/yellow]")
        logger.info("Cache location depends on recipe file location")
        raise typer.Exit(1)

    state_path = StateManager(recipe_path.parent).state_path

    if state_path.exists():
        state_path.unlink()
        logger.info(
            f"[green]{get_action_success_string()} Removed {state_path}[/green]",
        )
        logger.info("All tasks will run fresh on next execution")
    else:
        logger.info(f"[yellow]No cache file found at {state_path}[/yellow]")
