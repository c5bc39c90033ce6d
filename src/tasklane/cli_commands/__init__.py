"""CLI command implementations and shared utilities."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from tasklane.errors import TasklaneError
from tasklane.logging import Logger
from tasklane.parser import Recipe, find_recipe_file, parse_recipe

NO_RECIPE_MESSAGE = "[red]No recipe file found (tasklane.yaml or tasklane.yml)[/red]"


def _supports_unicode() -> bool:
    """
    Check if the terminal supports Unicode characters.

    Returns:
    True if terminal supports UTF-8, False otherwise
    """
    # Hard stop: classic Windows console (conhost)
    if os.name == "nt" and "WT_SESSION" not in os.environ:
        return False

    # Encoding check
    encoding = sys.stdout.encoding
    if not encoding:
        return False

    try:
        "✓✗".encode(encoding)
        return True
    except UnicodeEncodeError:
        return False


def get_action_success_string() -> str:
    """
    Get the appropriate success symbol based on terminal capabilities.

    Returns:
    Unicode tick symbol (✓) if terminal supports UTF-8, otherwise "[ OK ]"
    """
    return "✓" if _supports_unicode() else "[ OK ]"


def get_action_failure_string() -> str:
    """
    Get the appropriate failure symbol based on terminal capabilities.

    Returns:
    Unicode cross symbol (✗) if terminal supports UTF-8, otherwise "[ FAIL ]"
    """
    return "✗" if _supports_unicode() else "[ FAIL ]"


def get_recipe(
    logger: Logger,
    start_dir: Optional[Path] = None,
    profile: Optional[str] = None,
    default_shell: Optional[str] = None,
) -> Recipe:
    """
    Find and parse the recipe, exiting with status 1 when that fails.

    Raises:
        typer.Exit: If no recipe exists or it cannot be loaded
    """
    recipe_path = find_recipe_file(start_dir)
    if recipe_path is None:
        logger.error(NO_RECIPE_MESSAGE)
        logger.info("Run [cyan]tl --init[/cyan] to create a blank recipe file")
        raise typer.Exit(1)

    try:
        return parse_recipe(recipe_path, profile=profile, default_shell=default_shell)
    except TasklaneError as e:
        logger.error(f"[red]Error loading recipe: {escape(str(e))}[/red]")
        raise typer.Exit(1)
