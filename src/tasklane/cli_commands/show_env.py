"""Show the resolved environment."""

from __future__ import annotations

from rich.markup import escape
from rich.table import Table

from tasklane.environment import Provenance
from tasklane.logging import Logger
from tasklane.parser import Recipe
from tasklane.redaction import REDACTED, is_sensitive_name


def show_env(logger: Logger, recipe: Recipe, trace: bool = False, include_system: bool = False) -> None:
    """
    Print the resolved environment variables.

    System variables are hidden unless ``include_system`` is set or they were
    overridden by a project layer. With ``trace`` a column shows where each
    value came from.
    """
    table = Table(show_edge=False, box=None, padding=(0, 2))
    table.add_column("Name", style="bold cyan", no_wrap=True)
    table.add_column("Value", style="white", overflow="fold")
    if trace:
        table.add_column("Source", style="dim")

    for name, entry in sorted(recipe.environment.entries()):
        if entry.provenance is Provenance.SYSTEM and not include_system:
            continue
        value = REDACTED if is_sensitive_name(name) else entry.value
        row = [escape(name), escape(value)]
        if trace:
            row.append(escape(f"{entry.provenance.value} ({entry.source})"))
        table.add_row(*row)

    if table.row_count == 0:
        logger.info("[yellow]No project environment variables defined[/yellow]")
        return

    logger.info(table)
