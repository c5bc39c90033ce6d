from __future__ import annotations

from rich.markup import escape
from rich.table import Table

from tasklane.logging import Logger
from tasklane.parser import Recipe, Task


def list_tasks(logger: Logger, recipe: Recipe):
    """
    List all available tasks with descriptions.
    """
    names = recipe.task_names()
    if not names:
        logger.info("[yellow]No tasks defined[/yellow]")
        return

    max_task_name_len = max(len(name) for name in names)

    # Borderless table: name, dependencies, description
    table = Table(show_edge=False, show_header=False, box=None, padding=(0, 2))
    table.add_column("Task", style="bold cyan", no_wrap=True, width=max_task_name_len)
    table.add_column("Dependencies", style="white", max_width=40)
    table.add_column("Description", style="white", max_width=80)

    for task_name in sorted(names):
        task = recipe.get_task(task_name)
        table.add_row(escape(task_name), _format_dependencies(task), escape(task.desc))

    logger.info(table)


def _format_dependencies(task: Task) -> str:
    """
    Format a task's dependencies for display in list output.

    Examples:
    deps [lint, gen] -> "[dim]after:[/dim] lint, gen"
    deps [lint, gen], parallel -> "[dim]after (parallel):[/dim] lint, gen"
    """
    if not task.deps:
        return ""
    label = "after (parallel):" if task.parallel else "after:"
    return f"[dim]{label}[/dim] {escape(', '.join(task.deps))}"
