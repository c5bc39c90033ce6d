from __future__ import annotations

import typer
from rich.markup import escape
from rich.tree import Tree

from tasklane.errors import TasklaneError
from tasklane.graph import DependencyGraph, build_dependency_tree
from tasklane.logging import Logger
from tasklane.parser import Recipe


def show_tree(logger: Logger, recipe: Recipe, task_name: str):
    """
    Show dependency tree structure.
    """
    try:
        DependencyGraph.build(recipe.tasks)
        dep_tree = build_dependency_tree(recipe, task_name)
    except TasklaneError as e:
        logger.error(f"[red]Error building dependency tree: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    tree = _build_rich_tree(dep_tree)
    logger.info(tree)


def _build_rich_tree(dep_tree: dict) -> Tree:
    """
    Build a Rich Tree visualization from a dependency tree structure.

    Args:
        dep_tree: Nested dictionary representing task dependencies

    Returns:
        Rich Tree object for terminal display
    """
    label = escape(dep_tree["name"])
    if dep_tree.get("parallel") and dep_tree.get("deps"):
        label += " [dim](parallel)[/dim]"
    tree = Tree(label)

    for dep in dep_tree.get("deps", []):
        tree.add(_build_rich_tree(dep))

    return tree
