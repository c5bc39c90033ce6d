"""Show project metadata."""

from __future__ import annotations

from rich.markup import escape

from tasklane.logging import Logger
from tasklane.parser import Recipe


def show_info(logger: Logger, recipe: Recipe) -> None:
    project = recipe.project
    logger.info(f"[bold]{escape(project.name or recipe.project_root.name)}[/bold]")
    if project.version:
        logger.info(f"Version: {escape(project.version)}")
    if project.authors:
        logger.info(f"Authors: {escape(', '.join(project.authors))}")
    if project.description:
        logger.info(f"Description: {escape(project.description)}")
    logger.info(f"Shell: {escape(recipe.shell.executable)} {escape(recipe.shell.flag)}")
    logger.info(f"Log strategy: {project.log_strategy}")
    logger.info(f"Tasks: {len(recipe.tasks)}")
    logger.info("Configuration files:")
    for path in recipe.config_files:
        logger.info(f"  - {escape(str(path))}")
