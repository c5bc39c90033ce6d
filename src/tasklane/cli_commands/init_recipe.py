"""Initialize a new tasklane recipe file."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from tasklane.logging import Logger

TEMPLATE = """# tasklane recipe

project:
  name: my-project
  version: 0.1.0
  # shell: bash
  # log_strategy: error-only

env:
  # GREETING: hello
  # REVISION: $(git rev-parse --short HEAD)

# clean:
#   targets: [build]

tasks:
  # build:
  #   description: Compile the application
  #   cmds:
  #     - p:mkdir -p build
  #     - cc -o build/app main.c
  #   sources: ["src/**/*.c"]
  #   outputs: [build/app]

  # test:
  #   description: Run tests
  #   deps: [build]
  #   cmds: ["./build/app --self-test"]

  # Uncomment and modify the examples above to define your tasks
"""


def init_recipe(logger: Logger, directory: Optional[Path] = None):
    """
    Create a blank recipe file with commented examples.
    """
    recipe_path = (directory or Path.cwd()) / "tasklane.yaml"
    if recipe_path.exists():
        logger.error("[red]tasklane.yaml already exists[/red]")
        raise typer.Exit(1)

    recipe_path.write_text(TEMPLATE)
    logger.info(f"[green]Created {recipe_path}[/green]")
    logger.info("Edit the file to define your tasks")
