"""Dependency graph validation and resolution order."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from tasklane.errors import CycleError, UnknownTaskError
from tasklane.parser import Recipe, Task


@dataclass(frozen=True)
class TaskGroup:
    """Tasks to start together (parallel) or a single task (sequential)."""

    tasks: tuple[str, ...]
    parallel: bool = False


class DependencyGraph:
    """Read-only view over the tasks' dependency lists.

    Tasks are stored in a flat name-indexed mapping; edges are names.
    """

    def __init__(self, tasks: Mapping[str, Task]):
        self._tasks = dict(tasks)

    @classmethod
    def build(cls, tasks: Mapping[str, Task]) -> "DependencyGraph":
        """Validate every task's dependencies and build the graph.

        Raises:
            UnknownTaskError: If a dependency names an undefined task
            CycleError: If a dependency cycle exists; carries the full path
        """
        for task in tasks.values():
            for dep in task.deps:
                if dep not in tasks:
                    raise UnknownTaskError(dep, referenced_by=task.name)

        resolved: set[str] = set()
        path: list[str] = []
        on_path: set[str] = set()

        def visit(name: str) -> None:
            if name in resolved:
                return
            if name in on_path:
                start = path.index(name)
                raise CycleError(path[start:] + [name])

            path.append(name)
            on_path.add(name)
            for dep in tasks[name].deps:
                visit(dep)
            on_path.discard(name)
            path.pop()
            resolved.add(name)

        for name in tasks:
            visit(name)

        return cls(tasks)

    def resolution_order(self, root: str) -> list[TaskGroup]:
        """Groups of tasks in the order they must be satisfied, root last.

        Sequential dependencies each form a single-task group in declared
        order. A task with ``parallel`` set has its dependencies' own groups
        emitted first, then all its dependencies as one parallel group. Every
        task appears once.

        Raises:
            UnknownTaskError: If root is not a defined task
        """
        if root not in self._tasks:
            raise UnknownTaskError(root)

        groups: list[TaskGroup] = []
        emitted: set[str] = set()

        def emit(names: list[str], parallel: bool) -> None:
            fresh = [n for n in names if n not in emitted]
            if not fresh:
                return
            emitted.update(fresh)
            groups.append(TaskGroup(tuple(fresh), parallel=parallel and len(fresh) > 1))

        def satisfy(name: str) -> None:
            # Emits everything name depends on, but not name itself
            task = self._tasks[name]
            if task.parallel:
                for dep in task.deps:
                    if dep not in emitted:
                        satisfy(dep)
                emit(task.deps, parallel=True)
            else:
                for dep in task.deps:
                    if dep not in emitted:
                        satisfy(dep)
                        emit([dep], parallel=False)

        satisfy(root)
        emit([root], parallel=False)
        return groups

    def execution_order(self, root: str) -> list[str]:
        """Flattened resolution order."""
        return [name for group in self.resolution_order(root) for name in group.tasks]


def build_dependency_tree(recipe: Recipe, target_task: str) -> dict:
    """Build a tree structure representing dependencies for visualization.

    Args:
        recipe: Parsed recipe containing all tasks
        target_task: Name of the task to build tree for

    Returns:
        Nested dictionary representing the dependency tree
    """
    if target_task not in recipe.tasks:
        raise UnknownTaskError(target_task)

    visited = set()

    def build_tree(task_name: str) -> dict:
        task = recipe.tasks.get(task_name)
        if task is None:
            raise UnknownTaskError(task_name)

        # Prevent infinite recursion on cycles
        if task_name in visited:
            return {"name": task_name, "deps": [], "parallel": False, "cycle": True}

        visited.add(task_name)
        tree = {
            "name": task_name,
            "deps": [build_tree(dep) for dep in task.deps],
            "parallel": task.parallel,
        }
        visited.remove(task_name)

        return tree

    return build_tree(target_task)
