"""Unit tests for CLI command helpers."""

import unittest
from pathlib import Path
from unittest.mock import patch

from rich.table import Table
from rich.tree import Tree

from helpers.logging import RecordingLogger
from tasklane.cli import _resolve_log_level
from tasklane.cli_commands import get_action_failure_string, get_action_success_string
from tasklane.cli_commands.execute_task import _status_label, _summary_table
from tasklane.cli_commands.list_tasks import _format_dependencies, list_tasks
from tasklane.cli_commands.show_tree import _build_rich_tree
from tasklane.config import UserConfig
from tasklane.executor import ExecutionResult, RunSummary, SkipReason, Status
from tasklane.logging import LogLevel
from tasklane.parser import Recipe, Task


class TestFormatDependencies(unittest.TestCase):
    def test_no_dependencies(self):
        self.assertEqual(_format_dependencies(Task(name="t")), "")

    def test_sequential(self):
        task = Task(name="t", deps=["lint", "gen"])
        self.assertEqual(_format_dependencies(task), "[dim]after:[/dim] lint, gen")

    def test_parallel(self):
        task = Task(name="t", deps=["lint", "gen"], parallel=True)
        self.assertEqual(_format_dependencies(task), "[dim]after (parallel):[/dim] lint, gen")


class TestListTasks(unittest.TestCase):
    def test_empty_recipe(self):
        logger = RecordingLogger()
        list_tasks(logger, Recipe(tasks={}, project_root=Path(".")))
        self.assertIn("No tasks defined", logger.text())

    def test_prints_sorted_table(self):
        logger = RecordingLogger()
        recipe = Recipe(
            tasks={"zeta": Task(name="zeta"), "alpha": Task(name="alpha", desc="first")},
            project_root=Path("."),
        )

        with patch.object(logger, "log") as log:
            list_tasks(logger, recipe)

        table = log.call_args.args[1]
        self.assertIsInstance(table, Table)
        self.assertEqual(table.row_count, 2)
        self.assertEqual(list(table.columns[0].cells), ["alpha", "zeta"])


class TestSummary(unittest.TestCase):
    def test_status_labels(self):
        self.assertEqual(_status_label(ExecutionResult("a", Status.EXECUTED)), "executed")
        self.assertEqual(
            _status_label(ExecutionResult("a", Status.SKIPPED, reason=SkipReason.CANCELLED)),
            "skipped (cancelled)",
        )
        self.assertEqual(
            _status_label(ExecutionResult("a", Status.FAILED, ignored=True)), "failed (ignored)"
        )

    def test_summary_table_has_row_per_result(self):
        summary = RunSummary(
            "b",
            [
                ExecutionResult("a", Status.CACHED),
                ExecutionResult("b", Status.FAILED, cause="exited with code 2", attempts=3),
            ],
        )
        table = _summary_table(summary)
        self.assertEqual(table.title, "Summary")
        self.assertEqual(table.row_count, 2)
        self.assertEqual(list(table.columns[2].cells), ["", "3"])


class TestShowTree(unittest.TestCase):
    def test_parallel_label(self):
        tree = _build_rich_tree(
            {
                "name": "all",
                "parallel": True,
                "deps": [{"name": "a", "deps": [], "parallel": False}],
            }
        )
        self.assertIsInstance(tree, Tree)
        self.assertIn("(parallel)", str(tree.label))
        self.assertEqual(len(tree.children), 1)


class TestActionStrings(unittest.TestCase):
    def test_ascii_fallback(self):
        with patch("tasklane.cli_commands._supports_unicode", return_value=False):
            self.assertEqual(get_action_success_string(), "[ OK ]")
            self.assertEqual(get_action_failure_string(), "[ FAIL ]")

    def test_unicode(self):
        with patch("tasklane.cli_commands._supports_unicode", return_value=True):
            self.assertEqual(get_action_success_string(), "✓")
            self.assertEqual(get_action_failure_string(), "✗")


class TestResolveLogLevel(unittest.TestCase):
    def test_cli_flag_wins(self):
        self.assertEqual(
            _resolve_log_level("trace", UserConfig(log_level=LogLevel.WARN)), LogLevel.TRACE
        )

    def test_user_config_then_default(self):
        self.assertEqual(_resolve_log_level(None, UserConfig(log_level=LogLevel.WARN)), LogLevel.WARN)
        self.assertEqual(_resolve_log_level(None, UserConfig()), LogLevel.INFO)


if __name__ == "__main__":
    unittest.main()
