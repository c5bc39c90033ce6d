"""Tests for state module."""

import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from tasklane.errors import CacheIOError
from tasklane.state import CacheEntry, StateManager

from helpers.logging import RecordingLogger


class TestCacheEntry(unittest.TestCase):
    def test_to_dict(self):
        """Test converting CacheEntry to dictionary."""
        entry = CacheEntry(digest="abc", outputs=["build/app"])
        self.assertEqual(entry.to_dict(), {"digest": "abc", "outputs": ["build/app"]})

    def test_from_dict(self):
        """Test creating CacheEntry from dictionary, ignoring unknown keys."""
        entry = CacheEntry.from_dict({"digest": "abc", "outputs": ["a"], "extra": 1})
        self.assertEqual(entry, CacheEntry("abc", ["a"]))

    def test_from_dict_malformed(self):
        with self.assertRaises(KeyError):
            CacheEntry.from_dict({"outputs": []})
        with self.assertRaises(ValueError):
            CacheEntry.from_dict({"digest": 5})


class TestStateManager(unittest.TestCase):
    def test_save_and_load(self):
        """Test saving and loading the cache record."""
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            state_manager = StateManager(project_root)

            state_manager.set("build", CacheEntry("abc", ["app"]))
            self.assertTrue(state_manager.dirty)
            state_manager.save()
            self.assertFalse(state_manager.dirty)

            data = json.loads((project_root / ".tasklane" / "cache.json").read_text())
            self.assertEqual(data["version"], 1)
            self.assertEqual(data["tasks"]["build"], {"digest": "abc", "outputs": ["app"]})

            new_state_manager = StateManager(project_root)
            new_state_manager.load()
            self.assertEqual(new_state_manager.get("build"), CacheEntry("abc", ["app"]))

    def test_missing_file_is_empty(self):
        with TemporaryDirectory() as tmpdir:
            state_manager = StateManager(Path(tmpdir))
            state_manager.load()
            self.assertIsNone(state_manager.get("build"))

    def test_corrupt_file_is_empty(self):
        """Test that a corrupt cache file is treated as empty and reported."""
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            cache_dir = project_root / ".tasklane"
            cache_dir.mkdir()
            (cache_dir / "cache.json").write_text("{not json")
            logger = RecordingLogger()

            state_manager = StateManager(project_root, logger)
            state_manager.load()

            self.assertIsNone(state_manager.get("build"))
            self.assertIn("unreadable", logger.text())

    def test_malformed_entries_dropped(self):
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            cache_dir = project_root / ".tasklane"
            cache_dir.mkdir()
            (cache_dir / "cache.json").write_text(
                json.dumps(
                    {
                        "version": 1,
                        "future_key": True,
                        "tasks": {
                            "good": {"digest": "abc", "outputs": []},
                            "bad": {"outputs": "nope"},
                            "worse": "string",
                        },
                    }
                )
            )

            state_manager = StateManager(project_root)
            state_manager.load()

            self.assertEqual(state_manager.get("good"), CacheEntry("abc", []))
            self.assertIsNone(state_manager.get("bad"))
            self.assertIsNone(state_manager.get("worse"))

    def test_prune(self):
        """Test pruning entries of tasks that no longer exist."""
        with TemporaryDirectory() as tmpdir:
            state_manager = StateManager(Path(tmpdir))
            state_manager.set("build", CacheEntry("a"))
            state_manager.set("gone", CacheEntry("b"))

            state_manager.prune({"build"})

            self.assertIsNotNone(state_manager.get("build"))
            self.assertIsNone(state_manager.get("gone"))

    def test_clear(self):
        with TemporaryDirectory() as tmpdir:
            state_manager = StateManager(Path(tmpdir))
            state_manager.set("build", CacheEntry("a"))
            state_manager.clear()
            self.assertIsNone(state_manager.get("build"))
            self.assertTrue(state_manager.dirty)

    def test_save_failure_raises_cache_io_error(self):
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            # A file where the cache directory should be
            (project_root / ".tasklane").write_text("blocker")

            state_manager = StateManager(project_root)
            state_manager.set("build", CacheEntry("a"))

            with self.assertRaises(CacheIOError):
                state_manager.save()


if __name__ == "__main__":
    unittest.main()
