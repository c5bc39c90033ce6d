"""Tests for hasher module."""

import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from tasklane.hasher import expand_sources, fingerprint, is_fresh, matched_outputs, missing_outputs
from tasklane.parser import Task
from tasklane.state import CacheEntry


class TestFingerprint(unittest.TestCase):
    def setUp(self):
        self._tmp = TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "src").mkdir()
        (self.root / "src" / "a.c").write_text("int a;")
        (self.root / "src" / "b.c").write_text("int b;")
        self.task = Task(name="build", cmds=["cc src/*.c"], sources=["src/*.c"], outputs=["app"])
        self.env = {"CC": "gcc"}

    def tearDown(self):
        self._tmp.cleanup()

    def _digest(self, env=None, commands=None) -> str:
        return fingerprint(
            self.task,
            self.env if env is None else env,
            self.task.cmds if commands is None else commands,
            self.root,
        )

    def test_deterministic(self):
        self.assertEqual(self._digest(), self._digest())
        self.assertEqual(len(self._digest()), 64)

    def test_source_content_change(self):
        """Test that changing one byte of a source changes the digest."""
        before = self._digest()
        (self.root / "src" / "b.c").write_text("int c;")
        self.assertNotEqual(before, self._digest())

    def test_new_source_file(self):
        before = self._digest()
        (self.root / "src" / "c.c").write_text("")
        self.assertNotEqual(before, self._digest())

    def test_env_value_change(self):
        self.assertNotEqual(self._digest(env={"CC": "gcc"}), self._digest(env={"CC": "clang"}))

    def test_unreferenced_env_variable_counts(self):
        """Test that the whole environment is covered, not only referenced names."""
        self.assertNotEqual(
            self._digest(env={"CC": "gcc"}), self._digest(env={"CC": "gcc", "UNRELATED": "1"})
        )

    def test_env_order_does_not_matter(self):
        first = self._digest(env={"A": "1", "B": "2"})
        second = self._digest(env={"B": "2", "A": "1"})
        self.assertEqual(first, second)

    def test_command_text_change(self):
        self.assertNotEqual(self._digest(commands=["cc -O0"]), self._digest(commands=["cc -O2"]))

    def test_boundary_ambiguity(self):
        """Test that "ab"+"c" and "a"+"bc" do not collide."""
        self.assertNotEqual(
            self._digest(commands=["ab", "c"]), self._digest(commands=["a", "bc"])
        )
        self.assertNotEqual(
            self._digest(env={"AB": "C"}), self._digest(env={"A": "BC"})
        )

    def test_zero_matches_differs_from_matches(self):
        """Test that a source glob matching nothing does not equal a digest with files."""
        with_files = self._digest()
        for path in (self.root / "src").iterdir():
            path.unlink()
        without_files = self._digest()
        self.assertNotEqual(with_files, without_files)

    def test_directories_are_not_hashed(self):
        """Test that directories matched by a glob are not hashed as files."""
        (self.root / "src" / "sub.c").mkdir()
        self.assertEqual(expand_sources(["src/*.c"], self.root), ["src/a.c", "src/b.c"])


class TestExpandSources(unittest.TestCase):
    def test_sorted_relative_posix_paths(self):
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "pkg" / "sub").mkdir(parents=True)
            for rel in ("pkg/z.py", "pkg/a.py", "pkg/sub/m.py"):
                (root / rel).write_text(rel)

            self.assertEqual(
                expand_sources(["pkg/**/*.py"], root),
                ["pkg/a.py", "pkg/sub/m.py", "pkg/z.py"],
            )

    def test_overlapping_patterns_deduplicated(self):
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "a.txt").write_text("a")

            self.assertEqual(expand_sources(["*.txt", "a.txt"], root), ["a.txt"])

    def test_absolute_pattern_outside_root(self):
        with TemporaryDirectory() as tmpdir, TemporaryDirectory() as other:
            root = Path(tmpdir)
            shared = Path(other)
            (shared / "lib.c").write_text("int lib;")

            keys = expand_sources([f"{shared.as_posix()}/*.c"], root)

            self.assertEqual(len(keys), 1)
            self.assertEqual((root / keys[0]).resolve(), (shared / "lib.c").resolve())

    def test_absolute_output_matched(self):
        with TemporaryDirectory() as tmpdir, TemporaryDirectory() as other:
            root = Path(tmpdir)
            artifact = Path(other) / "app.bin"
            artifact.write_text("binary")
            task = Task(name="link", cmds=["ld"], outputs=[artifact.as_posix()])

            keys = matched_outputs(task, root)

            self.assertEqual(len(keys), 1)
            self.assertEqual((root / keys[0]).resolve(), artifact.resolve())
            self.assertEqual(missing_outputs(task, root), [])


class TestFreshness(unittest.TestCase):
    def setUp(self):
        self._tmp = TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "in.txt").write_text("input")
        self.task = Task(name="build", cmds=["cp in.txt out.txt"], sources=["in.txt"], outputs=["out.txt"])

    def tearDown(self):
        self._tmp.cleanup()

    def test_fresh_when_digest_matches_and_outputs_exist(self):
        (self.root / "out.txt").write_text("output")
        digest = fingerprint(self.task, {}, self.task.cmds, self.root)
        entry = CacheEntry(digest, ["out.txt"])

        self.assertTrue(is_fresh(self.task, digest, entry, self.root))

    def test_stale_when_digest_differs(self):
        (self.root / "out.txt").write_text("output")
        entry = CacheEntry("0" * 64, ["out.txt"])

        self.assertFalse(is_fresh(self.task, "1" * 64, entry, self.root))

    def test_stale_when_output_missing(self):
        digest = fingerprint(self.task, {}, self.task.cmds, self.root)
        entry = CacheEntry(digest, ["out.txt"])

        self.assertEqual(missing_outputs(self.task, self.root), ["out.txt"])
        self.assertFalse(is_fresh(self.task, digest, entry, self.root))

    def test_stale_when_recorded_output_removed(self):
        """Test that outputs recorded with the entry must still exist."""
        task = Task(name="build", cmds=["gen"], sources=["in.txt"], outputs=["out/*.o"])
        (self.root / "out").mkdir()
        (self.root / "out" / "a.o").write_text("")
        (self.root / "out" / "b.o").write_text("")
        digest = fingerprint(task, {}, task.cmds, self.root)
        entry = CacheEntry(digest, matched_outputs(task, self.root))
        self.assertTrue(is_fresh(task, digest, entry, self.root))

        (self.root / "out" / "b.o").unlink()
        self.assertFalse(is_fresh(task, digest, entry, self.root))

    def test_no_entry_is_stale(self):
        digest = fingerprint(self.task, {}, self.task.cmds, self.root)
        self.assertFalse(is_fresh(self.task, digest, None, self.root))

    def test_task_without_sources_never_fresh(self):
        task = Task(name="deploy", cmds=["deploy"], outputs=["in.txt"])
        entry = CacheEntry("abc", ["in.txt"])

        self.assertFalse(task.cacheable)
        self.assertFalse(is_fresh(task, "abc", entry, self.root))

    def test_matched_outputs(self):
        task = Task(name="t", cmds=["x"], sources=["in.txt"], outputs=["*.log", "missing.bin"])
        (self.root / "b.log").write_text("")
        (self.root / "a.log").write_text("")

        self.assertEqual(matched_outputs(task, self.root), ["a.log", "b.log"])
        self.assertEqual(missing_outputs(task, self.root), ["missing.bin"])


if __name__ == "__main__":
    unittest.main()
