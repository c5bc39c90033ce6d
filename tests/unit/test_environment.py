"""Tests for environment resolution and provenance."""

import os
import sys
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from tasklane.environment import (
    EnvLayer,
    EnvValue,
    Provenance,
    ResolvedEnvironment,
    merge_layers,
    resolve_environment,
)
from tasklane.errors import DynamicVariableError
from tasklane.platforms import Shell

POSIX_SHELL = Shell("sh", "-c")


def _system() -> EnvLayer:
    return EnvLayer(Provenance.SYSTEM, "system", dict(os.environ))


class TestMergeLayers(unittest.TestCase):
    def test_later_layers_win(self):
        merged = merge_layers(
            [
                EnvLayer(Provenance.SYSTEM, "system", {"HOME": "/home/me", "MODE": "sys"}),
                EnvLayer(Provenance.CONFIG, "tasklane.yaml", {"MODE": "config"}),
                EnvLayer(Provenance.EXTENSION, "tasklane.ci.yaml", {"MODE": "ext"}),
                EnvLayer(Provenance.DOTENV, ".env", {"MODE": "dotenv"}),
            ]
        )

        self.assertEqual(merged["MODE"], EnvValue("dotenv", Provenance.DOTENV, ".env"))
        self.assertEqual(merged["HOME"].provenance, Provenance.SYSTEM)

    def test_overwritten_name_moves_to_winning_position(self):
        merged = merge_layers(
            [
                EnvLayer(Provenance.CONFIG, "base", {"A": "1", "B": "2"}),
                EnvLayer(Provenance.EXTENSION, "ext", {"A": "3"}),
            ]
        )
        self.assertEqual(list(merged), ["B", "A"])


class TestResolvedEnvironment(unittest.TestCase):
    def test_mapping_interface(self):
        env = ResolvedEnvironment(
            {"A": EnvValue("1", Provenance.CONFIG, "tasklane.yaml")}
        )

        self.assertEqual(env["A"], "1")
        self.assertEqual(len(env), 1)
        self.assertEqual(env.entry("A").source, "tasklane.yaml")
        self.assertEqual(env.as_dict(), {"A": "1"})

    def test_as_dict_is_a_copy(self):
        env = ResolvedEnvironment({"A": EnvValue("1", Provenance.CONFIG)})
        copy = env.as_dict()
        copy["A"] = "changed"
        self.assertEqual(env["A"], "1")


@unittest.skipIf(sys.platform == "win32", "uses a POSIX shell")
class TestResolveEnvironment(unittest.TestCase):
    def test_static_layers(self):
        env = resolve_environment(
            [_system(), EnvLayer(Provenance.CONFIG, "tasklane.yaml", {"GREETING": "hello"})],
            POSIX_SHELL,
        )
        self.assertEqual(env["GREETING"], "hello")
        self.assertEqual(env.entry("GREETING").provenance, Provenance.CONFIG)

    def test_dynamic_value_trimmed(self):
        env = resolve_environment(
            [_system(), EnvLayer(Provenance.CONFIG, "tasklane.yaml", {"REV": "$(echo '  abc123  ')"})],
            POSIX_SHELL,
        )
        self.assertEqual(env["REV"], "abc123")
        self.assertEqual(env.entry("REV").provenance, Provenance.DYNAMIC)
        self.assertEqual(env.entry("REV").source, "tasklane.yaml")

    def test_dynamic_sees_previously_resolved_values(self):
        env = resolve_environment(
            [
                _system(),
                EnvLayer(
                    Provenance.CONFIG,
                    "tasklane.yaml",
                    {"NAME": "world", "FIRST": "$(echo one)", "SECOND": "$(echo $FIRST-$NAME)"},
                ),
            ],
            POSIX_SHELL,
        )
        self.assertEqual(env["SECOND"], "one-world")

    def test_dynamic_runs_in_cwd(self):
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "marker.txt").write_text("found")
            env = resolve_environment(
                [_system(), EnvLayer(Provenance.CONFIG, "c", {"M": "$(cat marker.txt)"})],
                POSIX_SHELL,
                cwd=Path(tmpdir),
            )
        self.assertEqual(env["M"], "found")

    def test_forward_reference_rejected(self):
        """Test that referencing a dynamic variable declared later is an error."""
        with self.assertRaises(DynamicVariableError) as cm:
            resolve_environment(
                [
                    _system(),
                    EnvLayer(
                        Provenance.CONFIG,
                        "tasklane.yaml",
                        {"FIRST": "$(echo ${SECOND})", "SECOND": "$(echo two)"},
                    ),
                ],
                POSIX_SHELL,
            )
        self.assertIn("SECOND", str(cm.exception))

    def test_self_reference_rejected(self):
        with self.assertRaises(DynamicVariableError):
            resolve_environment(
                [_system(), EnvLayer(Provenance.CONFIG, "c", {"LOOP": "$(echo $LOOP)"})],
                POSIX_SHELL,
            )

    def test_failing_dynamic_command(self):
        with self.assertRaises(DynamicVariableError) as cm:
            resolve_environment(
                [_system(), EnvLayer(Provenance.CONFIG, "c", {"BAD": "$(exit 3)"})],
                POSIX_SHELL,
            )
        self.assertIn("exited with code 3", str(cm.exception))

    def test_missing_shell(self):
        with self.assertRaises(DynamicVariableError):
            resolve_environment(
                [_system(), EnvLayer(Provenance.CONFIG, "c", {"X": "$(echo x)"})],
                Shell("/nonexistent/shell", "-c"),
            )

    def test_system_values_never_executed(self):
        env = resolve_environment(
            [EnvLayer(Provenance.SYSTEM, "system", {"PATH": os.environ.get("PATH", ""), "ODD": "$(exit 1)"})],
            POSIX_SHELL,
        )
        self.assertEqual(env["ODD"], "$(exit 1)")
        self.assertEqual(env.entry("ODD").provenance, Provenance.SYSTEM)

    def test_dotenv_layer_can_be_dynamic(self):
        env = resolve_environment(
            [
                _system(),
                EnvLayer(Provenance.CONFIG, "tasklane.yaml", {"V": "static"}),
                EnvLayer(Provenance.DOTENV, ".env", {"V": "$(echo from-dotenv)"}),
            ],
            POSIX_SHELL,
        )
        self.assertEqual(env["V"], "from-dotenv")
        self.assertEqual(env.entry("V").source, ".env")


if __name__ == "__main__":
    unittest.main()
