"""Resolved environment with per-variable provenance.

Layers are merged in a fixed order (system < base config < extensions <
.env file), then ``$(command)`` values are resolved in declaration order.
"""

from __future__ import annotations

import enum
import re
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from tasklane.errors import DynamicVariableError
from tasklane.platforms import Shell

# $(command) occupying the whole value
DYNAMIC_PATTERN = re.compile(r"^\s*\$\((.*)\)\s*$", re.DOTALL)

# $NAME, ${NAME} and %NAME% references inside a dynamic command
REFERENCE_PATTERN = re.compile(
    r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)|%([A-Za-z_][A-Za-z0-9_]*)%"
)


class Provenance(enum.Enum):
    """Origin layer of a resolved environment value."""

    SYSTEM = "system"
    CONFIG = "config"
    EXTENSION = "extension"
    DOTENV = "dotenv"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class EnvValue:
    value: str
    provenance: Provenance
    source: str = ""


@dataclass
class EnvLayer:
    """One layer of variable declarations, in declaration order."""

    provenance: Provenance
    source: str
    values: dict[str, str] = field(default_factory=dict)


class ResolvedEnvironment(Mapping):
    """Read-only mapping from variable name to its final string value.

    Built once per invocation and shared by every task; safe for concurrent reads.
    """

    def __init__(self, values: Mapping[str, EnvValue]):
        self._values = dict(values)
        self._plain = {name: entry.value for name, entry in self._values.items()}

    def __getitem__(self, name: str) -> str:
        return self._plain[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._plain)

    def __len__(self) -> int:
        return len(self._plain)

    def entry(self, name: str) -> EnvValue:
        """Return the value together with its provenance."""
        return self._values[name]

    def entries(self) -> list[tuple[str, EnvValue]]:
        return list(self._values.items())

    def as_dict(self) -> dict[str, str]:
        """Return a fresh plain dict suitable for subprocess ``env=``."""
        return dict(self._plain)


def merge_layers(layers: list[EnvLayer]) -> dict[str, EnvValue]:
    """Merge layers so that later layers overwrite earlier ones.

    An overwritten name moves to the position of its winning declaration,
    which defines the order dynamic values are resolved in.
    """
    merged: dict[str, EnvValue] = {}
    for layer in layers:
        for name, value in layer.values.items():
            merged.pop(name, None)
            merged[name] = EnvValue(str(value), layer.provenance, layer.source)
    return merged


def resolve_environment(
    layers: list[EnvLayer],
    shell: Shell,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> ResolvedEnvironment:
    """
    Merge layers and resolve dynamic ``$(command)`` values.

    Args:
        layers: Layers in precedence order (lowest first)
        shell: Shell used to run dynamic commands
        cwd: Working directory for dynamic commands
        timeout: Optional limit for each dynamic command

    Returns:
        The immutable resolved environment

    Raises:
        DynamicVariableError: If a dynamic command fails, cannot be launched,
            or references a dynamic variable that is not resolved yet
    """
    merged = merge_layers(layers)

    pending = {
        name: match.group(1).strip()
        for name, entry in merged.items()
        if entry.provenance is not Provenance.SYSTEM
        and (match := DYNAMIC_PATTERN.match(entry.value))
    }

    resolved: dict[str, EnvValue] = {
        name: entry for name, entry in merged.items() if name not in pending
    }

    for name in list(pending):
        command = pending[name]
        _check_forward_references(name, command, pending)

        value = _run_dynamic_command(
            name, command, shell, {n: e.value for n, e in resolved.items()}, cwd, timeout
        )
        del pending[name]
        resolved[name] = EnvValue(value, Provenance.DYNAMIC, merged[name].source)

    # Keep declaration order of the merged layers
    return ResolvedEnvironment({name: resolved[name] for name in merged})


def _check_forward_references(name: str, command: str, pending: dict[str, str]) -> None:
    for match in REFERENCE_PATTERN.finditer(command):
        referenced = next(group for group in match.groups() if group)
        if referenced in pending:
            raise DynamicVariableError(
                f"Dynamic variable '{name}' references '{referenced}', "
                f"which is not resolved yet (forward or self reference)"
            )


def _run_dynamic_command(
    name: str,
    command: str,
    shell: Shell,
    env: dict[str, str],
    cwd: Optional[Path],
    timeout: Optional[float],
) -> str:
    try:
        result = subprocess.run(
            shell.argv(command),
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except OSError as e:
        raise DynamicVariableError(
            f"Dynamic variable '{name}': could not launch '{command}': {e}"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise DynamicVariableError(
            f"Dynamic variable '{name}': '{command}' timed out"
        ) from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        detail = f": {stderr}" if stderr else ""
        raise DynamicVariableError(
            f"Dynamic variable '{name}': '{command}' exited with code {result.returncode}{detail}"
        )

    return result.stdout.strip()
