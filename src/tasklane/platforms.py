"""Operating system detection and shell selection."""

from __future__ import annotations

import os
import platform
import re
from dataclasses import dataclass
from typing import Mapping, Optional

# Module-level constant for platform detection to avoid repeated system calls
_IS_WINDOWS = platform.system() == "Windows"

PLATFORM_NAMES = ("windows", "linux", "macos")

_SYSTEM_TO_PLATFORM = {
    "Windows": "windows",
    "Linux": "linux",
    "Darwin": "macos",
}


def current_platform() -> str:
    """
    Get the platform key used to select OS-specific command lists.

    Returns:
        "windows", "linux" or "macos"; any other system is returned lowercased
        (e.g. "freebsd") and therefore falls back to the generic commands.
    """
    system = platform.system()
    return _SYSTEM_TO_PLATFORM.get(system, system.lower())


@dataclass(frozen=True)
class Shell:
    """A shell executable plus the flag that makes it run a command string."""

    executable: str
    flag: str

    def argv(self, command: str) -> list[str]:
        return [self.executable, self.flag, command]


def shell_flag(executable: str) -> str:
    """Return "/C" for cmd.exe style shells and "-c" for everything else."""
    name = re.split(r"[\\/]", executable)[-1].lower()
    if "cmd" in name and "sh" not in name:
        return "/C"
    return "-c"


def detect_shell(
    override: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> Shell:
    """
    Resolve the shell used to interpret task commands.

    Resolution order:
    1. Explicit override (CLI, project config or user config)
    2. The SHELL environment variable
    3. Platform default (cmd on Windows, sh elsewhere)
    """
    if environ is None:
        environ = os.environ

    executable = override or environ.get("SHELL") or ("cmd" if _IS_WINDOWS else "sh")
    return Shell(executable=executable, flag=shell_flag(executable))
