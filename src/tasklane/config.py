"""
User and machine level configuration (shell, log level, worker count).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import platformdirs
import yaml

from tasklane.errors import ConfigError
from tasklane.logging import LogLevel, parse_log_level

__all__ = [
    "UserConfig",
    "get_user_config_path",
    "get_machine_config_path",
    "parse_config_file",
    "load_user_config",
]

_KNOWN_KEYS = {"shell", "log_level", "jobs"}


@dataclass(frozen=True)
class UserConfig:
    """Settings that apply to every project on this machine or for this user.

    A field left as None was not set and falls through to the next layer.
    """

    shell: Optional[str] = None
    log_level: Optional[LogLevel] = None
    jobs: Optional[int] = None

    def overlay(self, other: "UserConfig") -> "UserConfig":
        """Return a copy with every field set in other taking precedence."""
        return replace(
            self,
            shell=other.shell if other.shell is not None else self.shell,
            log_level=other.log_level if other.log_level is not None else self.log_level,
            jobs=other.jobs if other.jobs is not None else self.jobs,
        )


def get_machine_config_path() -> Path:
    """
    Get the path to the machine-level (system-wide) configuration file.

    Uses platformdirs to determine the appropriate site config directory
    for the current platform, then appends 'tasklane/config.yml'.

    Returns:
        Path to the machine config file (may not exist)
    """
    config_dir = Path(platformdirs.site_config_dir("tasklane"))
    return config_dir / "config.yml"


def get_user_config_path() -> Path:
    """
    Get the path to the user-level configuration file.

    Returns:
        Path to the user config file (may not exist)

    Example:
        >>> user_config = get_user_config_path()
        >>> if user_config.exists():
        ...     settings = parse_config_file(user_config)
    """
    config_dir: Path = Path(platformdirs.user_config_dir("tasklane"))
    return config_dir / "config.yml"


def parse_config_file(path: Path) -> Optional[UserConfig]:
    """
    Parse a tasklane configuration file.

    Empty files are valid and return an empty UserConfig.

    Args:
        path: Path to the configuration file

    Returns:
        UserConfig, or None if the file doesn't exist

    Raises:
        ConfigError: If the config file is invalid (malformed YAML, unknown
                     keys or values of the wrong type)

    Config File Example (~/.config/tasklane/config.yml):
        ```yaml
        shell: /bin/bash
        log_level: debug
        jobs: 4
        ```
    """
    # Return None if file doesn't exist (not an error)
    if not path.exists():
        return None

    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Error reading config file '{path}': {e}") from e

    if not content.strip():
        return UserConfig()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML in config file '{path}': {e}") from e

    if data is None:
        return UserConfig()

    if not isinstance(data, dict):
        raise ConfigError(f"Error in config file '{path}': top level must be a dictionary")

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(
            f"Error in config file '{path}': unknown key(s): {', '.join(map(str, unknown))}"
        )

    shell = data.get("shell")
    if shell is not None and (not isinstance(shell, str) or not shell):
        raise ConfigError(f"Error in config file '{path}': Field 'shell' must be a non-empty string")

    log_level = data.get("log_level")
    if log_level is not None:
        if not isinstance(log_level, str):
            raise ConfigError(f"Error in config file '{path}': Field 'log_level' must be a string")
        try:
            log_level = parse_log_level(log_level)
        except ValueError as e:
            raise ConfigError(f"Error in config file '{path}': {e}") from e

    jobs = data.get("jobs")
    if jobs is not None and (isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1):
        raise ConfigError(f"Error in config file '{path}': Field 'jobs' must be a positive integer")

    return UserConfig(shell=shell, log_level=log_level, jobs=jobs)


def load_user_config(
    user_path: Optional[Path] = None,
    machine_path: Optional[Path] = None,
) -> UserConfig:
    """
    Load machine-level settings overlaid by user-level settings.

    Raises:
        ConfigError: If either file is invalid
    """
    config = UserConfig()
    for path in (machine_path or get_machine_config_path(), user_path or get_user_config_path()):
        parsed = parse_config_file(path)
        if parsed is not None:
            config = config.overlay(parsed)
    return config
