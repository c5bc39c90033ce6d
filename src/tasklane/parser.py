"""Parse project YAML files, merge extensions and layer .env files."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from tasklane.environment import EnvLayer, Provenance, ResolvedEnvironment, resolve_environment
from tasklane.errors import ConfigError
from tasklane.platforms import PLATFORM_NAMES, Shell, detect_shell

RECIPE_FILENAMES = ("tasklane.yaml", "tasklane.yml")
EXTENSION_GLOBS = ("tasklane.*.yaml", "tasklane.*.yml")
PROFILE_ENV_VAR = "TASKLANE_ENV"

LOG_STRATEGIES = ("none", "error-only", "always")

_TASK_KEYS = {
    "cmds", "cmd", "windows", "linux", "macos", "deps", "parallel", "run_if",
    "skip_if", "ignore_failure", "retry", "retry_delay", "timeout", "finally",
    "sources", "outputs", "description", "desc",
}


@dataclass(frozen=True)
class Project:
    """Project metadata and run-wide settings."""

    name: str = ""
    version: str = ""
    authors: tuple[str, ...] = ()
    description: str = ""
    shell: Optional[str] = None
    log_strategy: str = "none"
    log_plain: bool = True
    secrets: tuple[str, ...] = ()
    finally_on_skip: bool = True


@dataclass
class Task:
    """Represents a task definition."""

    name: str
    cmds: list[str] = field(default_factory=list)
    windows: Optional[list[str]] = None
    linux: Optional[list[str]] = None
    macos: Optional[list[str]] = None
    deps: list[str] = field(default_factory=list)
    parallel: bool = False
    run_if: Optional[str] = None
    skip_if: Optional[str] = None
    ignore_failure: bool = False
    retry: int = 0
    retry_delay: float = 0.0
    timeout: Optional[float] = None
    finally_cmds: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    desc: str = ""
    source_file: str = ""  # Track which file defined this task

    def __post_init__(self):
        """Ensure lists are always lists."""
        if isinstance(self.cmds, str):
            self.cmds = [self.cmds]
        if isinstance(self.deps, str):
            self.deps = [self.deps]
        if isinstance(self.finally_cmds, str):
            self.finally_cmds = [self.finally_cmds]
        if isinstance(self.sources, str):
            self.sources = [self.sources]
        if isinstance(self.outputs, str):
            self.outputs = [self.outputs]

    @property
    def cacheable(self) -> bool:
        """Caching is enabled only when both sources and outputs are declared."""
        return bool(self.sources) and bool(self.outputs)

    def commands_for(self, platform_name: str) -> list[str]:
        """Commands to run on the given platform.

        An OS-specific list that is present fully replaces the generic list.
        """
        override = getattr(self, platform_name, None) if platform_name in PLATFORM_NAMES else None
        if override is not None:
            return list(override)
        return list(self.cmds)


@dataclass
class Recipe:
    """Represents the merged configuration with all tasks."""

    tasks: dict[str, Task]
    project_root: Path
    project: Project = field(default_factory=Project)
    environment: ResolvedEnvironment = field(default_factory=lambda: ResolvedEnvironment({}))
    clean_targets: list[str] = field(default_factory=list)
    config_files: list[Path] = field(default_factory=list)
    shell: Shell = field(default_factory=detect_shell)

    def get_task(self, name: str) -> Task | None:
        return self.tasks.get(name)

    def task_names(self) -> list[str]:
        """Get all task names in declaration order."""
        return list(self.tasks.keys())


def find_recipe_file(start_dir: Path | None = None) -> Path | None:
    """Find tasklane.yaml (or tasklane.yml) in current or parent directories.

    Args:
        start_dir: Directory to start searching from (defaults to cwd)

    Returns:
        Path to recipe file if found, None otherwise
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        for filename in RECIPE_FILENAMES:
            recipe_path = current / filename
            if recipe_path.exists():
                return recipe_path

        parent = current.parent
        if parent == current:
            # Reached root
            break
        current = parent

    return None


def find_extension_files(recipe_path: Path) -> list[Path]:
    """Extension documents next to the base file, in alphabetical filename order."""
    found: dict[str, Path] = {}
    for pattern in EXTENSION_GLOBS:
        for path in recipe_path.parent.glob(pattern):
            if path.is_file() and path != recipe_path:
                found[path.name] = path
    return [found[name] for name in sorted(found)]


def parse_recipe(
    recipe_path: Path,
    profile: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    default_shell: Optional[str] = None,
) -> Recipe:
    """Parse a project file, merge its extensions and resolve the environment.

    Args:
        recipe_path: Path to the base configuration file
        profile: Active profile selecting .env.<profile> (defaults to $TASKLANE_ENV)
        environ: System environment (defaults to os.environ)
        default_shell: Shell to use when the project does not override it

    Returns:
        Recipe with merged tasks, project settings and resolved environment

    Raises:
        ConfigError: If any file is missing, malformed or has invalid fields
        DynamicVariableError: If a $(command) value cannot be resolved
    """
    if not recipe_path.exists():
        raise ConfigError(f"Recipe file not found: {recipe_path}")

    if environ is None:
        environ = os.environ
    if profile is None:
        profile = environ.get(PROFILE_ENV_VAR) or None

    project_root = recipe_path.parent
    config_files = [recipe_path] + find_extension_files(recipe_path)

    project_data: dict[str, Any] = {}
    tasks: dict[str, Task] = {}
    clean_targets: list[str] = []
    layers = [EnvLayer(Provenance.SYSTEM, "system", dict(environ))]

    for index, path in enumerate(config_files):
        data = _load_yaml(path)
        provenance = Provenance.CONFIG if index == 0 else Provenance.EXTENSION

        project_section = data.get("project", {}) or {}
        if not isinstance(project_section, dict):
            raise ConfigError(f"{path.name}: 'project' must be a dictionary")
        project_data.update(project_section)

        env_section = data.get("env", {}) or {}
        if not isinstance(env_section, dict):
            raise ConfigError(f"{path.name}: 'env' must be a dictionary")
        layers.append(
            EnvLayer(provenance, path.name, {str(k): _env_value(path, k, v) for k, v in env_section.items()})
        )

        clean_section = data.get("clean", {}) or {}
        if not isinstance(clean_section, dict):
            raise ConfigError(f"{path.name}: 'clean' must be a dictionary")
        clean_targets.extend(_string_list(path, "clean.targets", clean_section.get("targets", [])))

        tasks_section = data.get("tasks", {}) or {}
        if not isinstance(tasks_section, dict):
            raise ConfigError(f"{path.name}: 'tasks' must be a dictionary")
        for task_name, task_data in tasks_section.items():
            # Same name in a later file overrides the earlier definition
            tasks.pop(str(task_name), None)
            tasks[str(task_name)] = _parse_task(path, str(task_name), task_data)

    project = _parse_project(recipe_path, project_data)

    dotenv_path = project_root / (f".env.{profile}" if profile else ".env")
    if dotenv_path.exists():
        values = dotenv_values(dotenv_path, interpolate=False)
        layers.append(
            EnvLayer(
                Provenance.DOTENV,
                dotenv_path.name,
                {k: v for k, v in values.items() if v is not None},
            )
        )
    elif profile:
        raise ConfigError(f"Profile '{profile}' selected but {dotenv_path.name} does not exist")

    shell = detect_shell(project.shell or default_shell, environ)
    environment = resolve_environment(layers, shell, cwd=project_root)

    return Recipe(
        tasks=tasks,
        project_root=project_root,
        project=project,
        environment=environment,
        clean_targets=clean_targets,
        config_files=config_files,
        shell=shell,
    )


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML in '{path}': {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading '{path}': {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name}: top level must be a dictionary")
    return data


def _env_value(path: Path, name: Any, value: Any) -> str:
    if isinstance(value, (dict, list)) or value is None:
        raise ConfigError(f"{path.name}: env value '{name}' must be a scalar")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _string_list(path: Path, where: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{path.name}: '{where}' must be a string or a list of strings")
    return list(value)


def _optional_string_list(path: Path, where: str, value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    return _string_list(path, where, value)


def _optional_string(path: Path, where: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{path.name}: '{where}' must be a string")
    return value


def _bool(path: Path, where: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{path.name}: '{where}' must be a boolean")
    return value


def _non_negative(path: Path, where: str, value: Any, integer: bool = False) -> float:
    valid_type = int if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, valid_type):
        kind = "an integer" if integer else "a number"
        raise ConfigError(f"{path.name}: '{where}' must be {kind}")
    if value < 0:
        raise ConfigError(f"{path.name}: '{where}' must not be negative")
    return value


def _parse_task(path: Path, name: str, data: Any) -> Task:
    # Shorthand forms: a single command or a command list
    if isinstance(data, (str, list)):
        return Task(name=name, cmds=_string_list(path, f"tasks.{name}", data), source_file=str(path))

    if not isinstance(data, dict):
        raise ConfigError(f"{path.name}: task '{name}' must be a string, list or dictionary")

    unknown = sorted(set(data) - _TASK_KEYS)
    if unknown:
        raise ConfigError(f"{path.name}: task '{name}' has unknown field(s): {', '.join(unknown)}")

    where = f"tasks.{name}"
    cmds = data.get("cmds", data.get("cmd", []))
    timeout = data.get("timeout")

    task = Task(
        name=name,
        cmds=_string_list(path, f"{where}.cmds", cmds),
        windows=_optional_string_list(path, f"{where}.windows", data.get("windows")),
        linux=_optional_string_list(path, f"{where}.linux", data.get("linux")),
        macos=_optional_string_list(path, f"{where}.macos", data.get("macos")),
        deps=_string_list(path, f"{where}.deps", data.get("deps", [])),
        parallel=_bool(path, f"{where}.parallel", data.get("parallel", False)),
        run_if=_optional_string(path, f"{where}.run_if", data.get("run_if")),
        skip_if=_optional_string(path, f"{where}.skip_if", data.get("skip_if")),
        ignore_failure=_bool(path, f"{where}.ignore_failure", data.get("ignore_failure", False)),
        retry=int(_non_negative(path, f"{where}.retry", data.get("retry", 0), integer=True)),
        retry_delay=float(_non_negative(path, f"{where}.retry_delay", data.get("retry_delay", 0))),
        timeout=None if timeout is None else float(_non_negative(path, f"{where}.timeout", timeout)),
        finally_cmds=_string_list(path, f"{where}.finally", data.get("finally", [])),
        sources=_string_list(path, f"{where}.sources", data.get("sources", [])),
        outputs=_string_list(path, f"{where}.outputs", data.get("outputs", [])),
        desc=_optional_string(path, f"{where}.description", data.get("description", data.get("desc"))) or "",
        source_file=str(path),
    )

    if task.timeout == 0:
        raise ConfigError(f"{path.name}: '{where}.timeout' must be greater than zero")

    return task


def _parse_project(path: Path, data: dict[str, Any]) -> Project:
    log_strategy = data.get("log_strategy", "none")
    if log_strategy not in LOG_STRATEGIES:
        raise ConfigError(
            f"{path.name}: 'project.log_strategy' must be one of {', '.join(LOG_STRATEGIES)}"
        )

    secrets = _string_list(path, "project.secrets", data.get("secrets", []))
    for pattern in secrets:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"{path.name}: invalid secret pattern '{pattern}': {e}") from e

    version = data.get("version", "")
    return Project(
        name=_optional_string(path, "project.name", data.get("name")) or "",
        version="" if version is None else str(version),
        authors=tuple(_string_list(path, "project.authors", data.get("authors", []))),
        description=_optional_string(path, "project.description", data.get("description")) or "",
        shell=_optional_string(path, "project.shell", data.get("shell")),
        log_strategy=log_strategy,
        log_plain=_bool(path, "project.log_plain", data.get("log_plain", True)),
        secrets=tuple(secrets),
        finally_on_skip=_bool(path, "project.finally_on_skip", data.get("finally_on_skip", True)),
    )
