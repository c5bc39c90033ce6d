"""Per-command execution log files under .tasklane/logs."""

from __future__ import annotations

import hashlib
import re
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from tasklane.parser import Project
from tasklane.redaction import REDACTED, SecretRedactor, is_sensitive_name

LOG_DIR = Path(".tasklane") / "logs"

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE.sub("", text)


def should_write(strategy: str, exit_code: Optional[int]) -> bool:
    if strategy == "always":
        return True
    if strategy == "error-only":
        return exit_code != 0
    return False


def write_task_log(
    project_root: Path,
    project: Project,
    task_name: str,
    command: str,
    output: str,
    exit_code: Optional[int],
    duration: float,
    env: Mapping[str, str],
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """
    Write an execution log for one command according to the project's log strategy.

    A timed-out command (``exit_code`` None) is filed under "timeout".

    Returns:
        Path of the written log, or None when the strategy skips this command

    Raises:
        OSError: If the log directory or file cannot be written
    """
    if not should_write(project.log_strategy, exit_code):
        return None

    redactor = SecretRedactor(project.secrets)
    now = now or datetime.now().astimezone()
    exit_label = "timeout" if exit_code is None else str(exit_code)

    time_str = now.strftime("%H%M%S")
    short_hash = hashlib.blake2b(f"{task_name}{time_str}{command}".encode(), digest_size=3).hexdigest()
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", task_name)

    log_dir = project_root / LOG_DIR / now.strftime("%Y-%m-%d") / exit_label
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{time_str}_{safe_name}_{short_hash}.log"

    lines = [
        "=== TASKLANE EXECUTION LOG ===",
        f"Task: {task_name}",
        f"Command: {redactor.redact(command)}",
        f"Time: {now.isoformat()}",
        "=== ENVIRONMENT SNAPSHOT ===",
    ]
    for name in sorted(env):
        value = REDACTED if is_sensitive_name(name) else redactor.redact(env[name])
        lines.append(f"{name} = {value}")
    lines.append("============================")
    lines.append("")

    body = strip_ansi(output) if project.log_plain else output
    lines.append(redactor.redact(body))

    lines += [
        "",
        "============================",
        f"Exit Code: {exit_label}",
        f"Duration: {int(duration * 1000)} ms",
        f"End Time: {datetime.now().astimezone().isoformat()}",
        "============================",
    ]

    log_path.write_text("\n".join(lines) + "\n")
    return log_path
