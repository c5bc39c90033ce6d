"""Masking of secrets in console output and log files."""

from __future__ import annotations

import re
from typing import Iterable

REDACTED = "[REDACTED]"

# Environment variable names containing these fragments are never written verbatim
SENSITIVE_NAME_FRAGMENTS = ("KEY", "TOKEN", "PASS", "SECRET")


class SecretRedactor:
    """Replaces every match of the configured patterns with a fixed marker."""

    def __init__(self, patterns: Iterable[str] = ()):
        self._patterns = [re.compile(p) for p in patterns if p]

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def redact(self, text: str) -> str:
        for pattern in self._patterns:
            text = pattern.sub(REDACTED, text)
        return text


def is_sensitive_name(name: str) -> bool:
    upper = name.upper()
    return any(fragment in upper for fragment in SENSITIVE_NAME_FRAGMENTS)
