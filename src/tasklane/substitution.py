"""Substitution of pass-through CLI arguments into task commands."""

import re

# $1, $2, ... with multi-digit indices read whole
POSITIONAL_PATTERN = re.compile(r"\$(\d+)")


def expand_command(cmd: str, args: list[str]) -> str:
    """Substitute positional placeholders with pass-through arguments.

    ``$1`` is replaced by the first argument, ``$2`` by the second, and so on.
    If the command contains no placeholder for any given argument, all
    arguments are appended to the command separated by spaces.

    Args:
        cmd: Command template
        args: Arguments given after the task name on the command line

    Returns:
        The expanded command

    Examples:
        >>> expand_command("pytest $1", ["-k smoke"])
        'pytest -k smoke'
        >>> expand_command("pytest", ["-x", "-q"])
        'pytest -x -q'
    """
    if not args:
        return cmd

    replaced = False

    def replace_match(match: re.Match) -> str:
        nonlocal replaced
        index = int(match.group(1))
        if 1 <= index <= len(args):
            replaced = True
            return args[index - 1]
        return match.group(0)

    expanded = POSITIONAL_PATTERN.sub(replace_match, cmd)

    if not replaced:
        expanded = f"{cmd} {' '.join(args)}"

    return expanded
