"""
Git collaborators - Discover changed files and fetch their patches.

The diffs are requested in the tightest form git offers (no context, no
hunk merging, whitespace ignored) so that every chunk header lists only
lines that really changed.
"""

import json
import logging
import re
import subprocess
from typing import Any, Iterable, Optional

from .errors import ConfigurationError, GitCommandError
from .gaps import FileLines
from .patch import parse_patch

logger = logging.getLogger(__name__)


def compile_patterns(raw: Optional[str], default: str, option: str) -> list[re.Pattern]:
    """
    Parse a JSON array of regular expressions, e.g. ``'["^src/", "^lib/"]'``.

    Args:
        raw: The option value; empty or None uses ``default``
        default: JSON used when no value is given
        option: Option name for error messages

    Raises:
        ConfigurationError: If the value is not a JSON array of valid regexes
    """
    if not raw:
        raw = default
        logger.debug(f"compile_patterns: {option} default={default}")

    try:
        strings = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Could not parse {option}={raw}") from e

    if not isinstance(strings, list):
        raise ConfigurationError(f"Error parsing {option!r} to array: got {raw}")

    patterns = []
    for pattern in strings:
        try:
            patterns.append(re.compile(str(pattern)))
        except re.error as e:
            raise ConfigurationError(f"Could not parse {pattern!r} in {option} to a regular expression") from e

    return patterns


def filter_paths(
    paths: Iterable[str],
    include: list[re.Pattern],
    ignore: list[re.Pattern],
) -> list[str]:
    """Keep paths matching some ``include`` pattern and no ``ignore`` pattern."""
    return [
        path for path in paths
        if path
        and any(p.search(path) for p in include)
        and not any(p.search(path) for p in ignore)
    ]


def resolve_base_ref(event_name: str, payload: dict[str, Any]) -> str:
    """
    Get the ref to diff against from a CI event payload.

    The base is the pull request's base commit, or the commit before the
    push.
    """
    try:
        if event_name == "pull_request":
            return payload["pull_request"]["base"]["sha"]
        if event_name == "push":
            return payload["before"]
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Event payload for {event_name!r} has no base ref") from e

    raise ConfigurationError('The triggering event must be "push" or "pull_request"')


def load_event(event_path: str) -> dict[str, Any]:
    with open(event_path, "r", encoding="utf-8") as f:
        return json.load(f)


class GitRunner:
    """Run git commands in a working tree."""

    def __init__(self, cwd: Optional[str] = None):
        self.cwd = cwd

    def run(self, args: list[str]) -> str:
        command = ["git", *args]
        logger.debug(f"GitRunner: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                cwd=self.cwd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as e:
            raise GitCommandError(command, -1, "git executable not found") from e

        if result.returncode != 0:
            raise GitCommandError(command, result.returncode, result.stderr)

        return result.stdout

    def fetch(self, ref: str) -> None:
        self.run(["fetch", "origin", ref])

    def changed_paths(self, base: str) -> list[str]:
        """Added or modified (ignoring whitespace) paths since ``base``."""
        stdout = self.run(["diff", "--name-only", "--diff-filter=AM", "-w", base, "--"])
        return stdout.split("\n")

    def file_diff(self, base: str, path: str) -> str:
        return self.run([
            "diff",
            "-U0",
            "--minimal",
            "--diff-filter=AM",
            "--inter-hunk-context=0",
            "-w",
            base,
            "--",
            path,
        ])


def collect_file_lines(
    runner: GitRunner,
    base: str,
    include: list[re.Pattern],
    ignore: list[re.Pattern],
) -> list[FileLines]:
    """Diff every included, changed path against ``base`` and parse it."""
    paths = filter_paths(runner.changed_paths(base), include, ignore)
    logger.debug(f"collect_file_lines: paths={paths}")

    lines = []
    for path in paths:
        numbers = parse_patch(runner.file_diff(base, path))
        lines.append(FileLines(path=path, added=numbers.added, removed=numbers.removed))

    return lines
