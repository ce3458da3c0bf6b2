"""
MCP Tool Handler for diff_covered.check

Wraps the diff-covered engine to provide an MCP-compatible interface.
Accepts coverage-final.json as inline JSON or artifact reference, and the
per-file patches inline.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from diffcov.coverage import CoverageParser, CoverageReport
from diffcov.errors import MalformedCoverageError
from diffcov.gaps import (
    FileLines,
    GapReportEntry,
    find_untested_added_lines,
    format_gap_message,
    format_summary,
)
from diffcov.patch import parse_patch

FAIL_ON_CHOICES = ("none", "any")


def handle(
    request: dict[str, Any],
    *,
    artifact_resolver: Optional[Callable[[str], bytes]] = None,
) -> dict[str, Any]:
    """
    MCP tool handler for diff_covered.check.

    Args:
        request: Request dict matching the request schema.
        artifact_resolver: Optional callable to resolve artifact_id -> bytes.
            If not provided, falls back to locator-as-path.

    Returns:
        Response dict matching the response schema.
    """
    fail_on = request.get("fail_on", "none")
    if fail_on not in FAIL_ON_CHOICES:
        return _error_response(f"fail_on must be one of {', '.join(FAIL_ON_CHOICES)}")

    try:
        # 1. Load coverage data
        coverage_data = _load_coverage(
            request["coverage"],
            artifact_resolver=artifact_resolver,
        )
        report = CoverageParser().parse_data(coverage_data)
    except KeyError as e:
        return _error_response(f"Missing request field: {e}")
    except FileNotFoundError as e:
        return _error_response(f"Coverage file not found: {e}")
    except json.JSONDecodeError as e:
        return _error_response(f"Invalid JSON in coverage data: {e}")
    except MalformedCoverageError as e:
        return _error_response(f"Malformed coverage data: {e}")
    except ValueError as e:
        return _error_response(str(e))

    # 2. Parse patches
    try:
        lines = _parse_changes(request.get("changes", []))
    except ValueError as e:
        return _error_response(str(e))

    repo_directory = request.get("repo_directory") or ""
    if not isinstance(repo_directory, str):
        return _error_response("repo_directory must be a string")

    # 3. Classify
    entries = find_untested_added_lines(lines, report, repo_directory=repo_directory)

    response: dict[str, Any] = {
        "exit_code": 2 if fail_on == "any" and entries else 0,
        "result": _build_result(lines, report, entries),
        "warnings": _warnings(entries),
    }

    if request.get("format") == "text":
        response["text"] = _format_text_output(entries)

    return response


def _load_coverage(
    coverage: Any,
    *,
    artifact_resolver: Optional[Callable[[str], bytes]] = None,
) -> dict[str, Any]:
    """
    Load coverage data from inline dict or artifact reference.

    Raises:
        ValueError: If coverage format is invalid.
        FileNotFoundError: If locator path doesn't exist.
        json.JSONDecodeError: If content is not valid JSON.
    """
    if not isinstance(coverage, dict):
        raise ValueError("coverage must be an object")

    if "artifact_id" not in coverage:
        return coverage

    if artifact_resolver is not None:
        raw = artifact_resolver(coverage["artifact_id"])
        return json.loads(raw.decode("utf-8"))

    locator = coverage.get("locator")
    if not locator:
        raise ValueError(
            "artifact reference requires either artifact_resolver or locator"
        )

    with open(locator, "r", encoding="utf-8") as f:
        return json.load(f)


def _parse_changes(changes: Any) -> list[FileLines]:
    if not isinstance(changes, list):
        raise ValueError("changes must be a list")

    lines = []
    for change in changes:
        if not isinstance(change, dict) or not change.get("path"):
            raise ValueError("each change needs a 'path'")
        if not isinstance(change["path"], str):
            raise ValueError("change 'path' must be a string")
        patch = change.get("patch")
        if patch is not None and not isinstance(patch, str):
            raise ValueError(f"patch for {change['path']} must be a string")
        numbers = parse_patch(patch)
        lines.append(FileLines(path=change["path"], added=numbers.added, removed=numbers.removed))
    return lines


def _build_result(
    lines: list[FileLines],
    report: CoverageReport,
    entries: list[GapReportEntry],
) -> dict[str, Any]:
    return {
        "files_analyzed": len(lines),
        "files_in_coverage": len(report.files),
        "files_with_gaps": len(entries),
        "total_untested_lines": sum(len(e.all_lines) for e in entries),
        "entries": [e.to_dict() for e in entries],
    }


def _warnings(entries: list[GapReportEntry]) -> list[str]:
    return sorted(format_gap_message(e) for e in entries if not e.has_tests)


def _format_text_output(entries: list[GapReportEntry]) -> str:
    """Format human-readable text output."""
    lines = []
    lines.append("=" * 60)
    lines.append("diff-covered")
    lines.append("=" * 60)

    if not entries:
        lines.append("All added lines are covered.")
        return "\n".join(lines)

    lines.append(format_summary(entries))
    for entry in entries:
        lines.append(f"  {format_gap_message(entry)}")

    return "\n".join(lines)


def _error_response(message: str) -> dict[str, Any]:
    """Build an error response."""
    return {
        "exit_code": 1,
        "result": {
            "files_analyzed": 0,
            "files_in_coverage": 0,
            "files_with_gaps": 0,
            "total_untested_lines": 0,
            "entries": [],
        },
        "warnings": [message],
    }
