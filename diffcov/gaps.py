"""
Gap Classifier - Finds added lines that no test executes.

Each added line is checked against the zero-count entries of a file's
coverage record. A line inside an unexecuted statement, an uncalled
function, or an untaken branch arm is a gap. Lines are reported per
category and once more, sorted and deduplicated, in ``all_lines``.

Usage:
    from diffcov.gaps import classify

    entry = classify("src/sum.js", [10, 11], report.lookup("/repo/src/sum.js"))
    if entry:
        print(format_gap_message(entry))
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .coverage import CoverageReport, FileCoverage, LineSpan

logger = logging.getLogger(__name__)


@dataclass
class FileLines:
    """Changed line numbers of one file, by repo-relative path."""

    path: str
    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)


@dataclass
class GapReportEntry:
    """Untested added lines of one file."""

    path: str
    has_tests: bool = True
    all_lines: list[int] = field(default_factory=list)
    statements: list[int] = field(default_factory=list)
    functions: list[int] = field(default_factory=list)
    ifs: list[int] = field(default_factory=list)
    elses: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "hasTests": self.has_tests,
            "all": self.all_lines,
            "statements": self.statements,
            "functions": self.functions,
            "ifs": self.ifs,
            "elses": self.elses,
        }


def integers_in_range_in_set(start: int, end: int, values: set[int]) -> list[int]:
    """
    Return the integers of ``[start, end]`` that are in ``values``.

    Example:
        >>> integers_in_range_in_set(2, 4, {1, 2, 3, 4, 5})
        [2, 3, 4]
    """
    return [i for i in range(start, end + 1) if i in values]


def _lines_in(span: LineSpan, added: set[int]) -> list[int]:
    return integers_in_range_in_set(span.start, span.end, added)


def untested_statements(record: FileCoverage, added: set[int]) -> list[int]:
    lines: list[int] = []
    for statement in record.statements:
        if statement.count == 0:
            lines.extend(_lines_in(statement.span, added))
    return lines


def untested_functions(record: FileCoverage, added: set[int]) -> list[int]:
    lines: list[int] = []
    for function in record.functions:
        if function.count == 0:
            lines.extend(_lines_in(function.span, added))
    return lines


def untested_branches(record: FileCoverage, added: set[int]) -> tuple[list[int], list[int]]:
    """
    Return the added lines of branches whose if arm, else arm, or both
    were never taken.

    Both arms are checked independently, so a line of a branch with
    neither arm taken lands in both lists.
    """
    ifs: list[int] = []
    elses: list[int] = []
    for branch in record.branches:
        if_missing = branch.if_count == 0
        else_missing = branch.else_count == 0
        if not (if_missing or else_missing):
            continue

        for line in _lines_in(branch.span, added):
            if if_missing:
                ifs.append(line)
            if else_missing:
                elses.append(line)
    return ifs, elses


def classify(
    path: str,
    added_lines: Iterable[int],
    record: Optional[FileCoverage],
) -> Optional[GapReportEntry]:
    """
    Classify the added lines of one file against its coverage record.

    Args:
        path: Path reported back in the entry
        added_lines: Added (or modified) line numbers
        record: The file's coverage record, or None if it has none

    Returns:
        A GapReportEntry, or None when every added line is covered. A file
        without a record always gets an entry with ``has_tests=False``.
    """
    if record is None:
        return GapReportEntry(path=path, has_tests=False)

    added = set(added_lines)
    statements = untested_statements(record, added)
    functions = untested_functions(record, added)
    ifs, elses = untested_branches(record, added)

    all_lines = sorted(set(statements) | set(functions) | set(ifs) | set(elses))
    if not all_lines:
        return None

    return GapReportEntry(
        path=path,
        has_tests=True,
        all_lines=all_lines,
        statements=statements,
        functions=functions,
        ifs=ifs,
        elses=elses,
    )


def find_untested_added_lines(
    lines: Iterable[FileLines],
    report: CoverageReport,
    repo_directory: str = "",
) -> list[GapReportEntry]:
    """
    Main entry point: Find the untested added lines of every changed file.

    Coverage reports are keyed by absolute path, so each repo-relative path
    is joined to ``repo_directory`` before the lookup. The join does not
    collapse ``..`` segments, so ``repo_directory`` should already be normalized.

    Args:
        lines: Changed lines per file
        report: Parsed coverage-final.json
        repo_directory: Directory the coverage paths are rooted at

    Returns:
        One entry per file with at least one gap, in input order
    """
    logger.debug(f"find_untested_added_lines: repo_directory={repo_directory!r}")

    entries = []
    for file_lines in lines:
        full_path = str(Path(repo_directory) / file_lines.path)
        record = report.lookup(full_path)
        if record is None:
            logger.debug(f"find_untested_added_lines: no coverage for {full_path}")

        entry = classify(file_lines.path, file_lines.added, record)
        if entry is not None:
            entries.append(entry)

    return entries


def format_gap_message(entry: GapReportEntry) -> str:
    """One-line annotation for a report entry."""
    if not entry.has_tests:
        return f"Coverage: {entry.path} is not being tested"
    return f"Coverage: {entry.path} is missing tests for lines {json.dumps(entry.all_lines, separators=(',', ':'))}"


def format_summary(entries: list[GapReportEntry]) -> str:
    return f"Missing tests for {len(entries)} files."


def print_gap_report(entries: list[GapReportEntry]) -> None:
    """Pretty-print a gap report to console."""
    if not entries:
        print("No untested added lines - great job!")
        return

    print(f"\n{'='*70}")
    print(f"UNTESTED CHANGES: {format_summary(entries)}")
    print(f"{'='*70}\n")

    for i, entry in enumerate(entries, 1):
        print(f"{i}. {format_gap_message(entry)}")
        if not entry.has_tests:
            continue

        categories = [
            ("statements", entry.statements),
            ("functions", entry.functions),
            ("if branches", entry.ifs),
            ("else branches", entry.elses),
        ]
        for label, category_lines in categories:
            if category_lines:
                print(f"   {label}: {', '.join(str(n) for n in sorted(set(category_lines)))}")
    print()
