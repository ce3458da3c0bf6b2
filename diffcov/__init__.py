"""
Diff-Covered Engine

Tells you which lines of a change no test executes.

Core components:
- parse_patch: Reads chunk headers of a ``git diff -U0`` patch
- CoverageParser: Reads Istanbul coverage-final.json output
- classify: Maps added lines onto untested statements, functions and branches

Usage:
    from diffcov import CoverageParser, FileLines, find_untested_added_lines, parse_patch

    numbers = parse_patch(patch_text)
    report = CoverageParser().parse("coverage/coverage-final.json")
    entries = find_untested_added_lines(
        [FileLines("src/sum.js", numbers.added, numbers.removed)],
        report,
        repo_directory="/home/runner/work/app",
    )
"""

from .coverage import (
    BranchCoverage,
    CoverageParser,
    CoverageReport,
    FileCoverage,
    FunctionCoverage,
    LineSpan,
    StatementCoverage,
    lookup,
)
from .errors import (
    ConfigurationError,
    DiffCoveredError,
    GitCommandError,
    MalformedCoverageError,
)
from .gaps import (
    FileLines,
    GapReportEntry,
    classify,
    find_untested_added_lines,
    format_gap_message,
    format_summary,
    print_gap_report,
)
from .patch import ChunkHeader, LineNumbers, parse_chunk_header, parse_patch

__all__ = [
    # Main entry points
    "parse_patch",
    "classify",
    "find_untested_added_lines",
    "print_gap_report",
    "format_gap_message",
    "format_summary",
    "lookup",
    # Data structures
    "BranchCoverage",
    "ChunkHeader",
    "CoverageParser",
    "CoverageReport",
    "FileCoverage",
    "FileLines",
    "FunctionCoverage",
    "GapReportEntry",
    "LineNumbers",
    "LineSpan",
    "StatementCoverage",
    "parse_chunk_header",
    # Errors
    "ConfigurationError",
    "DiffCoveredError",
    "GitCommandError",
    "MalformedCoverageError",
]
