"""
Coverage Index - Typed view of an Istanbul ``coverage-final.json`` report.

The report is keyed by absolute file path. Each file carries three pairs
of tables: ``statementMap``/``s``, ``fnMap``/``f`` and ``branchMap``/``b``.
They are checked and converted into records here, so that the classifier
never has to walk raw dictionaries.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .errors import MalformedCoverageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineSpan:
    """Inclusive, 1-based line range."""

    start: int
    end: int


@dataclass(frozen=True)
class StatementCoverage:
    id: str
    span: LineSpan
    count: int


@dataclass(frozen=True)
class FunctionCoverage:
    id: str
    name: str
    span: LineSpan
    count: int


@dataclass(frozen=True)
class BranchCoverage:
    """A branch group. ``counts[0]`` is the if arm, ``counts[1]`` the else arm."""

    id: str
    span: LineSpan
    counts: tuple[int, ...]
    type: str = ""

    @property
    def if_count(self) -> Optional[int]:
        return self.counts[0] if self.counts else None

    @property
    def else_count(self) -> Optional[int]:
        # Single-location branches (e.g. default values) have no else arm
        return self.counts[1] if len(self.counts) > 1 else None


@dataclass
class FileCoverage:
    """Coverage record for a single instrumented file."""

    path: str
    statements: list[StatementCoverage] = field(default_factory=list)
    functions: list[FunctionCoverage] = field(default_factory=list)
    branches: list[BranchCoverage] = field(default_factory=list)


@dataclass
class CoverageReport:
    """Parsed Istanbul report, keyed by absolute path."""

    files: dict[str, FileCoverage] = field(default_factory=dict)

    def lookup(self, absolute_path: str) -> Optional[FileCoverage]:
        """Exact key lookup. None means the file was never instrumented."""
        return self.files.get(absolute_path)


def lookup(report: CoverageReport, absolute_path: str) -> Optional[FileCoverage]:
    return report.lookup(absolute_path)


class CoverageParser:
    """Parse Istanbul JSON coverage output (as written by Jest, nyc, c8)."""

    def parse(self, json_path: str) -> CoverageReport:
        """
        Parse a coverage-final.json file.

        Args:
            json_path: Path to coverage-final.json

        Returns:
            CoverageReport with one record per instrumented file

        Raises:
            FileNotFoundError: If json_path doesn't exist
            json.JSONDecodeError: If file is not valid JSON
            MalformedCoverageError: If the JSON is not an Istanbul report
        """
        with open(json_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return self.parse_data(data)

    def parse_data(self, data: Any) -> CoverageReport:
        """Build a report from an already-parsed JSON document."""
        if not isinstance(data, Mapping):
            raise MalformedCoverageError("coverage report must be a JSON object")

        files = {}
        for file_path, file_data in data.items():
            files[file_path] = self._parse_file(file_path, file_data)

        logger.debug(f"CoverageParser: parsed {len(files)} files")
        return CoverageReport(files=files)

    def _parse_file(self, file_path: str, file_data: Any) -> FileCoverage:
        if not isinstance(file_data, Mapping):
            raise MalformedCoverageError(f"{file_path}: file coverage must be an object")

        statement_map = self._table(file_path, file_data, "statementMap")
        fn_map = self._table(file_path, file_data, "fnMap")
        branch_map = self._table(file_path, file_data, "branchMap")

        statements = []
        for key, count in self._table(file_path, file_data, "s").items():
            location = self._entry(file_path, "statementMap", statement_map, key)
            statements.append(StatementCoverage(
                id=key,
                span=self._span(file_path, f"statementMap[{key}]", location),
                count=self._count(file_path, f"s[{key}]", count),
            ))

        functions = []
        for key, count in self._table(file_path, file_data, "f").items():
            entry = self._entry(file_path, "fnMap", fn_map, key)
            functions.append(FunctionCoverage(
                id=key,
                name=str(entry.get("name", "")),
                span=self._span(file_path, f"fnMap[{key}].loc", entry.get("loc")),
                count=self._count(file_path, f"f[{key}]", count),
            ))

        branches = []
        for key, counts in self._table(file_path, file_data, "b").items():
            entry = self._entry(file_path, "branchMap", branch_map, key)
            if not isinstance(counts, list):
                raise MalformedCoverageError(f"{file_path}: b[{key}] must be a list of counts")
            branches.append(BranchCoverage(
                id=key,
                span=self._span(file_path, f"branchMap[{key}].loc", entry.get("loc")),
                counts=tuple(
                    self._count(file_path, f"b[{key}][{i}]", c) for i, c in enumerate(counts)
                ),
                type=str(entry.get("type", "")),
            ))

        return FileCoverage(
            path=file_path,
            statements=statements,
            functions=functions,
            branches=branches,
        )

    def _table(self, file_path: str, file_data: Mapping, name: str) -> Mapping:
        table = file_data.get(name, {})
        if not isinstance(table, Mapping):
            raise MalformedCoverageError(f"{file_path}: {name} must be an object")
        return table

    def _entry(self, file_path: str, table: str, mapping: Mapping, key: str) -> Mapping:
        entry = mapping.get(key)
        if not isinstance(entry, Mapping):
            raise MalformedCoverageError(f"{file_path}: {table} has no entry for key {key!r}")
        return entry

    def _span(self, file_path: str, where: str, location: Any) -> LineSpan:
        try:
            return LineSpan(
                start=int(location["start"]["line"]),
                end=int(location["end"]["line"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedCoverageError(f"{file_path}: {where} has no start/end line") from e

    def _count(self, file_path: str, where: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedCoverageError(f"{file_path}: {where} must be an integer count")
        return value
