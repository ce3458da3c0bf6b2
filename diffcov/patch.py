"""
Patch Parser - Turns a unified diff into added/removed line numbers.

Only chunk headers are consulted. The diff is expected to come from
``git diff -U0``, so every header already declares exactly which lines
changed and the ``+``/``-`` content lines never need to be read.

Example:
    >>> parse_patch("@@ -27,7 +198,6 @@")
    LineNumbers(added=[198, 199, 200, 201, 202, 203], removed=[27, 28, 29, 30, 31, 32, 33])
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

# Matches "@@ -27,7 +198,6 @@ ..." capturing 27, 7, 198 and 6, and
# "@@ -27 +198,0 @@ ..." capturing 27, None, 198 and 0.
CHUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass(frozen=True)
class ChunkHeader:
    """The numbers declared by one ``@@ -a,b +c,d @@`` line."""

    removed_start: int
    removed_count: int
    added_start: int
    added_count: int

    def removed_lines(self) -> list[int]:
        return list(range(self.removed_start, self.removed_start + self.removed_count))

    def added_lines(self) -> list[int]:
        return list(range(self.added_start, self.added_start + self.added_count))


@dataclass
class LineNumbers:
    """Line numbers touched by one file's patch, in emission order."""

    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)


def _count(raw: Optional[str]) -> int:
    # An omitted count means a single-line change, not an empty one.
    return int(raw) if raw is not None else 1


def parse_chunk_header(line: str) -> Optional[ChunkHeader]:
    """
    Parse a single chunk header line.

    Returns:
        The header's numbers, or None if the line is not a chunk header.
    """
    match = CHUNK_HEADER_RE.match(line)
    if not match:
        return None

    rem_start, rem_count, add_start, add_count = match.groups()
    return ChunkHeader(
        removed_start=int(rem_start),
        removed_count=_count(rem_count),
        added_start=int(add_start),
        added_count=_count(add_count),
    )


def parse_patch(patch_text: Optional[str]) -> LineNumbers:
    """
    Get the removed and added line numbers of a single-file patch.

    Args:
        patch_text: Raw ``git diff`` output for one file. Empty or None
            means the file has no changes.

    Returns:
        LineNumbers with ``added`` and ``removed`` in chunk order
    """
    result = LineNumbers()
    if not patch_text:
        return result

    for line in patch_text.split("\n"):
        header = parse_chunk_header(line)
        if header is None:
            continue

        logger.debug(f"parse_patch: header={header}")
        result.removed.extend(header.removed_lines())
        result.added.extend(header.added_lines())

    return result
