"""
Diff-Covered CLI

Fails when a change adds lines that no test executes.

Usage:
    diff-covered coverage/coverage-final.json --base origin/main
    diff-covered coverage/coverage-final.json --diff sum.patch --path src/sum.js
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def _resolve_base(args) -> str:
    if args.base:
        return args.base

    event_name = os.environ.get("GITHUB_EVENT_NAME", "")
    event_path = os.environ.get("GITHUB_EVENT_PATH", "")
    if not event_path:
        from diffcov.errors import ConfigurationError
        raise ConfigurationError("--base is required outside of a CI event")

    from diffcov.git import load_event, resolve_base_ref
    return resolve_base_ref(event_name, load_event(event_path))


def _collect_lines(args, repo_directory: str):
    from diffcov.gaps import FileLines
    from diffcov.git import GitRunner, collect_file_lines, compile_patterns
    from diffcov.patch import parse_patch

    if args.diff:
        numbers = parse_patch(Path(args.diff).read_text(encoding="utf-8", errors="replace"))
        return [FileLines(path=args.path, added=numbers.added, removed=numbers.removed)]

    include = compile_patterns(args.include, '[""]', "include")
    ignore = compile_patterns(args.ignore, "[]", "ignore")
    base = _resolve_base(args)
    logger.debug(f"base={base}")

    runner = GitRunner(cwd=repo_directory)
    if not args.no_fetch:
        runner.fetch(base)
    return collect_file_lines(runner, base, include, ignore)


def cmd_check(args):
    """Report added lines that lack test coverage."""
    from diffcov.coverage import CoverageParser
    from diffcov.errors import DiffCoveredError
    from diffcov.gaps import (
        find_untested_added_lines,
        format_gap_message,
        format_summary,
        print_gap_report,
    )

    coverage_path = Path(args.coverage_json)
    if not coverage_path.exists():
        logger.error(f"Coverage file not found: {coverage_path}")
        print("\nGenerate it with: jest --coverage --coverageReporters=json")
        return 1

    repo_directory = args.repo_directory or str(Path.cwd())

    try:
        report = CoverageParser().parse(str(coverage_path))
        lines = _collect_lines(args, repo_directory)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse coverage file: {e}")
        return 1
    except (DiffCoveredError, OSError) as e:
        logger.error(str(e))
        return 1

    entries = find_untested_added_lines(lines, report, repo_directory=repo_directory)

    if args.format == "json":
        print(json.dumps([e.to_dict() for e in entries], indent=2))
    elif args.format == "github":
        if entries:
            print(f"::error::{format_summary(entries)}")
        for entry in entries:
            print(f"::error file={entry.path}::{format_gap_message(entry)}")
    else:
        print(f"\n{'='*60}")
        print("Diff-Covered - Untested Change Finder")
        print(f"{'='*60}")
        print(f"Files changed: {len(lines)}")
        print(f"Lines added: {sum(len(f.added) for f in lines)}")
        print_gap_report(entries)

    return 1 if entries else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diff-covered",
        description="Find added lines that no test covers",
    )
    parser.add_argument("coverage_json", help="Path to coverage-final.json (Istanbul JSON reporter)")
    parser.add_argument("--base", help="Git ref to diff against (default: from the CI event)")
    parser.add_argument("--diff", help="Use a pre-computed patch file instead of running git")
    parser.add_argument("--path", help="Repo-relative path the --diff patch belongs to")
    parser.add_argument("--include", help='JSON array of path regexes to check (default: [""])')
    parser.add_argument("--ignore", help="JSON array of path regexes to skip (default: [])")
    parser.add_argument("--repo-directory", help="Directory coverage paths are rooted at (default: cwd)")
    parser.add_argument("--no-fetch", action="store_true", help="Don't fetch the base ref first")
    parser.add_argument("--format", choices=["text", "json", "github"], default="text")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every pipeline step")
    parser.set_defaults(func=cmd_check)
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.diff and not args.path:
        parser.error("--diff requires --path")

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
