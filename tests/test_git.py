"""Tests for diffcov.git collaborators."""

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from diffcov.errors import ConfigurationError, GitCommandError
from diffcov.git import (
    GitRunner,
    collect_file_lines,
    compile_patterns,
    filter_paths,
    load_event,
    resolve_base_ref,
)
from diffcov.patch import parse_patch

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeGitRunner(GitRunner):
    """GitRunner answering from canned output instead of a repository."""

    def __init__(self, outputs: dict[tuple[str, ...], str]):
        super().__init__(cwd=None)
        self.outputs = outputs
        self.calls: list[list[str]] = []

    def run(self, args: list[str]) -> str:
        self.calls.append(args)
        return self.outputs.get(tuple(args), "")


class TestCompilePatterns:
    """Tests for compile_patterns."""

    def test_default_include_matches_everything(self):
        patterns = compile_patterns("", '[""]', "include")
        assert len(patterns) == 1
        assert patterns[0].search("any/path.js")

    def test_default_ignore_is_empty(self):
        assert compile_patterns(None, "[]", "ignore") == []

    def test_custom_patterns(self):
        patterns = compile_patterns('["^src/", "\\\\.js$"]', "[]", "include")
        assert [p.pattern for p in patterns] == ["^src/", "\\.js$"]

    def test_invalid_json(self):
        with pytest.raises(ConfigurationError, match="Could not parse include"):
            compile_patterns("[not json", '[""]', "include")

    def test_not_an_array(self):
        with pytest.raises(ConfigurationError, match="to array"):
            compile_patterns('"^src/"', "[]", "ignore")

    def test_invalid_regex(self):
        with pytest.raises(ConfigurationError, match="regular expression"):
            compile_patterns('["("]', "[]", "ignore")


class TestFilterPaths:
    """Tests for filter_paths."""

    def test_include_and_ignore(self):
        include = compile_patterns('["^src/"]', "[]", "include")
        ignore = compile_patterns('["\\\\.test\\\\.js$"]', "[]", "ignore")
        paths = ["src/sum.js", "src/sum.test.js", "docs/readme.md", ""]

        assert filter_paths(paths, include, ignore) == ["src/sum.js"]

    def test_empty_paths_dropped(self):
        include = compile_patterns("", '[""]', "include")
        assert filter_paths(["a.js", "", "b.js", ""], include, []) == ["a.js", "b.js"]

    def test_no_include_keeps_nothing(self):
        assert filter_paths(["a.js"], [], []) == []


class TestResolveBaseRef:
    """Tests for base ref resolution from CI events."""

    def test_pull_request(self):
        payload = {"pull_request": {"base": {"sha": "abc123"}}, "before": "zzz"}
        assert resolve_base_ref("pull_request", payload) == "abc123"

    def test_push(self):
        assert resolve_base_ref("push", {"before": "def456"}) == "def456"

    def test_other_event(self):
        with pytest.raises(ConfigurationError, match='"push" or "pull_request"'):
            resolve_base_ref("schedule", {})

    def test_payload_without_base(self):
        with pytest.raises(ConfigurationError, match="has no base ref"):
            resolve_base_ref("pull_request", {"before": "x"})

    def test_load_event(self, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"before": "def456"}))
        assert load_event(str(event)) == {"before": "def456"}


class TestGitRunner:
    """Tests for GitRunner command execution."""

    def test_returns_stdout(self, monkeypatch):
        seen = {}

        def fake_run(command, **kwargs):
            seen["command"] = command
            seen["cwd"] = kwargs.get("cwd")
            return subprocess.CompletedProcess(command, 0, stdout="src/a.js\n", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)

        runner = GitRunner(cwd="/repo")
        assert runner.changed_paths("abc") == ["src/a.js", ""]
        assert seen["command"] == [
            "git", "diff", "--name-only", "--diff-filter=AM", "-w", "abc", "--",
        ]
        assert seen["cwd"] == "/repo"

    def test_file_diff_arguments(self, monkeypatch):
        seen = {}

        def fake_run(command, **kwargs):
            seen["command"] = command
            return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)

        GitRunner().file_diff("abc", "src/a.js")
        assert seen["command"] == [
            "git", "diff", "-U0", "--minimal", "--diff-filter=AM",
            "--inter-hunk-context=0", "-w", "abc", "--", "src/a.js",
        ]

    def test_non_zero_exit_raises(self, monkeypatch):
        def fake_run(command, **kwargs):
            return subprocess.CompletedProcess(command, 128, stdout="", stderr="fatal: bad revision 'nope'\n")

        monkeypatch.setattr(subprocess, "run", fake_run)

        with pytest.raises(GitCommandError, match="bad revision") as excinfo:
            GitRunner().fetch("nope")
        assert excinfo.value.returncode == 128
        assert excinfo.value.command == ["git", "fetch", "origin", "nope"]

    def test_missing_git_executable(self, monkeypatch):
        def fake_run(command, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(subprocess, "run", fake_run)

        with pytest.raises(GitCommandError, match="git executable not found"):
            GitRunner().changed_paths("abc")

    def test_decodes_output_leniently(self, monkeypatch):
        seen = {}

        def fake_run(command, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)

        GitRunner().file_diff("abc", "src/a.js")
        assert seen["encoding"] == "utf-8"
        assert seen["errors"] == "replace"

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_non_utf8_diff_from_real_repository(self, tmp_path):
        def git(*args):
            subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

        git("init", "-q")
        git("config", "user.email", "dev@example.com")
        git("config", "user.name", "dev")
        (tmp_path / "a.js").write_bytes(b"x\n")
        git("add", "a.js")
        git("commit", "-q", "-m", "init")
        (tmp_path / "a.js").write_bytes(b"x\ncaf\xe9\n")

        patch = GitRunner(cwd=str(tmp_path)).file_diff("HEAD", "a.js")

        assert "\ufffd" in patch
        assert parse_patch(patch).added == [2]


class TestCollectFileLines:
    """Tests for collect_file_lines."""

    def test_diffs_each_included_path(self):
        base = "abc"
        runner = FakeGitRunner({
            ("diff", "--name-only", "--diff-filter=AM", "-w", base, "--"):
                "src/sum.js\nREADME.md\nsrc/new.js\n",
            ("diff", "-U0", "--minimal", "--diff-filter=AM", "--inter-hunk-context=0",
             "-w", base, "--", "src/sum.js"):
                (FIXTURES_DIR / "sum.patch").read_text(),
            ("diff", "-U0", "--minimal", "--diff-filter=AM", "--inter-hunk-context=0",
             "-w", base, "--", "src/new.js"):
                "@@ -0,0 +1,3 @@\n+a\n+b\n+c\n",
        })
        include = compile_patterns('["^src/"]', "[]", "include")

        lines = collect_file_lines(runner, base, include, [])

        assert [f.path for f in lines] == ["src/sum.js", "src/new.js"]
        assert lines[0].added == [6, 7, 8, 13]
        assert lines[1].added == [1, 2, 3]
        assert lines[1].removed == []
        assert len(runner.calls) == 3

    def test_no_changes(self):
        runner = FakeGitRunner({})
        assert collect_file_lines(runner, "abc", compile_patterns("", '[""]', "include"), []) == []
