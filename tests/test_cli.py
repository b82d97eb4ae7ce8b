"""Tests for the CLI commands."""

import importlib
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import commit_all, write
from difflint.cli import app
from difflint.git.adapter import OperationCancelled

runner = CliRunner()


@pytest.fixture
def edited_repo(feature_repo: Path, monkeypatch) -> Path:
    """Feature branch with line 3 of a.txt changed; cwd is the repo."""
    write(feature_repo, "a.txt", ["one", "two", "THREE", "four", "five"])
    commit_all(feature_repo, "edit a.txt")
    monkeypatch.chdir(feature_repo)
    for name in ("DIFFLINT_PLATFORM", "DIFFLINT_FORMAT", "DIFFLINT_FAIL_ON", "DIFFLINT_BASE_BRANCH",
                 "DIFFLINT_GITHUB_TOKEN", "GITHUB_AUTH_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    return feature_repo


def _problems(repo: Path, line: int, severity: str = "bug") -> Path:
    path = repo / "problems.yaml"
    path.write_text(
        f"- path: a.txt\n"
        f"  reporter: example/check\n"
        f"  text: something is off\n"
        f"  severity: {severity}\n"
        f"  line: {line}\n"
    )
    return path


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "difflint" in result.output


class TestInit:
    def test_creates_config(self, tmp_git_repo: Path, monkeypatch):
        monkeypatch.chdir(tmp_git_repo)
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert (tmp_git_repo / ".difflint.toml").exists()

    def test_refuses_overwrite(self, tmp_git_repo: Path, monkeypatch):
        monkeypatch.chdir(tmp_git_repo)
        (tmp_git_repo / ".difflint.toml").write_text("existing")
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 1


class TestChanges:
    def test_json(self, edited_repo: Path):
        result = runner.invoke(app, ["changes", "--format", "json"])
        assert result.exit_code == 0
        [record] = json.loads(result.stdout)
        assert record["after"]["name"] == "a.txt"
        assert record["status"] == "M"
        assert record["modified_lines"] == [3]

    def test_entries_json(self, edited_repo: Path):
        result = runner.invoke(app, ["changes", "--format", "json", "--entries"])
        assert result.exit_code == 0
        [entry] = json.loads(result.stdout)
        assert entry == {"name": "a.txt", "path": "a.txt", "type": "file", "modified_lines": [3]}

    def test_terminal(self, edited_repo: Path):
        result = runner.invoke(app, ["changes"])
        assert result.exit_code == 0

    def test_unknown_base(self, edited_repo: Path):
        result = runner.invoke(app, ["changes", "--base", "no-such-branch"])
        assert result.exit_code == 2

    def test_invalid_format(self, edited_repo: Path):
        result = runner.invoke(app, ["changes", "--format", "xml"])
        assert result.exit_code == 2

    def test_max_commits_exceeded(self, edited_repo: Path, monkeypatch):
        monkeypatch.setenv("DIFFLINT_MAX_COMMITS", "1")
        write(edited_repo, "b.txt", ["b"])
        commit_all(edited_repo, "second")
        result = runner.invoke(app, ["changes"])
        assert result.exit_code == 2


class TestBlame:
    def test_json(self, edited_repo: Path):
        result = runner.invoke(app, ["blame", "a.txt", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["path"] == "a.txt"
        assert [ln["line"] for ln in data["lines"]] == [1, 2, 3, 4, 5]

    def test_missing_file(self, edited_repo: Path):
        result = runner.invoke(app, ["blame", "nope.txt", "--commit", "HEAD"])
        assert result.exit_code == 2


class TestReport:
    def test_blocking_problem_on_modified_line(self, edited_repo: Path):
        problems = _problems(edited_repo, 3, "bug")
        result = runner.invoke(app, ["report", str(problems), "--dry-run", "--format", "json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["blocked"] is True
        [comment] = data["comments"]
        assert comment["path"] == "a.txt"
        assert comment["line"] == 3
        assert "something is off" in comment["text"]

    def test_below_threshold(self, edited_repo: Path):
        problems = _problems(edited_repo, 3, "warning")
        result = runner.invoke(app, ["report", str(problems), "--dry-run"])
        assert result.exit_code == 0

    def test_fail_on_override(self, edited_repo: Path):
        problems = _problems(edited_repo, 3, "warning")
        result = runner.invoke(app, ["report", str(problems), "--dry-run", "--fail-on", "warning"])
        assert result.exit_code == 1

    def test_unmodified_line_not_reported(self, edited_repo: Path):
        problems = _problems(edited_repo, 1, "fatal")
        result = runner.invoke(app, ["report", str(problems), "--dry-run", "--format", "json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["comments"] == []

    def test_skip_ci(self, edited_repo: Path):
        write(edited_repo, "a.txt", ["x"])
        commit_all(edited_repo, "wip [skip ci]")
        problems = _problems(edited_repo, 1, "fatal")
        result = runner.invoke(app, ["report", str(problems), "--dry-run"])
        assert result.exit_code == 0

    def test_missing_problems_file(self, edited_repo: Path):
        result = runner.invoke(app, ["report", "nope.yaml", "--dry-run"])
        assert result.exit_code == 2

    def test_invalid_platform(self, edited_repo: Path):
        problems = _problems(edited_repo, 3)
        result = runner.invoke(app, ["report", str(problems), "--platform", "svn"])
        assert result.exit_code == 2

    def test_invalid_fail_on(self, edited_repo: Path):
        problems = _problems(edited_repo, 3)
        result = runner.invoke(app, ["report", str(problems), "--dry-run", "--fail-on", "critical"])
        assert result.exit_code == 2

    def test_platform_without_token(self, edited_repo: Path):
        (edited_repo / ".difflint.toml").write_text('[github]\nowner = "acme"\nrepo = "rules"\npr = 1\n')
        problems = _problems(edited_repo, 3)
        result = runner.invoke(app, ["report", str(problems), "--platform", "github"])
        assert result.exit_code == 2

    def test_git_failure_while_checking_skip_markers(self, edited_repo: Path, monkeypatch):
        def cancelled(git_runner, records):
            raise OperationCancelled("cancelled before git log")

        monkeypatch.setattr(importlib.import_module("difflint.git.changes"), "should_skip", cancelled)
        problems = _problems(edited_repo, 3)
        result = runner.invoke(app, ["report", str(problems), "--dry-run"])
        assert result.exit_code == 2


class TestConfigErrors:
    def test_invalid_exclude_regex(self, edited_repo: Path):
        (edited_repo / ".difflint.toml").write_text('[git]\nexclude = ["*.txt"]\n')
        result = runner.invoke(app, ["changes"])
        assert result.exit_code == 2
