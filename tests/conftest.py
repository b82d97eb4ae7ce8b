"""Shared test fixtures — temp git repos, sample diffs, fake commenters."""

from __future__ import annotations

import json
import subprocess
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from difflint.comments.models import ExistingComment, PendingComment, RunSummary
from difflint.comments.reconciler import BaseCommenter, CommentError
from difflint.git.models import Path as GitPath
from difflint.git.models import PathType
from difflint.problems.models import Anchor, LineRange, Problem, Report, Severity


# ── git helpers ───────────────────────────────────────────────────────────────


def git(repo: Path, *args: str) -> str:
    out = subprocess.run(["git", *args], cwd=repo, capture_output=True, check=True, text=True)
    return out.stdout


def commit_all(repo: Path, message: str) -> str:
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD").strip()


def write(repo: Path, name: str, lines: List[str]) -> None:
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{line}\n" for line in lines))


FIVE_LINES = ["one", "two", "three", "four", "five"]


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with one commit on ``main``."""
    subprocess.run(["git", "init", "-q", str(tmp_path)], capture_output=True, check=True)
    git(tmp_path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(tmp_path, "config", "user.email", "test@test.com")
    git(tmp_path, "config", "user.name", "Test")
    git(tmp_path, "config", "commit.gpgsign", "false")
    write(tmp_path, "README.md", ["# Test"])
    commit_all(tmp_path, "init")
    return tmp_path


@pytest.fixture
def feature_repo(tmp_git_repo: Path) -> Path:
    """``main`` holds a.txt (five lines); HEAD is a fresh ``feature`` branch."""
    write(tmp_git_repo, "a.txt", FIVE_LINES)
    commit_all(tmp_git_repo, "add a.txt")
    git(tmp_git_repo, "checkout", "-q", "-b", "feature")
    return tmp_git_repo


class FakeRunner:
    """GitRunner double answering from canned outputs keyed by argument tuple prefix."""

    def __init__(self, responses: Dict[tuple, bytes]) -> None:
        self.responses = responses
        self.calls: List[tuple] = []

    def __call__(self, *args: str) -> bytes:
        from difflint.git.adapter import GitError

        self.calls.append(args)
        for key, value in self.responses.items():
            if args[: len(key)] == key:
                return value
        raise GitError(f"unexpected git call: {args}")


# ── problems / reports ────────────────────────────────────────────────────────


def make_report(
    path: str = "x.yaml",
    first: int = 10,
    last: Optional[int] = None,
    text: str = "T",
    details: str = "",
    severity: Severity = Severity.BUG,
    reporter: str = "promql/syntax",
    anchor: Anchor = Anchor.AFTER,
    modified: Optional[List[int]] = None,
    symlink_target: str = "",
) -> Report:
    return Report(
        path=GitPath(name=path, type=PathType.FILE, symlink_target=symlink_target),
        problem=Problem(
            severity=severity,
            reporter=reporter,
            text=text,
            details=details,
            lines=LineRange(first, last if last is not None else first),
            anchor=anchor,
        ),
        modified_lines=modified if modified is not None else list(range(first, (last or first) + 1)),
    )


# ── commenter double ──────────────────────────────────────────────────────────


class FakeCommenter(BaseCommenter):
    """In-memory commenter that records every platform call."""

    supports_severity = True

    def __init__(self, existing: Optional[List[ExistingComment]] = None, max_comments: int = 0) -> None:
        super().__init__(max_comments=max_comments)
        self.existing: List[ExistingComment] = list(existing or [])
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self.general: List[str] = []
        self.summaries: List[RunSummary] = []

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise self.fail_on[op]

    def destinations(self) -> List[Any]:
        return ["dst"]

    def list(self, dst: Any) -> List[ExistingComment]:
        self._maybe_fail("list")
        return list(self.existing)

    def create(self, dst: Any, comment: PendingComment) -> None:
        self._maybe_fail("create")
        self.calls.append(("create", comment.path, comment.line))
        self.existing.append(
            ExistingComment(path=comment.path, line=comment.line, text=comment.text, side=self.side_for(dst, comment))
        )

    def delete(self, dst: Any, comment: ExistingComment) -> None:
        self._maybe_fail("delete")
        self.calls.append(("delete", comment.path, comment.line))
        self.existing = [c for c in self.existing if c is not comment]

    def resolve_thread(self, dst: Any, comment: ExistingComment) -> None:
        self._maybe_fail("resolve")
        self.calls.append(("resolve", comment.path, comment.line))

    def reopen_thread(self, dst: Any, comment: ExistingComment) -> None:
        self.calls.append(("reopen", comment.path, comment.line))

    def update_severity(self, dst: Any, comment: ExistingComment, severity: Severity) -> None:
        self._maybe_fail("update_severity")
        self.calls.append(("update_severity", comment.path, comment.line, severity))

    def can_create(self, count: int) -> bool:
        self._maybe_fail("can_create")
        return super().can_create(count)

    def general_comment(self, dst: Any, text: str) -> None:
        self._maybe_fail("general")
        self.calls.append(("general",))
        self.general.append(text)

    def summary(self, dst: Any, summary: RunSummary) -> None:
        self._maybe_fail("summary")
        self.calls.append(("summary",))
        self.summaries.append(summary)


@pytest.fixture
def fake_commenter() -> FakeCommenter:
    return FakeCommenter()


@pytest.fixture
def comment_error() -> CommentError:
    return CommentError("boom")


# ── HTTP doubles ──────────────────────────────────────────────────────────────


def make_response(
    payload: Any = None,
    status: int = 200,
    headers: Optional[Dict[str, str]] = None,
    text: Optional[str] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    if text is not None:
        response._content = text.encode()
    elif payload is not None:
        response._content = json.dumps(payload).encode()
    else:
        response._content = b""
    response.headers.update(headers or {})
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Stands in for requests.Session; routes (method, url suffix) to responses."""

    def __init__(self, routes: Optional[Dict[tuple, Any]] = None) -> None:
        self.routes = routes or {}
        self.headers: Dict[str, str] = {}
        self.requests: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, params=None, json=None, headers=None, timeout=None):
        self.requests.append(
            {"method": method, "url": url, "params": params, "json": json, "timeout": timeout}
        )
        for (m, suffix), value in self.routes.items():
            if m == method and url.endswith(suffix):
                if isinstance(value, Exception):
                    raise value
                if callable(value):
                    return value(params)
                if isinstance(value, requests.Response):
                    return value
                return make_response(value)
        return make_response({"message": "not found"}, status=404)

    def calls(self, method: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == method]


# ── sample diffs ──────────────────────────────────────────────────────────────


@pytest.fixture
def sample_diff_full() -> str:
    """A full single-file unified diff with git headers."""
    return textwrap.dedent("""\
        diff --git a/rules.yaml b/rules.yaml
        index 1234567..abcdef0 100644
        --- a/rules.yaml
        +++ b/rules.yaml
        @@ -3,4 +3,5 @@ groups:
         - record: foo
           expr: sum(up)
        -- record: bar
        +- record: baz
        +  expr: sum(down)
           labels: {}
        @@ -20,3 +21,3 @@
         - alert: Down
        --- old comment
        +-- new comment
           for: 5m
    """)


@pytest.fixture
def sample_diff_stripped(sample_diff_full: str) -> str:
    """The same diff with its file headers removed, as GitLab returns it."""
    return "".join(sample_diff_full.splitlines(keepends=True)[4:])
