"""Bitbucket Server pull request binding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from difflint.comments.models import ExistingComment, PendingComment, RunSummary
from difflint.comments.reconciler import BaseCommenter
from difflint.diff.positions import DiffCorrespondence, correspondence_for, from_segments
from difflint.platforms.http import ApiClient
from difflint.problems.models import Anchor, Severity

logger = logging.getLogger(__name__)

REPORT_KEY = "difflint"


@dataclass
class BitbucketPR:
    id: int
    src_branch: str
    src_head: str
    dst_branch: str
    dst_head: str
    modified_lines: Dict[str, List[int]] = field(default_factory=dict)
    lines: Dict[str, DiffCorrespondence] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"PR #{self.id}"


@dataclass(frozen=True)
class CommentAnchor:
    path: str
    line: int
    line_type: str
    file_type: str
    diff_type: str = "EFFECTIVE"

    @property
    def side(self) -> str:
        return "new" if self.file_type == "TO" else "old"

    def to_json(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "line": self.line,
            "lineType": self.line_type,
            "fileType": self.file_type,
            "diffType": self.diff_type,
        }


def anchor_for(comment: PendingComment, pr: BitbucketPR) -> CommentAnchor:
    """Work out where a pending comment goes in the PR's effective diff."""
    if comment.anchor == Anchor.BEFORE:
        return CommentAnchor(comment.path, comment.line, "REMOVED", "FROM")
    if comment.line in pr.modified_lines.get(comment.path, []):
        return CommentAnchor(comment.path, comment.line, "ADDED", "TO")

    line = comment.line
    dl = correspondence_for(pr.lines.get(comment.path, []), comment.line)
    if dl is not None:
        line = dl.old
    return CommentAnchor(comment.path, line, "CONTEXT", "FROM")


def severity_name(severity: Severity) -> str:
    return "BLOCKER" if severity.is_blocking else "NORMAL"


class BitbucketCommenter(BaseCommenter):
    """Comments on the open pull request for a branch."""

    supports_severity = True
    max_comment_length = 32768

    def __init__(
        self,
        url: str,
        project: str,
        repo: str,
        branch: str,
        head_commit: str,
        token: str,
        timeout: float = 60,
        max_comments: int = 50,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(max_comments=max_comments)
        self.url = url
        self.project = project
        self.repo = repo
        self.branch = branch
        self.head_commit = head_commit
        self.client = ApiClient(
            url,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            timeout=timeout,
            session=session,
        )
        self._username: Optional[str] = None
        # Comment versions bump on every edit; later edits must send the new one.
        self._versions: Dict[int, int] = {}

    def describe(self) -> str:
        return f"Bitbucket {self.project}/{self.repo}"

    def _repo(self, api: str = "1.0") -> str:
        return f"/rest/api/{api}/projects/{self.project}/repos/{self.repo}"

    def _comments(self, pr: BitbucketPR) -> str:
        return f"{self._repo()}/pull-requests/{pr.id}/comments"

    def whoami(self) -> str:
        if self._username is None:
            response = self.client.request("GET", "/plugins/servlet/applinks/whoami")
            self._username = response.text.rstrip("\n")
        return self._username

    # ── destinations ──────────────────────────────────────────────────────────

    def find_pull_request(self) -> Optional[BitbucketPR]:
        endpoint = f"{self._repo()}/commits/{self.head_commit}/pull-requests"
        for pr in self.client.paginate_start(endpoint):
            if not pr.get("open"):
                continue
            src = pr["fromRef"]["id"].removeprefix("refs/heads/")
            if src != self.branch:
                continue
            return BitbucketPR(
                id=pr["id"],
                src_branch=src,
                src_head=pr["fromRef"].get("latestCommit", ""),
                dst_branch=pr["toRef"]["id"].removeprefix("refs/heads/"),
                dst_head=pr["toRef"].get("latestCommit", ""),
            )
        return None

    def _load_changes(self, pr: BitbucketPR) -> None:
        for change in self.client.paginate_start(f"{self._repo()}/pull-requests/{pr.id}/changes"):
            path = change["path"]["toString"]
            data = self.client.get(
                f"{self._repo('latest')}/commits/{pr.src_head}/diff/{path}",
                params={
                    "contextLines": 10000,
                    "since": pr.dst_head,
                    "whitespace": "show",
                    "withComments": "false",
                },
            ) or {}
            hunks = [h for d in data.get("diffs", []) for h in d.get("hunks") or []]
            lines = from_segments(hunks)
            pr.lines[path] = lines
            pr.modified_lines[path] = [dl.new for dl in lines if dl.was_modified]

    def destinations(self) -> List[Any]:
        pr = self.find_pull_request()
        if pr is None:
            logger.info("No open pull request found for branch %s", self.branch)
            return []
        self._load_changes(pr)
        return [pr]

    # ── capability set ────────────────────────────────────────────────────────

    def _own_open_comments(self, pr: BitbucketPR) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """Yield ``(comment, anchor)`` for every open comment this user added."""
        me = self.whoami()
        for act in self.client.paginate_start(f"{self._repo('latest')}/pull-requests/{pr.id}/activities"):
            comment = act.get("comment") or {}
            if (
                act.get("action") == "COMMENTED"
                and act.get("commentAction") == "ADDED"
                and comment.get("state") == "OPEN"
                and (comment.get("author") or {}).get("name") == me
            ):
                yield comment, act.get("commentAnchor") or {}

    def list(self, dst: Any) -> List[ExistingComment]:
        pr: BitbucketPR = dst
        comments: List[ExistingComment] = []
        for comment, anchor in self._own_open_comments(pr):
            if anchor.get("orphaned") or not anchor.get("path"):
                continue
            self._versions[comment["id"]] = comment.get("version", 0)
            comments.append(
                ExistingComment(
                    path=anchor["path"],
                    line=anchor.get("line", 0),
                    text=comment.get("text", ""),
                    meta={"id": comment["id"]},
                    replies=len(comment.get("comments") or []),
                    blocking=comment.get("severity") == "BLOCKER",
                    pinned=anchor.get("diffType") == "COMMIT",
                    side="new" if anchor.get("fileType") == "TO" else "old",
                )
            )
        return comments

    def is_equal(self, dst: Any, existing: ExistingComment, pending: PendingComment) -> bool:
        anchor = anchor_for(pending, dst)
        return (
            existing.path == anchor.path
            and existing.line == anchor.line
            and existing.side == anchor.side
            and existing.text.strip("\n") == pending.text.strip("\n")
        )

    def create(self, dst: Any, comment: PendingComment) -> None:
        pr: BitbucketPR = dst
        if comment.path not in pr.modified_lines:
            logger.debug("Skipping comment for a path outside of the pull request: %s", comment.path)
            return
        anchor = anchor_for(comment, pr)
        logger.debug("Adding missing comment at %s", anchor)
        self.client.post(
            self._comments(pr),
            {"text": comment.text, "severity": severity_name(comment.severity), "anchor": anchor.to_json()},
        )

    def _update(self, pr: BitbucketPR, comment: ExistingComment, payload: Dict[str, Any]) -> None:
        cid = comment.meta["id"]
        data = self.client.put(
            f"{self._comments(pr)}/{cid}",
            dict(payload, version=self._versions.get(cid, 0)),
        ) or {}
        if "version" in data:
            self._versions[cid] = data["version"]

    def delete(self, dst: Any, comment: ExistingComment) -> None:
        cid = comment.meta["id"]
        self.client.delete(
            f"{self._comments(dst)}/{cid}",
            params={"version": self._versions.get(cid, 0)},
        )

    def update_severity(self, dst: Any, comment: ExistingComment, severity: Severity) -> None:
        self._update(dst, comment, {"severity": severity_name(severity)})

    def resolve_thread(self, dst: Any, comment: ExistingComment) -> None:
        self._update(dst, comment, {"state": "RESOLVED"})

    def general_comment(self, dst: Any, text: str) -> None:
        for comment, anchor in self._own_open_comments(dst):
            if not anchor.get("path") and (comment.get("text") or "").strip() == text.strip():
                logger.debug("General comment already exists on %s", dst)
                return
        self.client.post(self._comments(dst), {"text": text})

    def summary(self, dst: Any, summary: RunSummary) -> None:
        """Publish a Code Insights report on the head commit; PUT replaces any earlier one."""
        data: List[Dict[str, Any]] = [
            {"title": "Number of problems found", "type": "NUMBER", "value": summary.total},
        ]
        for severity in sorted(summary.counts, reverse=True):
            data.append({"title": f"{severity} problems", "type": "NUMBER", "value": summary.counts[severity]})
        logger.info("Publishing Code Insights report for commit %s", self.head_commit)
        self.client.put(
            f"/rest/insights/1.0/projects/{self.project}/repos/{self.repo}"
            f"/commits/{self.head_commit}/reports/{REPORT_KEY}",
            {
                "title": "difflint",
                "result": "PASS" if summary.passed else "FAIL",
                "reporter": "difflint",
                "details": "Problems reported on lines changed in this pull request.",
                "data": data,
            },
        )
