"""GitLab merge request binding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from difflint.comments.models import ExistingComment, PendingComment, RunSummary
from difflint.comments.reconciler import BaseCommenter
from difflint.comments.render import SUMMARY_HEADER, summary_comment
from difflint.diff.positions import parse_diff_lines, translate_position
from difflint.platforms.http import ApiClient, PlatformError

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://gitlab.com"


@dataclass
class GitlabMR:
    """One open merge request plus everything fetched for it up front."""

    iid: int
    user_id: int
    version: Dict[str, Any] = field(default_factory=dict)
    diffs: List[Dict[str, Any]] = field(default_factory=list)
    discussions: List[Dict[str, Any]] = field(default_factory=list)

    def __str__(self) -> str:
        return f"!{self.iid}"


def diffs_for_path(diffs: List[Dict[str, Any]], path: str) -> List[Dict[str, Any]]:
    return [d for d in diffs if d.get("new_path") == path]


def discussion_position(
    comment: PendingComment, diffs: List[Dict[str, Any]], version: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Build the ``position`` payload for *comment*, None if the path has no diff."""
    path_diffs = diffs_for_path(diffs, comment.path)
    if not path_diffs:
        return None

    position: Dict[str, Any] = {
        "position_type": "text",
        "base_sha": version.get("base_commit_sha"),
        "head_sha": version.get("head_commit_sha"),
        "start_sha": version.get("start_commit_sha"),
        "new_path": path_diffs[0]["new_path"],
    }
    renamed = False
    for diff in path_diffs:
        position["old_path"] = diff.get("old_path")
        if diff.get("old_path") != diff.get("new_path"):
            renamed = True
        pos = translate_position(parse_diff_lines(diff.get("diff", "")), comment.line, comment.anchor)
        position.pop("old_line", None)
        position.pop("new_line", None)
        if pos.old_line is not None:
            position["old_line"] = pos.old_line
        if pos.new_line is not None:
            position["new_line"] = pos.new_line

    if renamed and "new_line" in position:
        position.pop("old_line", None)
    return position


class GitlabCommenter(BaseCommenter):
    """Discussions on every open merge request for a source branch."""

    max_comment_length = 1_000_000

    def __init__(
        self,
        project: str,
        branch: str,
        token: str,
        url: str = DEFAULT_URL,
        timeout: float = 60,
        max_comments: int = 50,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(max_comments=max_comments)
        self.project = str(project)
        self.branch = branch
        self.client = ApiClient(
            url.rstrip("/") + "/api/v4",
            headers={"PRIVATE-TOKEN": token, "Accept": "application/json"},
            timeout=timeout,
            session=session,
        )

    def describe(self) -> str:
        return f"GitLab project {self.project}"

    def _mr(self, iid: int) -> str:
        return f"/projects/{quote(self.project, safe='')}/merge_requests/{iid}"

    # ── destinations ──────────────────────────────────────────────────────────

    def destinations(self) -> List[Any]:
        user = self.client.get("/user") or {}
        user_id = int(user.get("id", 0))
        mrs = self.client.paginate_pages(
            f"/projects/{quote(self.project, safe='')}/merge_requests",
            params={"state": "opened", "source_branch": self.branch},
        )

        dsts: List[Any] = []
        for mr in mrs:
            iid = int(mr["iid"])
            logger.info("Found open GitLab merge request !%d for branch %s", iid, self.branch)
            versions = list(self.client.paginate_pages(f"{self._mr(iid)}/versions"))
            if not versions:
                raise PlatformError(f"no merge request versions found for !{iid}")
            dsts.append(
                GitlabMR(
                    iid=iid,
                    user_id=user_id,
                    version=versions[0],
                    diffs=list(self.client.paginate_pages(f"{self._mr(iid)}/diffs")),
                    discussions=list(self.client.paginate_pages(f"{self._mr(iid)}/discussions")),
                )
            )
        return dsts

    # ── capability set ────────────────────────────────────────────────────────

    def _own_position_note(self, mr: GitlabMR, note: Dict[str, Any]) -> bool:
        return (
            not note.get("system")
            and (note.get("author") or {}).get("id") == mr.user_id
            and note.get("position") is not None
        )

    def list(self, dst: Any) -> List[ExistingComment]:
        mr: GitlabMR = dst
        comments: List[ExistingComment] = []
        for disc in mr.discussions:
            notes = disc.get("notes") or []
            if not notes or not self._own_position_note(mr, notes[0]):
                continue
            note = notes[0]
            pos = note["position"]
            new_line = pos.get("new_line") or 0
            line = new_line or pos.get("old_line") or 0
            path = pos.get("new_path") or pos.get("old_path") or ""
            if not path or line <= 0:
                continue
            comments.append(
                ExistingComment(
                    path=path,
                    line=line,
                    text=note.get("body", ""),
                    meta={"discussion_id": disc["id"], "note_id": note["id"]},
                    replies=sum(1 for n in notes[1:] if not n.get("system")),
                    resolved=bool(note.get("resolved")),
                    side="new" if new_line else "old",
                )
            )
        return comments

    def create(self, dst: Any, comment: PendingComment) -> None:
        mr: GitlabMR = dst
        position = discussion_position(comment, mr.diffs, mr.version)
        if position is None:
            logger.debug("Skipping report for path with no GitLab diff: %s", comment.path)
            return
        logger.debug("Creating a new merge request discussion at %s", position)
        self.client.post(f"{self._mr(mr.iid)}/discussions", {"body": comment.text, "position": position})

    def delete(self, dst: Any, comment: ExistingComment) -> None:
        mr: GitlabMR = dst
        self.client.delete(f"{self._mr(mr.iid)}/notes/{comment.meta['note_id']}")

    def _set_resolved(self, mr: GitlabMR, comment: ExistingComment, resolved: bool) -> None:
        self.client.put(
            f"{self._mr(mr.iid)}/discussions/{comment.meta['discussion_id']}",
            params={"resolved": "true" if resolved else "false"},
        )

    def resolve_thread(self, dst: Any, comment: ExistingComment) -> None:
        self._set_resolved(dst, comment, True)

    def reopen_thread(self, dst: Any, comment: ExistingComment) -> None:
        logger.debug("Un-resolving merge request discussion %s", comment.meta["discussion_id"])
        self._set_resolved(dst, comment, False)

    def general_comment(self, dst: Any, text: str) -> None:
        mr: GitlabMR = dst
        for note in self._own_general_notes(mr):
            if note.get("body") == text:
                logger.debug("General comment already exists")
                return
        self.client.post(f"{self._mr(mr.iid)}/discussions", {"body": text})

    def _own_general_notes(self, mr: GitlabMR) -> List[Dict[str, Any]]:
        return [
            note
            for disc in mr.discussions
            for note in disc.get("notes") or []
            if not note.get("system")
            and note.get("position") is None
            and (note.get("author") or {}).get("id") == mr.user_id
        ]

    def summary(self, dst: Any, summary: RunSummary) -> None:
        mr: GitlabMR = dst
        body = summary_comment(summary)
        for note in self._own_general_notes(mr):
            if not (note.get("body") or "").startswith(SUMMARY_HEADER):
                continue
            if (note.get("body") or "").strip() == body.strip():
                logger.debug("Merge request summary is up to date")
            else:
                logger.info("Updating merge request summary note %s", note["id"])
                self.client.put(f"{self._mr(mr.iid)}/notes/{note['id']}", {"body": body})
            return
        logger.info("Creating merge request summary on %s", mr)
        self.client.post(f"{self._mr(mr.iid)}/discussions", {"body": body})
