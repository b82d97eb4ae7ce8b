"""GitHub pull request binding."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from difflint.comments.models import ExistingComment, PendingComment, RunSummary
from difflint.comments.reconciler import BaseCommenter
from difflint.comments.render import SUMMARY_HEADER, summary_comment
from difflint.platforms.http import ApiClient, PlatformError
from difflint.problems.models import Anchor

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

_THREADS_QUERY = """
query($owner: String!, $repo: String!, $pr: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $pr) {
      reviewThreads(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          comments(first: 1) { nodes { databaseId } }
        }
      }
    }
  }
}
"""

_RESOLVE_MUTATION = """
mutation($id: ID!) { resolveReviewThread(input: {threadId: $id}) { thread { id } } }
"""

_UNRESOLVE_MUTATION = """
mutation($id: ID!) { unresolveReviewThread(input: {threadId: $id}) { thread { id } } }
"""


def graphql_url(api_url: str) -> str:
    """GitHub Enterprise serves GraphQL at /api/graphql next to /api/v3."""
    base = api_url.rstrip("/")
    if base.endswith("/api/v3"):
        return base[: -len("/v3")] + "/graphql"
    return base + "/graphql"


class GithubCommenter(BaseCommenter):
    """Review comments on one GitHub pull request.

    GitHub has no severity concept, so stale threads with replies are
    resolved, never escalated.
    """

    max_comment_length = 65536

    def __init__(
        self,
        owner: str,
        repo: str,
        pr: int,
        head_commit: str,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 60,
        max_comments: int = 50,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(max_comments=max_comments)
        self.owner = owner
        self.repo = repo
        self.pr = pr
        self.head_commit = head_commit
        self.api_url = api_url
        self.client = ApiClient(
            api_url,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            session=session,
        )
        self._login: Optional[str] = None

    def describe(self) -> str:
        return f"GitHub {self.owner}/{self.repo}#{self.pr}"

    def destinations(self) -> List[Any]:
        return [self.pr]

    # ── helpers ───────────────────────────────────────────────────────────────

    def _pulls(self, pr: int) -> str:
        return f"/repos/{self.owner}/{self.repo}/pulls/{pr}"

    def whoami(self) -> str:
        if self._login is None:
            user = self.client.get("/user") or {}
            self._login = str(user.get("login", ""))
            logger.debug("Authenticated to GitHub as %s", self._login)
        return self._login

    def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        data = self.client.post(graphql_url(self.api_url), {"query": query, "variables": variables}) or {}
        if data.get("errors"):
            raise PlatformError(f"GitHub GraphQL error: {data['errors']}")
        return data.get("data") or {}

    def _threads(self, pr: int) -> Dict[int, Tuple[str, bool]]:
        """Map a thread's first comment id to ``(thread id, resolved)``."""
        threads: Dict[int, Tuple[str, bool]] = {}
        cursor: Optional[str] = None
        while True:
            data = self._graphql(
                _THREADS_QUERY,
                {"owner": self.owner, "repo": self.repo, "pr": pr, "cursor": cursor},
            )
            page = data["repository"]["pullRequest"]["reviewThreads"]
            for node in page["nodes"]:
                comments = node["comments"]["nodes"]
                if comments:
                    threads[comments[0]["databaseId"]] = (node["id"], node["isResolved"])
            if not page["pageInfo"]["hasNextPage"]:
                return threads
            cursor = page["pageInfo"]["endCursor"]

    # ── capability set ────────────────────────────────────────────────────────

    def list(self, dst: Any) -> List[ExistingComment]:
        me = self.whoami()
        raw = list(self.client.paginate_links(f"{self._pulls(dst)}/comments"))
        threads = self._threads(dst)

        replies: Dict[int, int] = {}
        for c in raw:
            if c.get("in_reply_to_id"):
                replies[c["in_reply_to_id"]] = replies.get(c["in_reply_to_id"], 0) + 1

        comments: List[ExistingComment] = []
        for c in raw:
            if c.get("in_reply_to_id") or (c.get("user") or {}).get("login") != me:
                continue
            thread_id, resolved = threads.get(c["id"], ("", False))
            line = c.get("line")
            comments.append(
                ExistingComment(
                    path=c.get("path", ""),
                    line=line if line is not None else (c.get("original_line") or 0),
                    text=c.get("body", ""),
                    meta={"id": c["id"], "thread_id": thread_id},
                    replies=replies.get(c["id"], 0),
                    resolved=resolved,
                    # Outdated comments are stuck to the commit they were made on.
                    pinned=line is None,
                    side="old" if c.get("side") == "LEFT" else "new",
                )
            )
        logger.debug("Found %d existing comment(s) on %s", len(comments), self.describe())
        return comments

    def create(self, dst: Any, comment: PendingComment) -> None:
        side = "LEFT" if comment.anchor == Anchor.BEFORE else "RIGHT"
        self.client.post(
            f"{self._pulls(dst)}/comments",
            {
                "body": comment.text,
                "commit_id": self.head_commit,
                "path": comment.path,
                "line": comment.line,
                "side": side,
            },
        )

    def delete(self, dst: Any, comment: ExistingComment) -> None:
        self.client.delete(f"/repos/{self.owner}/{self.repo}/pulls/comments/{comment.meta['id']}")

    def resolve_thread(self, dst: Any, comment: ExistingComment) -> None:
        thread_id = comment.meta.get("thread_id")
        if not thread_id:
            raise PlatformError(f"no review thread found for comment {comment.meta['id']}")
        self._graphql(_RESOLVE_MUTATION, {"id": thread_id})

    def reopen_thread(self, dst: Any, comment: ExistingComment) -> None:
        thread_id = comment.meta.get("thread_id")
        if thread_id:
            self._graphql(_UNRESOLVE_MUTATION, {"id": thread_id})

    def _issue_comments(self, pr: int) -> str:
        return f"/repos/{self.owner}/{self.repo}/issues/{pr}/comments"

    def general_comment(self, dst: Any, text: str) -> None:
        me = self.whoami()
        for c in self.client.paginate_links(self._issue_comments(dst)):
            if (c.get("user") or {}).get("login") == me and (c.get("body") or "").strip() == text.strip():
                logger.debug("General comment already exists on %s", self.describe())
                return
        self.client.post(self._issue_comments(dst), {"body": text})

    def _find_review(self, pr: int) -> Optional[Dict[str, Any]]:
        me = self.whoami()
        for review in self.client.paginate_links(f"{self._pulls(pr)}/reviews"):
            if (review.get("user") or {}).get("login") != me:
                continue
            if (review.get("body") or "").startswith(SUMMARY_HEADER):
                return review
        return None

    def summary(self, dst: Any, summary: RunSummary) -> None:
        body = summary_comment(summary)
        review = self._find_review(dst)
        if review is None:
            logger.info("Creating pull request review on %s", self.describe())
            self.client.post(
                f"{self._pulls(dst)}/reviews",
                {"commit_id": self.head_commit, "body": body, "event": "COMMENT"},
            )
        elif (review.get("body") or "").strip() != body.strip():
            logger.info("Updating pull request review on %s", self.describe())
            self.client.put(f"{self._pulls(dst)}/reviews/{review['id']}", {"body": body})
        else:
            logger.debug("Pull request review is up to date")
