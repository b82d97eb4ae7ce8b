"""Comment reconciler — converge review comments on the problems of this run.

The flow for every destination (a PR / MR the commenter reports to):

1. list the existing comments once,
2. plan: match pending comments against existing ones and classify every
   unmatched existing comment as delete / resolve / escalate,
3. apply: create under the cap, post an overflow notice, act on stale
   comments,
4. optionally publish the run summary, replacing the previous one.

Every failed call is collected on the result, never raised.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from difflint.comments.models import ExistingComment, PendingComment, RunSummary
from difflint.comments.render import (
    DEFAULT_DOCS_URL,
    errors_comment,
    overflow_comment,
    render_body,
    truncate,
)
from difflint.events import EventSink
from difflint.git.adapter import GitError, OperationCancelled
from difflint.problems.aggregator import group_reports
from difflint.problems.models import Anchor, Report, Severity

logger = logging.getLogger(__name__)


class CommentError(Exception):
    """Raised by a commenter when a call to the review platform fails."""


# ── pending comments ──────────────────────────────────────────────────────────


def select_line(report: Report) -> Tuple[int, bool]:
    """Pick the line to comment on and whether it was modified.

    The range is scanned from its last line backwards; the first modified
    line wins, otherwise the last line of the range is used.
    """
    lines = report.problem.lines
    for line in range(lines.last, lines.first - 1, -1):
        if line in report.modified_lines:
            return line, True
    return lines.last, False


def make_comments(
    reports: Sequence[Report],
    docs_url: str = DEFAULT_DOCS_URL,
    max_length: int = 0,
) -> List[PendingComment]:
    comments: List[PendingComment] = []
    for group in group_reports(list(reports)):
        first = group[0]
        line, modified = select_line(first)
        comments.append(
            PendingComment(
                path=first.path.effective_path,
                line=line,
                text=truncate(render_body(group, docs_url), max_length),
                severity=first.problem.severity,
                anchor=first.problem.anchor,
                modified_line=modified,
            )
        )
    return comments


# ── commenter interface ───────────────────────────────────────────────────────


class BaseCommenter:
    """Capability set every review platform binding implements.

    ``max_comments`` caps how many comments one run may create (0 means no
    cap). ``max_comment_length`` is the platform's body size limit.
    """

    supports_severity = False
    max_comment_length = 0

    def __init__(self, max_comments: int = 0) -> None:
        self.max_comments = max_comments

    def describe(self) -> str:
        return type(self).__name__

    def destinations(self) -> List[Any]:
        raise NotImplementedError

    def list(self, dst: Any) -> List[ExistingComment]:
        raise NotImplementedError

    def create(self, dst: Any, comment: PendingComment) -> None:
        raise NotImplementedError

    def delete(self, dst: Any, comment: ExistingComment) -> None:
        raise NotImplementedError

    def resolve_thread(self, dst: Any, comment: ExistingComment) -> None:
        raise NotImplementedError

    def reopen_thread(self, dst: Any, comment: ExistingComment) -> None:
        """Unresolve a thread whose problem came back. No-op by default."""

    def update_severity(self, dst: Any, comment: ExistingComment, severity: Severity) -> None:
        raise NotImplementedError(f"{self.describe()} has no comment severity")

    def general_comment(self, dst: Any, text: str) -> None:
        raise NotImplementedError

    def summary(self, dst: Any, summary: RunSummary) -> None:
        """Publish the run summary on *dst*, replacing an earlier one. No-op by default."""

    def can_create(self, count: int) -> bool:
        return self.max_comments <= 0 or count < self.max_comments

    def side_for(self, dst: Any, comment: PendingComment) -> str:
        return "old" if comment.anchor == Anchor.BEFORE else "new"

    def is_equal(self, dst: Any, existing: ExistingComment, pending: PendingComment) -> bool:
        if existing.path != pending.path or existing.line != pending.line:
            return False
        if existing.side and existing.side != self.side_for(dst, pending):
            return False
        return existing.text.strip("\n") == pending.text.strip("\n")


# ── planning ──────────────────────────────────────────────────────────────────


class StaleAction(str, Enum):
    DELETE = "delete"
    RESOLVE = "resolve"
    ESCALATE = "escalate"  # raise severity, then resolve


@dataclass
class ReconcilePlan:
    to_create: List[PendingComment] = field(default_factory=list)
    kept: List[Tuple[PendingComment, ExistingComment]] = field(default_factory=list)
    to_reopen: List[ExistingComment] = field(default_factory=list)
    stale: List[Tuple[ExistingComment, StaleAction]] = field(default_factory=list)


def stale_action(existing: ExistingComment, supports_severity: bool) -> Optional[StaleAction]:
    """What to do with an existing comment no problem matches any more.

    Threads with replies are never deleted. None means nothing to do.
    """
    if existing.replies == 0:
        return StaleAction.DELETE
    if existing.blocking or not supports_severity:
        return None if existing.resolved else StaleAction.RESOLVE
    return StaleAction.ESCALATE


def plan(
    pending: Sequence[PendingComment],
    existing: Sequence[ExistingComment],
    commenter: BaseCommenter,
    dst: Any,
) -> ReconcilePlan:
    """Decide creates and stale actions without calling the platform.

    Pinned comments never match, so they are always replaced.
    """
    result = ReconcilePlan()
    matched: List[ExistingComment] = []

    for comment in pending:
        match = next(
            (e for e in existing if not e.pinned and commenter.is_equal(dst, e, comment)),
            None,
        )
        if match is None:
            result.to_create.append(comment)
            continue
        result.kept.append((comment, match))
        matched.append(match)
        if match.resolved:
            result.to_reopen.append(match)

    for comment in existing:
        if any(comment is m for m in matched):
            continue
        action = stale_action(comment, commenter.supports_severity)
        if action is not None:
            result.stale.append((comment, action))
    return result


# ── applying ──────────────────────────────────────────────────────────────────


@dataclass
class ReconcileResult:
    destination: Any = None
    created: List[PendingComment] = field(default_factory=list)
    kept: List[PendingComment] = field(default_factory=list)
    skipped: List[PendingComment] = field(default_factory=list)
    deleted: List[ExistingComment] = field(default_factory=list)
    resolved: List[ExistingComment] = field(default_factory=list)
    escalated: List[ExistingComment] = field(default_factory=list)
    reopened: List[ExistingComment] = field(default_factory=list)
    summarized: bool = False
    errors: List[Exception] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("reconciliation cancelled")


def _create_comments(
    commenter: BaseCommenter,
    dst: Any,
    to_create: List[PendingComment],
    result: ReconcileResult,
    events: EventSink,
    cancel: Optional[threading.Event],
) -> None:
    stop = False
    for comment in to_create:
        _check_cancel(cancel)
        if not stop:
            try:
                stop = not commenter.can_create(len(result.created))
            except CommentError as exc:
                logger.warning("%s: comment quota check failed, not creating more: %s", commenter.describe(), exc)
                result.errors.append(exc)
                stop = True
        if stop:
            logger.debug("Cannot create new comment on %s:%d", comment.path, comment.line)
            result.skipped.append(comment)
            events.emit("comment_skipped", path=comment.path, line=comment.line)
            continue

        logger.info("Creating a new comment on %s:%d", comment.path, comment.line)
        try:
            commenter.create(dst, comment)
        except CommentError as exc:
            logger.error("Failed to create a comment on %s:%d: %s", comment.path, comment.line, exc)
            result.errors.append(exc)
            events.emit("operation_failed", op="create", path=comment.path)
            continue
        result.created.append(comment)
        events.emit("comment_created", path=comment.path, line=comment.line)

    if result.skipped:
        _check_cancel(cancel)
        text = overflow_comment(len(to_create), commenter.max_comments, len(result.skipped))
        try:
            commenter.general_comment(dst, text)
        except CommentError as exc:
            logger.error("Failed to post the overflow notice: %s", exc)
            result.errors.append(exc)
            events.emit("operation_failed", op="overflow")


def _apply_stale(
    commenter: BaseCommenter,
    dst: Any,
    stale: List[Tuple[ExistingComment, StaleAction]],
    result: ReconcileResult,
    events: EventSink,
    cancel: Optional[threading.Event],
) -> None:
    for comment, action in stale:
        _check_cancel(cancel)
        logger.info("Stale comment on %s:%d, action: %s", comment.path, comment.line, action.value)
        try:
            if action == StaleAction.DELETE:
                commenter.delete(dst, comment)
                result.deleted.append(comment)
                events.emit("comment_deleted", path=comment.path, line=comment.line)
            elif action == StaleAction.RESOLVE:
                commenter.resolve_thread(dst, comment)
                result.resolved.append(comment)
                events.emit("comment_resolved", path=comment.path, line=comment.line)
            else:
                commenter.update_severity(dst, comment, Severity.BUG)
                if not comment.resolved:
                    commenter.resolve_thread(dst, comment)
                result.escalated.append(comment)
                events.emit("comment_escalated", path=comment.path, line=comment.line)
        except CommentError as exc:
            logger.error("Failed to %s a stale comment on %s:%d: %s", action.value, comment.path, comment.line, exc)
            result.errors.append(exc)
            events.emit("operation_failed", op=action.value, path=comment.path)


def _publish_summary(
    commenter: BaseCommenter,
    dst: Any,
    summary: RunSummary,
    result: ReconcileResult,
    events: EventSink,
    cancel: Optional[threading.Event],
) -> None:
    _check_cancel(cancel)
    logger.info("Publishing the run summary (%s)", commenter.describe())
    try:
        commenter.summary(dst, summary)
    except CommentError as exc:
        logger.error("Failed to publish the run summary: %s", exc)
        result.errors.append(exc)
        events.emit("operation_failed", op="summary")
        return
    result.summarized = True
    events.emit("summary_published", passed=summary.passed, problems=summary.total)


def reconcile_destination(
    commenter: BaseCommenter,
    dst: Any,
    pending: Sequence[PendingComment],
    events: Optional[EventSink] = None,
    cancel: Optional[threading.Event] = None,
    summary: Optional[RunSummary] = None,
) -> ReconcileResult:
    events = events or EventSink()
    result = ReconcileResult(destination=dst)

    try:
        _check_cancel(cancel)
        logger.info("Listing existing comments (%s)", commenter.describe())
        existing = list(commenter.list(dst))
        decision = plan(pending, existing, commenter, dst)

        for comment, _ in decision.kept:
            logger.debug("Comment already exists on %s:%d", comment.path, comment.line)
            result.kept.append(comment)
            events.emit("comment_kept", path=comment.path, line=comment.line)
        for comment in decision.to_reopen:
            _check_cancel(cancel)
            try:
                commenter.reopen_thread(dst, comment)
            except CommentError as exc:
                logger.error("Failed to reopen a comment on %s:%d: %s", comment.path, comment.line, exc)
                result.errors.append(exc)
                continue
            result.reopened.append(comment)

        _create_comments(commenter, dst, decision.to_create, result, events, cancel)
        _apply_stale(commenter, dst, decision.stale, result, events, cancel)
        if summary is not None:
            _publish_summary(commenter, dst, summary, result, events, cancel)
    except (CommentError, GitError) as exc:
        logger.error("Reconciliation with %s stopped: %s", commenter.describe(), exc)
        result.errors.append(exc)
        events.emit("operation_failed", op="reconcile")
    return result


def reconcile(
    commenter: BaseCommenter,
    reports: Sequence[Report],
    *,
    docs_url: str = DEFAULT_DOCS_URL,
    events: Optional[EventSink] = None,
    cancel: Optional[threading.Event] = None,
    summary: Optional[RunSummary] = None,
) -> List[ReconcileResult]:
    """Render *reports* and reconcile them on every destination.

    With *summary* set, every destination also gets the run summary.
    """
    pending = make_comments(reports, docs_url, commenter.max_comment_length)
    logger.info("Will now report %d comment(s) with %s", len(pending), commenter.describe())

    try:
        dsts = commenter.destinations()
    except CommentError as exc:
        logger.error("Cannot list report destinations for %s: %s", commenter.describe(), exc)
        return [ReconcileResult(errors=[exc])]

    results: List[ReconcileResult] = []
    for dst in dsts:
        logger.info("Found a report destination: %s", dst)
        results.append(reconcile_destination(commenter, dst, pending, events, cancel, summary))
        if cancel is not None and cancel.is_set():
            break
    return results


def submit_errors(commenter: BaseCommenter, results: Sequence[ReconcileResult]) -> List[Exception]:
    """Post one error summary per destination that collected errors.

    Returns the errors hit while posting the summaries themselves.
    """
    failures: List[Exception] = []
    for result in results:
        if result.ok or result.destination is None:
            continue
        try:
            commenter.general_comment(result.destination, errors_comment(result.errors))
        except CommentError as exc:
            logger.error("Failed to post the error summary: %s", exc)
            failures.append(exc)
    return failures
