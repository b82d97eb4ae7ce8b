"""Review comments: models, rendering and reconciliation."""

from difflint.comments.models import ExistingComment, PendingComment, RunSummary
from difflint.comments.reconciler import (
    BaseCommenter,
    CommentError,
    ReconcilePlan,
    ReconcileResult,
    StaleAction,
    make_comments,
    plan,
    reconcile,
    select_line,
    submit_errors,
)
from difflint.comments.render import render_body, summary_comment, truncate

__all__ = [
    "BaseCommenter",
    "CommentError",
    "ExistingComment",
    "PendingComment",
    "ReconcilePlan",
    "ReconcileResult",
    "RunSummary",
    "StaleAction",
    "make_comments",
    "plan",
    "reconcile",
    "render_body",
    "select_line",
    "submit_errors",
    "summary_comment",
    "truncate",
]
