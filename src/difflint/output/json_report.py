"""JSON reporter for CI pipelines."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

from difflint.comments.models import ExistingComment, PendingComment
from difflint.comments.reconciler import ReconcileResult
from difflint.git.models import Entry, FileChange, LineBlame, Path


def _path(p: Path) -> Dict[str, Any]:
    return {
        "name": p.name,
        "type": p.type.name.lower(),
        **({"symlink_target": p.symlink_target} if p.symlink_target else {}),
    }


def change_to_dict(change: FileChange) -> Dict[str, Any]:
    return {
        "status": change.status.value,
        "commits": change.commits,
        "before": _path(change.path.before),
        "after": _path(change.path.after),
        "modified_lines": change.body.modified_lines,
    }


def entry_to_dict(entry: Entry) -> Dict[str, Any]:
    return {
        "name": entry.name,
        "path": entry.path,
        "type": entry.path_type.name.lower(),
        "modified_lines": entry.modified_lines,
    }


def _pending(c: PendingComment) -> Dict[str, Any]:
    return {
        "path": c.path,
        "line": c.line,
        "severity": str(c.severity).lower(),
        "anchor": c.anchor.value,
        "modified_line": c.modified_line,
        "text": c.text,
    }


def _existing(c: ExistingComment) -> Dict[str, Any]:
    return {"path": c.path, "line": c.line}


def result_to_dict(result: ReconcileResult) -> Dict[str, Any]:
    return {
        "destination": str(result.destination) if result.destination is not None else None,
        "created": [_pending(c) for c in result.created],
        "kept": len(result.kept),
        "skipped": len(result.skipped),
        "deleted": [_existing(c) for c in result.deleted],
        "resolved": [_existing(c) for c in result.resolved],
        "escalated": [_existing(c) for c in result.escalated],
        "reopened": [_existing(c) for c in result.reopened],
        "summarized": result.summarized,
        "errors": [str(e) for e in result.errors],
    }


def render_changes(records: Sequence[FileChange]) -> str:
    return json.dumps([change_to_dict(c) for c in records], indent=2)


def render_entries(entries: Sequence[Entry]) -> str:
    return json.dumps([entry_to_dict(e) for e in entries], indent=2)


def render_blame(path: str, blames: Sequence[LineBlame]) -> str:
    lines: List[Dict[str, Any]] = [
        {"line": lb.line, "commit": lb.commit, "prev_line": lb.prev_line} for lb in blames
    ]
    return json.dumps({"path": path, "lines": lines}, indent=2)


def render_report(
    pending: Sequence[PendingComment],
    results: Sequence[ReconcileResult],
    *,
    blocked: bool,
) -> str:
    """Return formatted JSON string."""
    return json.dumps(
        {
            "version": "1.0",
            "blocked": blocked,
            "comments": [_pending(c) for c in pending],
            "destinations": [result_to_dict(r) for r in results],
        },
        indent=2,
    )
