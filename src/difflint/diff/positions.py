"""Diff position mapper — old/new line correspondence for one file's diff.

Review platforms want a comment position expressed against a specific diff,
while a problem's line is numbered against the current file body. The
correspondence built here covers every line present on the new side of the
diff. Lines the diff never enumerates are worked out by offsetting from the
nearest entry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from difflint.problems.models import Anchor

logger = logging.getLogger(__name__)

_HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)


@dataclass(frozen=True, slots=True)
class DiffLine:
    """One new-side line of a diff and the old-side line it corresponds to."""

    old: int
    new: int
    was_modified: bool


DiffCorrespondence = List[DiffLine]


@dataclass(frozen=True)
class DiffPosition:
    old_line: Optional[int]
    new_line: Optional[int]

    @property
    def side(self) -> str:
        if self.new_line is None:
            return "old"
        if self.old_line is None:
            return "new"
        return "both"


def parse_diff_lines(diff: str) -> DiffCorrespondence:
    """Parse a single-file unified diff into a correspondence.

    Anything before the first hunk header (``diff --git``, ``index``,
    ``---``/``+++`` file headers) is ignored, so a full diff and one with
    its file headers stripped give the same result. A malformed ``@@``
    line is skipped and the counters carry on from where they were.
    """
    lines: DiffCorrespondence = []
    old = new = 0
    in_hunk = False
    # Remaining (old, new) lines of the current hunk; None once a header was unreadable.
    remaining: Optional[List[int]] = None

    for raw in diff.splitlines():
        if raw.startswith("@@"):
            m = _HUNK_HEADER_RE.match(raw)
            if m is None:
                logger.debug("Skipping malformed hunk header: %r", raw)
                in_hunk = True
                remaining = None
                continue
            old = int(m["old_start"]) - 1
            new = int(m["new_start"]) - 1
            remaining = [
                int(m["old_count"]) if m["old_count"] is not None else 1,
                int(m["new_count"]) if m["new_count"] is not None else 1,
            ]
            in_hunk = True
            continue

        if not in_hunk or raw.startswith("\\"):
            continue
        if remaining is not None and remaining[0] <= 0 and remaining[1] <= 0:
            # Hunk used up: whatever follows is header noise until the next @@.
            in_hunk = False
            continue

        if raw.startswith("-"):
            old += 1
            if remaining is not None:
                remaining[0] -= 1
        elif raw.startswith("+"):
            new += 1
            lines.append(DiffLine(old=old, new=new, was_modified=True))
            if remaining is not None:
                remaining[1] -= 1
        else:
            old += 1
            new += 1
            lines.append(DiffLine(old=old, new=new, was_modified=False))
            if remaining is not None:
                remaining[0] -= 1
                remaining[1] -= 1

    return lines


def from_segments(hunks: Iterable[Mapping[str, Any]]) -> DiffCorrespondence:
    """Build a correspondence from a Bitbucket-style JSON diff.

    Each hunk holds ``segments`` of type ADDED / CONTEXT / REMOVED, and
    each segment holds ``lines`` with ``source`` and ``destination``.
    """
    lines: DiffCorrespondence = []
    for hunk in hunks:
        for segment in hunk.get("segments", []):
            kind = segment.get("type")
            if kind == "REMOVED":
                continue
            for line in segment.get("lines", []):
                lines.append(
                    DiffLine(
                        old=int(line.get("source", 0)),
                        new=int(line.get("destination", 0)),
                        was_modified=kind == "ADDED",
                    )
                )
    lines.sort(key=lambda dl: dl.new)
    return lines


def correspondence_for(lines: DiffCorrespondence, line: int) -> Optional[DiffLine]:
    """Map a new-side *line* to its DiffLine, or None for an empty diff."""
    if not lines:
        return None

    for i, dl in enumerate(lines):
        if dl.new == line:
            return dl
        if dl.new > line:
            prev = lines[i - 1] if i > 0 else dl
            return DiffLine(old=prev.old + (line - prev.new), new=line, was_modified=False)

    last = lines[-1]
    return DiffLine(old=last.old + (line - last.new), new=line, was_modified=False)


def translate_position(lines: DiffCorrespondence, line: int, anchor: Anchor) -> DiffPosition:
    """Position a comment for *line* against a diff."""
    if anchor == Anchor.BEFORE:
        # Before-anchored lines are already numbered against the old file.
        return DiffPosition(old_line=line, new_line=None)

    dl = correspondence_for(lines, line)
    if dl is None:
        return DiffPosition(old_line=line, new_line=line)
    if dl.was_modified:
        return DiffPosition(old_line=None, new_line=dl.new)
    return DiffPosition(old_line=dl.old, new_line=dl.new)
