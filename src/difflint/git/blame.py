"""Blame index — per-line commit attribution from ``git blame --line-porcelain``."""

from __future__ import annotations

import logging
from typing import Collection, Iterable, List, Optional

from difflint.git.adapter import GitError, GitRunner, OperationCancelled, blame_porcelain
from difflint.git.models import FileBlames, LineBlame, LineBlames

logger = logging.getLogger(__name__)

_SKIP_PREFIXES = ("author", "committer", "summary", "previous", "boundary")


class BlameError(GitError):
    """Raised when blame output cannot be produced or parsed."""


def parse_blame(output: bytes) -> LineBlames:
    """Parse ``--line-porcelain`` output into an ascending list of LineBlame.

    Every line of content is preceded by a header of the form
    ``<sha> <orig-line> <final-line> [<group-size>]``. A header that does
    not carry integer line numbers is a hard error.
    """
    lines: LineBlames = []
    commit = ""
    prev_line = 0
    final_line = 0
    filename = ""

    for raw in output.decode("utf-8", errors="replace").splitlines():
        if raw.startswith("\t"):
            lines.append(
                LineBlame(line=final_line, commit=commit, prev_line=prev_line, filename=filename)
            )
            continue
        if raw.startswith(_SKIP_PREFIXES):
            continue
        if raw.startswith("filename "):
            filename = raw[len("filename "):]
            continue
        if not raw:
            continue

        parts = raw.split(" ")
        if len(parts) < 3:
            raise BlameError(f"failed to parse line number from line: {raw!r}")
        commit = parts[0]
        try:
            prev_line = int(parts[1])
            final_line = int(parts[2])
        except ValueError as exc:
            raise BlameError(f"failed to parse line number from {raw!r}: {exc}") from exc

    return lines


def blame(runner: GitRunner, path: str, revision: Optional[str] = None) -> LineBlames:
    """Return the blame index for *path* at *revision* (working copy if None)."""
    logger.debug("Running git blame for %s at %s", path, revision or "working copy")
    try:
        output = blame_porcelain(runner, path, revision)
    except OperationCancelled:
        raise
    except GitError as exc:
        raise BlameError(f"failed to run git blame for {path}: {exc}") from exc
    return parse_blame(output)


def blame_files(
    runner: GitRunner, paths: Iterable[str], revision: Optional[str] = None
) -> FileBlames:
    """Blame every path in *paths*; any failure propagates."""
    return {path: blame(runner, path, revision) for path in paths}


def touched_lines(blames: LineBlames, commits: Collection[str]) -> List[int]:
    """Line numbers attributed to any of *commits*."""
    return [lb.line for lb in blames if lb.commit in commits]


def was_line_touched(blames: LineBlames, line: int, commits: Collection[str]) -> bool:
    """True if *line* was last modified by one of *commits*."""
    return any(lb.line == line and lb.commit in commits for lb in blames)
