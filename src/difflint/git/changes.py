"""Change tracker — per-path change records for a commit range.

Walks ``git log --name-status`` oldest-first, collapses renames into one
record keyed by the final destination path, then resolves the before/after
state of every record and works out which lines of the final body were
touched by commits in the range.

A failure to enumerate the range is fatal. A failure while resolving a
single path only degrades that path (type MISSING / no modified lines) so
the rest of the changeset can still be attributed.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path as FsPath
from typing import Dict, Iterable, List, Optional, Set

from difflint.events import EventSink
from difflint.git.adapter import (
    GitError,
    GitRunner,
    OperationCancelled,
    cat_file,
    commit_message,
    log_range,
    ls_tree,
)
from difflint.git.blame import BlameError, blame
from difflint.git.filter import PathFilter
from difflint.git.models import (
    Entry,
    FileChange,
    FileStatus,
    Path,
    PathDiff,
    PathType,
)

logger = logging.getLogger(__name__)

MAX_SYMLINK_DEPTH = 40
SKIP_MARKERS = ("[skip ci]", "[no ci]")


class SymlinkCycleError(GitError):
    """Raised when symlink resolution revisits a path or nests too deep."""


class MaxCommitsExceeded(GitError):
    """Raised when the range holds more commits than allowed."""


# ── path lookups ──────────────────────────────────────────────────────────────


def get_type_for_path(runner: GitRunner, revision: str, path: str) -> PathType:
    """Type of *path* at *revision*; MISSING if absent or the lookup fails."""
    try:
        entries = ls_tree(runner, revision, path)
    except OperationCancelled:
        raise
    except GitError as exc:
        logger.debug("ls-tree failed for %s at %s: %s", path, revision, exc)
        return PathType.MISSING

    for mode, objtype, objpath in entries:
        if objpath != path:
            continue
        if objtype == "tree":
            return PathType.DIR
        if objtype != "blob":
            continue
        if mode == "120000":
            return PathType.SYMLINK
        return PathType.FILE
    return PathType.MISSING


def get_content_at(runner: GitRunner, revision: str, path: str) -> bytes:
    """Body of *path* at *revision*; empty if it cannot be read."""
    try:
        return cat_file(runner, revision, path)
    except OperationCancelled:
        raise
    except GitError as exc:
        logger.debug("cat-file failed for %s at %s: %s", path, revision, exc)
        return b""


def resolve_symlink_target(
    runner: GitRunner,
    revision: str,
    path: str,
    path_type: PathType,
    _seen: Optional[Set[str]] = None,
) -> str:
    """Follow a chain of symlinks at *revision* down to its final target."""
    if path_type != PathType.SYMLINK:
        return path

    seen = _seen if _seen is not None else set()
    if path in seen:
        raise SymlinkCycleError(f"symlink cycle detected at {path} ({revision})")
    if len(seen) >= MAX_SYMLINK_DEPTH:
        raise SymlinkCycleError(f"too many levels of symlinks resolving {path} ({revision})")
    seen.add(path)

    raw = get_content_at(runner, revision, path).decode("utf-8", errors="replace")
    target = posixpath.normpath(posixpath.join(posixpath.dirname(path), raw.strip()))
    target_type = get_type_for_path(runner, revision, target)
    return resolve_symlink_target(runner, revision, target, target_type, seen)


def count_lines(body: bytes) -> List[int]:
    """1-based numbers of every line in *body*."""
    return list(range(1, len(body.splitlines()) + 1))


# ── range walk ────────────────────────────────────────────────────────────────


def _parse_log(
    runner: GitRunner,
    output: bytes,
    path_filter: PathFilter,
    repo_root: Optional[FsPath],
) -> List[FileChange]:
    changes: List[FileChange] = []
    commit = ""

    for line in output.decode("utf-8", errors="replace").splitlines():
        parts = line.split("\t")
        if len(parts) == 1:
            if parts[0]:
                commit = parts[0].strip()
            continue

        status = FileStatus(parts[0][0])
        src_path = parts[1]
        dst_path = parts[-1]
        logger.debug("Git file change %s %s in %s", parts[0], dst_path, commit)

        if not path_filter.is_path_allowed(dst_path):
            logger.debug("Skipping %s due to include/exclude rules", dst_path)
            continue

        # git doesn't track directories, but submodules and such can leak in.
        if ((repo_root or FsPath.cwd()) / dst_path).is_dir():
            logger.debug("Skipping directory entry change %s", dst_path)
            continue

        change = FileChange(status=status, path=PathDiff(after=Path(name=dst_path)))

        prev = next((c for c in changes if c.path.after.name == src_path), None)
        if prev is not None:
            logger.debug("Found a previous change for %s: %s", src_path, prev.commits)
            change.commits.extend(prev.commits)
            change.path.before = prev.path.before
            changes = [c for c in changes if c.path.after.name != src_path]
        else:
            change.path.before = _capture_before(runner, commit, status, src_path)

        change.commits.append(commit)
        changes.append(change)

    logger.debug("Parsed git log into %d change(s)", len(changes))
    return changes


def _capture_before(runner: GitRunner, commit: str, status: FileStatus, src_path: str) -> Path:
    parent = f"{commit}^"
    if status in (FileStatus.ADDED, FileStatus.COPIED):
        # An add can still be a type change: look up the old type.
        path_type = get_type_for_path(runner, parent, src_path)
        if path_type == PathType.MISSING:
            return Path()
        return Path(name=src_path, type=path_type)

    path_type = get_type_for_path(runner, parent, src_path)
    try:
        target = resolve_symlink_target(runner, parent, src_path, path_type)
    except SymlinkCycleError as exc:
        logger.warning("Cannot resolve symlink %s: %s", src_path, exc)
        return Path(name=src_path, type=PathType.MISSING)
    return Path(name=src_path, type=path_type, symlink_target=target)


def _resolve_after(runner: GitRunner, change: FileChange, last_commit: str) -> None:
    after = change.path.after
    if not after.name or change.status == FileStatus.DELETED:
        return
    after.type = get_type_for_path(runner, last_commit, after.name)
    try:
        after.symlink_target = resolve_symlink_target(runner, last_commit, after.name, after.type)
    except SymlinkCycleError as exc:
        logger.warning("Cannot resolve symlink %s: %s", after.name, exc)
        after.type = PathType.MISSING
        return
    change.body.after = get_content_at(runner, last_commit, after.effective_path)


def get_modified_lines(
    runner: GitRunner,
    commits: List[str],
    path: str,
    at_commit: str,
    body_before: bytes,
    body_after: bytes,
) -> List[int]:
    """Lines of *path* at *at_commit* that blame attributes to *commits*.

    A blamed line whose original position holds the exact same content in
    *body_before* is not counted.
    """
    blames = blame(runner, path, at_commit)
    lines_before = body_before.split(b"\n")
    lines_after = body_after.split(b"\n")
    wanted = set(commits)

    modified: List[int] = []
    for lb in blames:
        if lb.commit not in wanted:
            continue
        if 0 < lb.prev_line <= len(lines_before) and 0 < lb.line <= len(lines_after):
            if lines_before[lb.prev_line - 1] == lines_after[lb.line - 1]:
                continue
        modified.append(lb.line)
    logger.debug("Modified lines of %s: %s", path, modified)
    return modified


def _compute_modified_lines(runner: GitRunner, change: FileChange) -> None:
    before, after = change.path.before, change.path.after
    body = change.body
    last_commit = change.commits[-1]

    if before.type not in (PathType.MISSING, PathType.SYMLINK) and after.type == PathType.SYMLINK:
        logger.debug("Path %s was turned into a symlink", after.name)
        body.modified_lines = count_lines(body.after)
    elif before.type != PathType.MISSING and after.type not in (PathType.MISSING, PathType.SYMLINK):
        try:
            body.modified_lines = get_modified_lines(
                runner, change.commits, after.effective_path, last_commit, body.before, body.after
            )
        except BlameError as exc:
            logger.warning("Cannot attribute lines of %s, treating it as unmodified: %s", after.name, exc)
            body.modified_lines = []
            return
        if not body.modified_lines and before.effective_path != after.effective_path:
            logger.debug("Path %s was moved or renamed", after.name)
            body.modified_lines = count_lines(body.after)
    elif before.type == PathType.SYMLINK and after.type == PathType.SYMLINK:
        logger.debug("Symlink %s was modified", after.name)
        body.modified_lines = count_lines(body.after)
    elif before.type == PathType.MISSING and after.type != PathType.MISSING:
        logger.debug("Path %s was added", after.name)
        body.modified_lines = count_lines(body.after)
    elif before.type != PathType.MISSING and after.type == PathType.MISSING:
        logger.debug("Path %s was removed", after.name)
        body.modified_lines = count_lines(body.before)
    else:
        logger.debug("Path %s was added and removed", after.name)
        body.modified_lines = []


def changes(
    runner: GitRunner,
    base_branch: str,
    path_filter: Optional[PathFilter] = None,
    repo_root: Optional[FsPath] = None,
    events: Optional[EventSink] = None,
) -> List[FileChange]:
    """Return one FileChange per path touched in ``base_branch..HEAD``."""
    try:
        output = log_range(runner, base_branch)
    except OperationCancelled:
        raise
    except GitError as exc:
        raise GitError(f"failed to get the list of modified files from git: {exc}") from exc

    records = _parse_log(runner, output, path_filter or PathFilter(), repo_root)
    events = events or EventSink()

    for change in records:
        before, after = change.path.before, change.path.after
        first_parent = f"{change.commits[0]}^"
        last_commit = change.commits[-1]

        if before.name and before.type != PathType.MISSING:
            change.body.before = get_content_at(runner, first_parent, before.effective_path)

        _resolve_after(runner, change, last_commit)
        _compute_modified_lines(runner, change)

        if before.name == before.symlink_target:
            before.symlink_target = ""
        if after.name == after.symlink_target:
            after.symlink_target = ""

        logger.debug(
            "File change %s -> %s commits=%s lines=%s",
            before.name, after.name, change.commits, change.body.modified_lines,
        )
        events.emit("change_recorded", path=after.name, lines=len(change.body.modified_lines))

    return records


# ── range-level helpers ──────────────────────────────────────────────────────


def commits_in(records: Iterable[FileChange]) -> List[str]:
    """Distinct commits across *records*, first-seen order."""
    seen: Dict[str, None] = {}
    for change in records:
        for commit in change.commits:
            seen.setdefault(commit, None)
    return list(seen)


def check_max_commits(records: Iterable[FileChange], max_commits: int) -> None:
    total = len(commits_in(records))
    if max_commits > 0 and total > max_commits:
        raise MaxCommitsExceeded(
            f"number of commits to check ({total}) is higher than max_commits ({max_commits})"
        )


def should_skip(runner: GitRunner, records: Iterable[FileChange]) -> bool:
    """True if any commit in the range asks CI to be skipped."""
    for commit in commits_in(records):
        msg = commit_message(runner, commit)
        for marker in SKIP_MARKERS:
            if marker in msg:
                logger.info("Found a commit with '%s', skipping all checks (%s)", marker, commit)
                return True
    return False


def to_entries(records: Iterable[FileChange]) -> List[Entry]:
    """Linter-facing entries for every path that still exists."""
    entries: List[Entry] = []
    for change in records:
        after = change.path.after
        if after.type == PathType.MISSING:
            continue
        entries.append(
            Entry(
                name=after.name,
                path=after.effective_path,
                body=change.body.after,
                modified_lines=list(change.body.modified_lines),
                path_type=after.type,
            )
        )
    return entries


def find_change(records: Iterable[FileChange], path: str) -> Optional[FileChange]:
    """Look a record up by final name, then by effective path."""
    records = list(records)
    for change in records:
        if change.path.after.name == path:
            return change
    for change in records:
        if path in (change.path.after.effective_path, change.path.before.name):
            return change
    return None
