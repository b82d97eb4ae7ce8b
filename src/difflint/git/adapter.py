"""Git subprocess wrapper — log, cat-file, ls-tree, blame primitives."""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

GitRunner = Callable[..., bytes]


class GitError(Exception):
    """Raised when git is unavailable or returns an unexpected error."""


class OperationCancelled(GitError):
    """Raised when the enclosing run was cancelled before git finished."""


def run_git(
    args: List[str],
    cwd: Optional[Path] = None,
    timeout: int = 30,
    cancel: Optional[threading.Event] = None,
) -> bytes:
    """Run a git command and return raw stdout. Raises GitError on failure."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(f"cancelled before git {' '.join(args)}")

    logger.debug("Running git command: git %s", " ".join(args))
    try:
        proc = subprocess.Popen(
            ["git", *args],
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError:
        raise GitError("git is not installed or not on PATH")

    stdout, stderr = _communicate(proc, args, timeout, cancel)
    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise GitError(f"git {' '.join(args)}: {message or f'exit code {proc.returncode}'}")
    return stdout


def _communicate(
    proc: subprocess.Popen,
    args: List[str],
    timeout: int,
    cancel: Optional[threading.Event],
) -> Tuple[bytes, bytes]:
    # Poll in short slices so a cancel request is honoured mid-command.
    step = 0.25 if cancel is not None else timeout
    waited = 0.0
    while True:
        try:
            return proc.communicate(timeout=min(step, timeout - waited))
        except subprocess.TimeoutExpired:
            waited += step
            if cancel is not None and cancel.is_set():
                proc.kill()
                proc.communicate()
                raise OperationCancelled(f"cancelled during git {' '.join(args)}")
            if waited >= timeout:
                proc.kill()
                proc.communicate()
                raise GitError(
                    f"git command timed out after {timeout}s: git {' '.join(args)}"
                )


def make_runner(
    repo_root: Optional[Path] = None,
    timeout: int = 30,
    cancel: Optional[threading.Event] = None,
) -> GitRunner:
    """Bind cwd / timeout / cancel so callers only pass git arguments."""

    def runner(*args: str) -> bytes:
        return run_git(list(args), cwd=repo_root, timeout=timeout, cancel=cancel)

    return runner


def get_repo_root(cwd: Optional[Path] = None) -> Path:
    """Return the root of the current git repository."""
    out = run_git(["rev-parse", "--show-toplevel"], cwd=cwd or Path.cwd())
    return Path(out.decode().strip())


# ── primitives ────────────────────────────────────────────────────────────────


def log_range(runner: GitRunner, base: str, head: str = "HEAD") -> bytes:
    """Chronological ``commit / name-status`` listing for *base*..*head*."""
    return runner(
        "log",
        "--reverse",
        "--no-merges",
        "--first-parent",
        "-M",
        "--format=%H",
        "--name-status",
        f"{base}..{head}",
    )


def cat_file(runner: GitRunner, revision: str, path: str) -> bytes:
    """Raw content of *path* at *revision*."""
    return runner("cat-file", "blob", f"{revision}:{path}")


def ls_tree(runner: GitRunner, revision: str, path: str) -> List[Tuple[str, str, str]]:
    """Return ``(mode, type, path)`` entries for *path* at *revision*."""
    out = runner("ls-tree", revision, "--", path)
    entries: List[Tuple[str, str, str]] = []
    for line in out.decode("utf-8", errors="replace").splitlines():
        meta, sep, objpath = line.partition("\t")
        parts = meta.split(" ")
        if not sep or len(parts) != 3:
            continue
        entries.append((parts[0], parts[1], objpath))
    return entries


def blame_porcelain(runner: GitRunner, path: str, revision: Optional[str] = None) -> bytes:
    """``git blame --line-porcelain`` for *path* (working copy if no revision)."""
    args = ["blame", "--line-porcelain"]
    if revision:
        args.append(revision)
    return runner(*args, "--", path)


def head_commit(runner: GitRunner) -> str:
    return runner("rev-parse", "--verify", "HEAD").decode().strip()


def current_branch(runner: GitRunner) -> str:
    return runner("rev-parse", "--abbrev-ref", "HEAD").decode().strip()


def commit_message(runner: GitRunner, sha: str) -> str:
    return runner("show", "-s", "--format=%B", sha).decode("utf-8", errors="replace")
