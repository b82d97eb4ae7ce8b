"""Git layer — adapter, blame index, change tracker, path filter, models."""

from difflint.git.adapter import (
    GitError,
    GitRunner,
    OperationCancelled,
    get_repo_root,
    make_runner,
)
from difflint.git.blame import BlameError, blame, parse_blame, was_line_touched
from difflint.git.changes import (
    MaxCommitsExceeded,
    SymlinkCycleError,
    changes,
    check_max_commits,
    should_skip,
    to_entries,
)
from difflint.git.filter import PathFilter
from difflint.git.models import (
    BodyDiff,
    Entry,
    FileChange,
    FileStatus,
    LineBlame,
    Path,
    PathDiff,
    PathType,
)

__all__ = [
    "BlameError",
    "BodyDiff",
    "Entry",
    "FileChange",
    "FileStatus",
    "GitError",
    "GitRunner",
    "LineBlame",
    "MaxCommitsExceeded",
    "OperationCancelled",
    "Path",
    "PathDiff",
    "PathFilter",
    "PathType",
    "SymlinkCycleError",
    "blame",
    "changes",
    "check_max_commits",
    "get_repo_root",
    "make_runner",
    "parse_blame",
    "should_skip",
    "to_entries",
    "was_line_touched",
]
