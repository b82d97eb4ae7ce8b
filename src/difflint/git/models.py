"""Data models for change attribution."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List


class PathType(IntEnum):
    MISSING = 0
    DIR = 1
    FILE = 2
    SYMLINK = 3


class FileStatus(str, Enum):
    ADDED = "A"
    COPIED = "C"
    DELETED = "D"
    RENAMED = "R"
    MODIFIED = "M"
    TYPE_CHANGED = "T"


@dataclass
class Path:
    """A path at one point in history."""

    name: str = ""
    type: PathType = PathType.MISSING
    symlink_target: str = ""

    @property
    def effective_path(self) -> str:
        """Content-bearing path — the symlink target when it differs from name."""
        if self.symlink_target and self.symlink_target != self.name:
            return self.symlink_target
        return self.name


@dataclass
class PathDiff:
    before: Path = field(default_factory=Path)
    after: Path = field(default_factory=Path)


@dataclass
class BodyDiff:
    """File bodies on both sides plus the lines a reviewer touched.

    ``modified_lines`` is numbered against ``after`` except for pure
    deletions, where it is numbered against ``before``.
    """

    before: bytes = b""
    after: bytes = b""
    modified_lines: List[int] = field(default_factory=list)

    def before_modified_lines(self) -> List[int]:
        """Lines of ``before`` that were removed or replaced."""
        if not self.after and self.before:
            return list(self.modified_lines)
        old = self.before.splitlines()
        new = self.after.splitlines()
        lines: List[int] = []
        matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
        for tag, i1, i2, _j1, _j2 in matcher.get_opcodes():
            if tag in ("replace", "delete"):
                lines.extend(range(i1 + 1, i2 + 1))
        return lines


@dataclass
class FileChange:
    """One record per distinct final path touched in a commit range."""

    commits: List[str] = field(default_factory=list)
    path: PathDiff = field(default_factory=PathDiff)
    body: BodyDiff = field(default_factory=BodyDiff)
    status: FileStatus = FileStatus.MODIFIED


@dataclass(frozen=True, slots=True)
class LineBlame:
    """Attribution of a single line to the commit that last touched it."""

    line: int
    commit: str
    prev_line: int = 0
    filename: str = ""


LineBlames = List[LineBlame]
FileBlames = Dict[str, LineBlames]


@dataclass(frozen=True)
class Entry:
    """Linter-facing view of a FileChange."""

    name: str
    path: str  # effective path
    body: bytes
    modified_lines: List[int]
    path_type: PathType = PathType.FILE
