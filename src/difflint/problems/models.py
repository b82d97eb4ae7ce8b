"""Problem models — what the linter hands over for reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List

from difflint.git.models import Path


class Severity(IntEnum):
    INFORMATION = 0
    WARNING = 1
    BUG = 2
    FATAL = 3

    def __str__(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Case-insensitive lookup by name. Raises ValueError on unknown names."""
        try:
            return cls[value.strip().upper()]
        except KeyError:
            valid = ", ".join(s.name.lower() for s in cls)
            raise ValueError(f"unknown severity {value!r} (expected one of: {valid})") from None

    @property
    def is_blocking(self) -> bool:
        return self >= Severity.BUG


class Anchor(str, Enum):
    """Which version of the file a problem talks about."""

    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class LineRange:
    first: int
    last: int

    def __post_init__(self) -> None:
        if self.first < 1 or self.last < self.first:
            raise ValueError(f"invalid line range {self.first}-{self.last}")

    def __iter__(self):
        return iter(range(self.first, self.last + 1))


@dataclass(frozen=True)
class Problem:
    severity: Severity
    reporter: str
    text: str
    lines: LineRange
    details: str = ""
    anchor: Anchor = Anchor.AFTER


@dataclass
class Report:
    """A problem bound to the file it was found in.

    ``modified_lines`` is the file's touched-line set on the side the
    problem is anchored to.
    """

    path: Path
    problem: Problem
    modified_lines: List[int] = field(default_factory=list)

    @property
    def is_symlink_alias(self) -> bool:
        return bool(self.path.symlink_target) and self.path.symlink_target != self.path.name
