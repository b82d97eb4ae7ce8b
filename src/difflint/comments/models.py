"""Comment models shared by the reconciler and platform bindings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

from difflint.problems.models import Anchor, Report, Severity


@dataclass(frozen=True)
class PendingComment:
    """A comment this run wants to exist on the review."""

    path: str
    line: int
    text: str
    severity: Severity
    anchor: Anchor = Anchor.AFTER
    modified_line: bool = True


@dataclass(frozen=True)
class ExistingComment:
    """A comment read back from the platform.

    ``meta`` belongs to the binding and is passed back unchanged on
    delete / resolve / severity calls.
    """

    path: str
    line: int
    text: str
    meta: Any = None
    replies: int = 0
    blocking: bool = False
    resolved: bool = False
    pinned: bool = False  # anchored to a historical commit
    side: str = ""


@dataclass(frozen=True)
class RunSummary:
    """Problem counts for one run and whether it passes the threshold."""

    counts: Dict[Severity, int] = field(default_factory=dict)
    passed: bool = True

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @classmethod
    def from_reports(cls, reports: Iterable[Report], fail_on: Severity = Severity.BUG) -> "RunSummary":
        counts: Dict[Severity, int] = {}
        passed = True
        for report in reports:
            severity = report.problem.severity
            counts[severity] = counts.get(severity, 0) + 1
            if severity >= fail_on:
                passed = False
        return cls(counts=counts, passed=passed)
