"""Group problems that share a comment position."""

from __future__ import annotations

from typing import Dict, List, Tuple

from difflint.problems.models import Anchor, Report, Severity

GroupKey = Tuple[Severity, str, str, int, int, Anchor]


def group_key(report: Report) -> GroupKey:
    p = report.problem
    return (p.severity, p.reporter, report.path.effective_path, p.lines.first, p.lines.last, p.anchor)


def group_reports(reports: List[Report]) -> List[List[Report]]:
    """Merge reports into comment groups.

    Reports with the same severity, reporter, effective path, line range
    and anchor share a group. Within a group a report whose text and
    details both repeat an earlier one is dropped. Group order follows
    first appearance.
    """
    groups: Dict[GroupKey, List[Report]] = {}
    for report in reports:
        group = groups.setdefault(group_key(report), [])
        if any(
            r.problem.text == report.problem.text and r.problem.details == report.problem.details
            for r in group
        ):
            continue
        group.append(report)
    return list(groups.values())


def identical_details(group: List[Report]) -> bool:
    """True when a group of two or more reports all carry the same details."""
    if len(group) <= 1:
        return False
    first = group[0].problem.details
    return all(r.problem.details == first for r in group[1:])
