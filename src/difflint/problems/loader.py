"""Load linter problems from a YAML / JSON file and bind them to changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path as FsPath
from typing import Any, Dict, Iterable, List

import yaml

from difflint.git.changes import find_change
from difflint.git.models import FileChange, Path, PathType
from difflint.problems.models import Anchor, LineRange, Problem, Report, Severity

logger = logging.getLogger(__name__)


class ProblemsFileError(Exception):
    """Raised when a problems file is unreadable or malformed."""


@dataclass(frozen=True)
class ProblemEntry:
    """A problem as written by the linter, not yet bound to a change."""

    path: str
    problem: Problem
    target: str = ""


def _parse_lines(item: Dict[str, Any]) -> LineRange:
    raw = item.get("lines", item.get("line"))
    if raw is None:
        raise ValueError("missing 'lines'")
    if isinstance(raw, int):
        return LineRange(raw, raw)
    if isinstance(raw, list) and len(raw) in (1, 2) and all(isinstance(n, int) for n in raw):
        return LineRange(raw[0], raw[-1])
    raise ValueError(f"'lines' must be an int or a [first, last] pair, got {raw!r}")


def parse_problem(item: Dict[str, Any]) -> ProblemEntry:
    """Build a ProblemEntry from one mapping. Raises ValueError on bad input."""
    if not isinstance(item, dict):
        raise ValueError(f"expected a mapping, got {type(item).__name__}")
    for key in ("path", "reporter", "text"):
        if not item.get(key):
            raise ValueError(f"missing '{key}'")

    problem = Problem(
        severity=Severity.parse(str(item.get("severity", "warning"))),
        reporter=str(item["reporter"]),
        text=str(item["text"]),
        details=str(item.get("details") or ""),
        lines=_parse_lines(item),
        anchor=Anchor(str(item.get("anchor", "after")).lower()),
    )
    return ProblemEntry(path=str(item["path"]), problem=problem, target=str(item.get("target") or ""))


def load_problems(path: FsPath) -> List[ProblemEntry]:
    """Read a problems file.

    The file is either a list of problems or a mapping with a ``problems``
    list. JSON is accepted as well since it is valid YAML.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ProblemsFileError(f"Cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ProblemsFileError(f"Failed to parse {path}: {exc}") from exc

    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("problems", [])
    if not isinstance(data, list):
        raise ProblemsFileError(f"{path}: expected a list of problems")

    entries: List[ProblemEntry] = []
    for idx, item in enumerate(data):
        try:
            entries.append(parse_problem(item))
        except ValueError as exc:
            raise ProblemsFileError(f"{path}: problem #{idx + 1}: {exc}") from exc
    logger.debug("Loaded %d problem(s) from %s", len(entries), path)
    return entries


def bind_reports(
    entries: Iterable[ProblemEntry],
    changes: List[FileChange],
    include_unmodified: bool = False,
) -> List[Report]:
    """Attach each problem to its file change and modified-line set.

    Problems whose line range does not touch a modified line on the
    anchored side are dropped unless *include_unmodified* is set.
    """
    reports: List[Report] = []
    for entry in entries:
        change = find_change(changes, entry.path)
        problem = entry.problem

        if change is None:
            path = Path(name=entry.path, type=PathType.FILE, symlink_target=entry.target)
            modified: List[int] = []
        else:
            side = change.path.before if problem.anchor == Anchor.BEFORE else change.path.after
            path = Path(
                name=entry.path,
                type=side.type,
                symlink_target=entry.target or side.symlink_target,
            )
            if problem.anchor == Anchor.BEFORE:
                modified = change.body.before_modified_lines()
            else:
                modified = list(change.body.modified_lines)

        touched = any(line in modified for line in problem.lines)
        if not touched and not include_unmodified:
            logger.debug(
                "Dropping problem on unmodified lines %s:%d-%d",
                entry.path, problem.lines.first, problem.lines.last,
            )
            continue
        reports.append(Report(path=path, problem=problem, modified_lines=modified))
    return reports
