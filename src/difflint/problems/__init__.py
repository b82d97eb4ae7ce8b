"""Problem models, problems-file loading and grouping."""

from difflint.problems.aggregator import group_reports, identical_details
from difflint.problems.loader import (
    ProblemEntry,
    ProblemsFileError,
    bind_reports,
    load_problems,
)
from difflint.problems.models import Anchor, LineRange, Problem, Report, Severity

__all__ = [
    "Anchor",
    "LineRange",
    "Problem",
    "ProblemEntry",
    "ProblemsFileError",
    "Report",
    "Severity",
    "bind_reports",
    "group_reports",
    "identical_details",
    "load_problems",
]
