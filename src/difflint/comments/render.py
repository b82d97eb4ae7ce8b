"""Markdown rendering for review comments."""

from __future__ import annotations

from typing import List, Sequence

from difflint.comments.models import RunSummary
from difflint.problems.aggregator import identical_details
from difflint.problems.models import Report, Severity

DEFAULT_DOCS_URL = "https://github.com/difflint/difflint/blob/main/docs/checks/{reporter}.md"
TRUNCATED_MARKER = "\n\n… (comment truncated)"
SEPARATOR = "------\n\n"


def problem_icon(severity: Severity) -> str:
    if severity == Severity.WARNING:
        return ":warning:"
    if severity == Severity.INFORMATION:
        return ":information_source:"
    return ":stop_sign:"


def render_body(group: Sequence[Report], docs_url: str = DEFAULT_DOCS_URL) -> str:
    """Render one comment body for a group of merged reports."""
    first = group[0].problem
    merge_details = identical_details(list(group))
    parts: List[str] = [
        f"{problem_icon(first.severity)} **{first.severity}** reported by difflint "
        f"**{first.reporter}** check.\n\n"
    ]

    for report in group:
        problem = report.problem
        parts.append(SEPARATOR)
        parts.append(f"{problem.text}\n\n")
        if problem.details and not merge_details:
            parts.append(
                "<details>\n<summary>More information</summary>\n"
                f"{problem.details}\n</details>\n\n"
            )
        if report.is_symlink_alias:
            parts.append(
                ":leftwards_arrow_with_hook: This problem was detected on a symlinked file "
                f"`{report.path.name}`.\n\n"
            )

    if merge_details and first.details:
        parts.append(SEPARATOR)
        parts.append(f"{first.details}\n\n")

    if docs_url:
        link = docs_url.format(reporter=first.reporter)
        parts.append(SEPARATOR)
        parts.append(
            ":information_source: To see documentation covering this check and "
            f"instructions on how to resolve it [click here]({link}).\n"
        )
    return "".join(parts)


def truncate(text: str, limit: int) -> str:
    """Cut *text* down to *limit* characters, ending with TRUNCATED_MARKER."""
    if limit <= 0 or len(text) <= limit:
        return text
    keep = max(limit - len(TRUNCATED_MARKER), 0)
    return text[:keep] + TRUNCATED_MARKER[: limit - keep]


def errors_comment(errors: Sequence[BaseException]) -> str:
    lines = [
        "There were some errors when difflint was trying to create a report.\n",
        "Some review comments might be outdated or missing.\n",
        "List of all errors:\n\n",
    ]
    lines.extend(f"- `{err}`\n" for err in errors)
    return "".join(lines)


def overflow_comment(total: int, limit: int, skipped: int) -> str:
    """General comment posted when the creation cap kept comments back."""
    return (
        f"This difflint run would create {total} comment(s), which is more than the limit of {limit}.\n"
        f"{skipped} comment(s) were skipped and won't be visible on this review."
    )


SUMMARY_HEADER = "### difflint report\n\n"


def summary_comment(summary: RunSummary) -> str:
    """PR-level summary body. Always starts with SUMMARY_HEADER so it can be found again."""
    parts: List[str] = [SUMMARY_HEADER]
    if summary.total:
        parts.append(":heavy_exclamation_mark: Problems found.\n\n")
        parts.append("| Severity | Number of problems |\n| --- | --- |\n")
        for severity in sorted(summary.counts, reverse=True):
            if summary.counts[severity]:
                parts.append(f"| {severity} | {summary.counts[severity]} |\n")
        parts.append("\n")
    else:
        parts.append(":heavy_check_mark: No problems found.\n\n")
    parts.append(f"**Result:** {'passed' if summary.passed else 'failed'}\n")
    return "".join(parts)
