"""Tests for comment rendering."""

from __future__ import annotations

from conftest import make_report
from difflint.comments.models import RunSummary
from difflint.comments.reconciler import make_comments, select_line
from difflint.comments.render import (
    SEPARATOR,
    SUMMARY_HEADER,
    TRUNCATED_MARKER,
    errors_comment,
    overflow_comment,
    problem_icon,
    render_body,
    summary_comment,
    truncate,
)
from difflint.problems.models import Anchor, Severity


class TestRenderBody:
    def test_header_and_text(self):
        body = render_body([make_report(text="bad query")], docs_url="")
        assert body.startswith(":stop_sign: **Bug** reported by difflint **promql/syntax** check.\n\n")
        assert SEPARATOR + "bad query\n\n" in body

    def test_details_block(self):
        body = render_body([make_report(details="more")], docs_url="")
        assert "<details>\n<summary>More information</summary>\nmore\n</details>" in body

    def test_identical_details_merged(self):
        body = render_body(
            [make_report(text="a", details="same"), make_report(text="b", details="same")], docs_url=""
        )
        assert "<details>" not in body
        assert body.count("same") == 1
        assert body.endswith(SEPARATOR + "same\n\n")

    def test_symlink_note(self):
        body = render_body([make_report(path="link.yaml", symlink_target="real.yaml")], docs_url="")
        assert "symlinked file `link.yaml`" in body

    def test_docs_link(self):
        body = render_body([make_report()], docs_url="https://docs.example/{reporter}")
        assert "[click here](https://docs.example/promql/syntax)" in body

    def test_icons(self):
        assert problem_icon(Severity.WARNING) == ":warning:"
        assert problem_icon(Severity.INFORMATION) == ":information_source:"
        assert problem_icon(Severity.FATAL) == ":stop_sign:"


class TestTruncate:
    def test_short_text_untouched(self):
        assert truncate("abc", 10) == "abc"

    def test_unlimited(self):
        assert truncate("x" * 1000, 0) == "x" * 1000

    def test_cut_with_marker(self):
        out = truncate("x" * 1000, 100)
        assert len(out) == 100
        assert out.endswith(TRUNCATED_MARKER)


class TestGeneralComments:
    def test_errors_comment(self):
        text = errors_comment([RuntimeError("one"), RuntimeError("two")])
        assert "- `one`\n- `two`\n" in text

    def test_overflow_comment_states_skipped(self):
        text = overflow_comment(7, 5, 2)
        assert "would create 7 comment(s)" in text
        assert "limit of 5" in text
        assert "2 comment(s) were skipped" in text


class TestMakeComments:
    def test_last_modified_line_selected(self):
        report = make_report(first=3, last=8, modified=[4, 6])
        assert select_line(report) == (6, True)

    def test_unmodified_range_uses_last_line(self):
        report = make_report(first=3, last=8, modified=[])
        assert select_line(report) == (8, False)

    def test_grouped_into_one_comment(self):
        comments = make_comments([make_report(text="a"), make_report(text="b")], docs_url="")
        assert len(comments) == 1
        assert "a\n\n" in comments[0].text and "b\n\n" in comments[0].text

    def test_comment_targets_effective_path(self):
        [comment] = make_comments([make_report(path="link.yaml", symlink_target="real.yaml")], docs_url="")
        assert comment.path == "real.yaml"

    def test_anchor_and_severity_carried(self):
        [comment] = make_comments([make_report(anchor=Anchor.BEFORE, severity=Severity.FATAL)])
        assert comment.anchor == Anchor.BEFORE
        assert comment.severity == Severity.FATAL

    def test_max_length(self):
        [comment] = make_comments([make_report(text="x" * 500)], docs_url="", max_length=100)
        assert len(comment.text) == 100


class TestSummaryComment:
    def test_no_problems(self):
        body = summary_comment(RunSummary())
        assert body.startswith(SUMMARY_HEADER)
        assert "No problems found" in body
        assert body.endswith("**Result:** passed\n")

    def test_counts_most_severe_first(self):
        body = summary_comment(RunSummary(counts={Severity.WARNING: 2, Severity.FATAL: 1}, passed=False))
        assert body.index("| Fatal | 1 |") < body.index("| Warning | 2 |")
        assert "**Result:** failed" in body
