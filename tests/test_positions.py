"""Tests for the diff position mapper."""

from __future__ import annotations

from difflint.diff.positions import (
    DiffLine,
    DiffPosition,
    correspondence_for,
    from_segments,
    parse_diff_lines,
    translate_position,
)
from difflint.problems.models import Anchor


class TestParseDiffLines:
    def test_full_diff(self, sample_diff_full):
        assert parse_diff_lines(sample_diff_full) == [
            DiffLine(3, 3, False),
            DiffLine(4, 4, False),
            DiffLine(5, 5, True),
            DiffLine(5, 6, True),
            DiffLine(6, 7, False),
            DiffLine(20, 21, False),
            DiffLine(21, 22, True),
            DiffLine(22, 23, False),
        ]

    def test_headers_stripped_gives_same_result(self, sample_diff_full, sample_diff_stripped):
        assert parse_diff_lines(sample_diff_stripped) == parse_diff_lines(sample_diff_full)

    def test_empty(self):
        assert parse_diff_lines("") == []

    def test_malformed_header_keeps_counters(self):
        diff = "@@ -1,2 +1,2 @@\n a\n-b\n+c\n@@ garbage @@\n d\n+e\n"
        assert parse_diff_lines(diff) == [
            DiffLine(1, 1, False),
            DiffLine(2, 2, True),
            DiffLine(3, 3, False),
            DiffLine(3, 4, True),
        ]

    def test_trailing_noise_after_hunk(self):
        diff = "@@ -1 +1 @@\n-a\n+b\ndiff --git a/x b/x\nindex 1..2 100644\n"
        assert parse_diff_lines(diff) == [DiffLine(1, 1, True)]

    def test_no_newline_marker_ignored(self):
        diff = "@@ -1,1 +1,1 @@\n-a\n\\ No newline at end of file\n+b\n"
        assert parse_diff_lines(diff) == [DiffLine(1, 1, True)]


class TestFromSegments:
    def test_removed_segments_skipped(self):
        hunks = [
            {
                "segments": [
                    {"type": "CONTEXT", "lines": [{"source": 1, "destination": 1}]},
                    {"type": "REMOVED", "lines": [{"source": 2, "destination": 2}]},
                    {"type": "ADDED", "lines": [{"source": 3, "destination": 2}]},
                ]
            }
        ]
        assert from_segments(hunks) == [DiffLine(1, 1, False), DiffLine(3, 2, True)]

    def test_sorted_by_new_line(self):
        hunks = [
            {"segments": [{"type": "CONTEXT", "lines": [{"source": 40, "destination": 42}]}]},
            {"segments": [{"type": "CONTEXT", "lines": [{"source": 1, "destination": 1}]}]},
        ]
        assert [dl.new for dl in from_segments(hunks)] == [1, 42]


class TestTranslatePosition:
    def test_modified_line_is_new_only(self, sample_diff_full):
        lines = parse_diff_lines(sample_diff_full)
        pos = translate_position(lines, 5, Anchor.AFTER)
        assert pos == DiffPosition(old_line=None, new_line=5)
        assert pos.side == "new"

    def test_context_line(self, sample_diff_full):
        lines = parse_diff_lines(sample_diff_full)
        pos = translate_position(lines, 7, Anchor.AFTER)
        assert pos == DiffPosition(old_line=6, new_line=7)
        assert pos.side == "both"

    def test_gap_between_hunks(self, sample_diff_full):
        lines = parse_diff_lines(sample_diff_full)
        assert translate_position(lines, 10, Anchor.AFTER) == DiffPosition(9, 10)

    def test_before_first_hunk(self, sample_diff_full):
        lines = parse_diff_lines(sample_diff_full)
        assert translate_position(lines, 1, Anchor.AFTER) == DiffPosition(1, 1)

    def test_extrapolates_past_end(self, sample_diff_full):
        lines = parse_diff_lines(sample_diff_full)
        assert translate_position(lines, 30, Anchor.AFTER) == DiffPosition(29, 30)

    def test_before_anchor_uses_old_side(self, sample_diff_full):
        lines = parse_diff_lines(sample_diff_full)
        pos = translate_position(lines, 5, Anchor.BEFORE)
        assert pos == DiffPosition(old_line=5, new_line=None)
        assert pos.side == "old"

    def test_empty_diff(self):
        assert translate_position([], 4, Anchor.AFTER) == DiffPosition(4, 4)
        assert correspondence_for([], 4) is None
