"""Unified diff position mapping."""

from difflint.diff.positions import (
    DiffCorrespondence,
    DiffLine,
    DiffPosition,
    correspondence_for,
    from_segments,
    parse_diff_lines,
    translate_position,
)

__all__ = [
    "DiffCorrespondence",
    "DiffLine",
    "DiffPosition",
    "correspondence_for",
    "from_segments",
    "parse_diff_lines",
    "translate_position",
]
