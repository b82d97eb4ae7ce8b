"""difflint — lint only what changed, keep review comments in sync."""

__version__ = "0.1.0"
