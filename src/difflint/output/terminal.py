"""Rich terminal reporter — change tables, blame listings, report summaries."""

from __future__ import annotations

from typing import List, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from difflint.comments.models import PendingComment
from difflint.comments.reconciler import ReconcileResult
from difflint.git.models import FileChange, LineBlame, PathType
from difflint.problems.models import Severity

_SEVERITY_STYLE = {
    Severity.FATAL: "bold white on red",
    Severity.BUG: "bold white on dark_orange",
    Severity.WARNING: "bold black on yellow",
    Severity.INFORMATION: "bold black on bright_cyan",
}

_TYPE_LABEL = {
    PathType.MISSING: "-",
    PathType.DIR: "dir",
    PathType.FILE: "file",
    PathType.SYMLINK: "symlink",
}


def _severity_pill(severity: Severity) -> Text:
    return Text(f" {str(severity).upper()} ", style=_SEVERITY_STYLE.get(severity, ""))


def _compact_lines(lines: List[int]) -> str:
    """Render [1, 2, 3, 7] as ``1-3, 7``."""
    if not lines:
        return "-"
    parts: List[str] = []
    start = prev = lines[0]
    for n in lines[1:] + [0]:
        if n == prev + 1:
            prev = n
            continue
        parts.append(str(start) if start == prev else f"{start}-{prev}")
        start = prev = n
    return ", ".join(parts)


def render_changes(records: Sequence[FileChange], console: Console) -> None:
    if not records:
        console.print("[dim]No changes in range.[/dim]")
        return

    table = Table(title="Changes", show_lines=False, title_style="bold", border_style="dim")
    table.add_column("Status", justify="center")
    table.add_column("Before", style="magenta")
    table.add_column("After", style="cyan")
    table.add_column("Type")
    table.add_column("Commits", justify="right")
    table.add_column("Modified lines", style="green")

    for change in records:
        before, after = change.path.before, change.path.after
        before_label = before.name or "-"
        if before.symlink_target:
            before_label += f" → {before.symlink_target}"
        after_label = after.name
        if after.symlink_target:
            after_label += f" → {after.symlink_target}"
        table.add_row(
            change.status.value,
            before_label,
            after_label,
            f"{_TYPE_LABEL[before.type]} → {_TYPE_LABEL[after.type]}",
            str(len(change.commits)),
            _compact_lines(sorted(change.body.modified_lines)),
        )
    console.print(table)


def render_blame(path: str, blames: Sequence[LineBlame], console: Console) -> None:
    table = Table(title=f"Blame: {path}", title_style="bold", border_style="dim")
    table.add_column("Line", justify="right", style="green")
    table.add_column("Commit", style="yellow")
    table.add_column("Orig. line", justify="right", style="dim")
    for lb in blames:
        table.add_row(str(lb.line), lb.commit[:12], str(lb.prev_line))
    console.print(table)


def render_report(
    pending: Sequence[PendingComment],
    results: Sequence[ReconcileResult],
    console: Console,
    *,
    blocked: bool,
) -> None:
    if not pending:
        console.print("[bold green]✅ No problems on modified lines.[/bold green]")
    else:
        table = Table(title="Problems", show_lines=True, title_style="bold", border_style="dim")
        table.add_column("Severity", justify="center", width=13)
        table.add_column("File", style="magenta")
        table.add_column("Line", justify="right", style="green")
        table.add_column("Modified", justify="center")
        table.add_column("Anchor", style="dim")
        for comment in pending:
            table.add_row(
                _severity_pill(comment.severity),
                comment.path,
                str(comment.line),
                "✓" if comment.modified_line else "",
                comment.anchor.value,
            )
        console.print(table)

    for result in results:
        console.print()
        console.print(f"[bold]Destination {result.destination}[/bold]")
        console.print(f"[dim]Created:[/dim]    {len(result.created)}")
        console.print(f"[dim]Kept:[/dim]       {len(result.kept)}")
        console.print(f"[dim]Skipped:[/dim]    {len(result.skipped)}")
        console.print(f"[dim]Deleted:[/dim]    {len(result.deleted)}")
        console.print(f"[dim]Resolved:[/dim]   {len(result.resolved) + len(result.escalated)}")
        for err in result.errors:
            console.print(f"[yellow]⚠[/yellow]  {err}")

    console.print()
    if blocked:
        console.print("[bold red]❌ Problems at or above the fail threshold were reported.[/bold red]")
