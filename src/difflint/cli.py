"""difflint CLI — Typer application with changes, blame, report, and init commands."""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from difflint import __version__

app = typer.Typer(
    name="difflint",
    help="Report lint problems only on changed lines and keep review comments in sync.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


def _resolve_repo_root() -> Path:
    """Find the git repo root, exit 2 on failure."""
    from difflint.git.adapter import GitError, get_repo_root

    try:
        return get_repo_root()
    except GitError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


def _load(repo_root: Path, config: Optional[str], verbose: bool, debug: bool):
    from difflint.config.loader import ConfigError, load_config
    from difflint.logs import setup_logging

    setup_logging(verbose=verbose, debug=debug, console=console)
    try:
        return load_config(repo_root, config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


def _check_format(fmt: Optional[str]) -> None:
    if fmt is not None and fmt not in ("terminal", "json"):
        console.print(f"[bold red]Invalid format:[/bold red] {fmt}")
        raise typer.Exit(code=2)


def _cancel_on_sigterm() -> threading.Event:
    cancel = threading.Event()
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, lambda *_: cancel.set())
    return cancel


def _track_changes(repo_root: Path, cfg, base: str, cancel: Optional[threading.Event] = None):
    """Run the change tracker for ``base..HEAD``, exit 2 on git errors."""
    from difflint.events import LoggingEventSink
    from difflint.git.adapter import GitError, make_runner
    from difflint.git.changes import changes, check_max_commits
    from difflint.git.filter import PathFilter

    runner = make_runner(repo_root, timeout=cfg.git.timeout, cancel=cancel)
    path_filter = PathFilter(cfg.git.include, cfg.git.exclude)
    try:
        records = changes(runner, base, path_filter, repo_root, LoggingEventSink())
        check_max_commits(records, cfg.git.max_commits)
    except GitError as exc:
        console.print(f"[bold red]Git error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    return runner, records


# ── changes ───────────────────────────────────────────────────────────────────


@app.command()
def changes(
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Base branch or commit"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
    entries: bool = typer.Option(False, "--entries", help="Show linter entries instead of change records"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .difflint.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """List every path changed between the base branch and HEAD."""
    from difflint.git.changes import to_entries
    from difflint.output import json_report, terminal

    _check_format(format)
    repo_root = _resolve_repo_root()
    cfg = _load(repo_root, config, verbose, debug)
    _, records = _track_changes(repo_root, cfg, base or cfg.git.base_branch)

    if (format or cfg.output.format) == "json":
        if entries:
            print(json_report.render_entries(to_entries(records)))
        else:
            print(json_report.render_changes(records))
        raise typer.Exit(code=0)

    if entries:
        for entry in to_entries(records):
            console.print(f"[cyan]{entry.path}[/cyan]  lines={entry.modified_lines}")
    else:
        terminal.render_changes(records, console)


# ── blame ─────────────────────────────────────────────────────────────────────


@app.command()
def blame(
    path: str = typer.Argument(..., help="File to blame, relative to the repo root"),
    commit: Optional[str] = typer.Option(None, "--commit", help="Revision to blame at (working copy if unset)"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .difflint.toml"),
) -> None:
    """Show which commit last touched every line of a file."""
    from difflint.git.adapter import make_runner
    from difflint.git.blame import BlameError, blame as run_blame
    from difflint.output import json_report, terminal

    _check_format(format)
    repo_root = _resolve_repo_root()
    cfg = _load(repo_root, config, False, False)
    runner = make_runner(repo_root, timeout=cfg.git.timeout)
    try:
        blames = run_blame(runner, path, commit)
    except BlameError as exc:
        console.print(f"[bold red]Blame error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if (format or cfg.output.format) == "json":
        print(json_report.render_blame(path, blames))
    else:
        terminal.render_blame(path, blames, console)


# ── report ────────────────────────────────────────────────────────────────────


@app.command()
def report(
    problems_file: Path = typer.Argument(..., help="YAML / JSON file with the linter's problems"),
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Base branch or commit"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="none | github | gitlab | bitbucket"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json"),
    fail_on: Optional[str] = typer.Option(None, "--fail-on", help="information | warning | bug | fatal"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Render comments without touching the platform"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .difflint.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """Attribute problems to changed lines and sync review comments."""
    from difflint.comments.models import RunSummary
    from difflint.comments.reconciler import make_comments, reconcile, submit_errors
    from difflint.config.loader import ConfigError
    from difflint.config.schema import PLATFORMS
    from difflint.events import LoggingEventSink
    from difflint.git.adapter import GitError
    from difflint.git.changes import should_skip
    from difflint.output import json_report, terminal
    from difflint.platforms import build_commenter
    from difflint.problems.loader import ProblemsFileError, bind_reports, load_problems
    from difflint.problems.models import Severity

    _check_format(format)
    repo_root = _resolve_repo_root()
    cfg = _load(repo_root, config, verbose, debug)

    # --- CLI overrides ---
    if platform:
        if platform not in PLATFORMS:
            console.print(f"[bold red]Invalid platform:[/bold red] {platform}")
            raise typer.Exit(code=2)
        cfg.reporter.platform = platform  # type: ignore[assignment]
    try:
        threshold = Severity.parse(fail_on or cfg.report.fail_on)
    except ValueError as exc:
        console.print(f"[bold red]Invalid fail-on level:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    cancel = _cancel_on_sigterm()
    runner, records = _track_changes(repo_root, cfg, base or cfg.git.base_branch, cancel)

    try:
        skip = should_skip(runner, records)
    except GitError as exc:
        console.print(f"[bold red]Git error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    if skip:
        console.print("[dim]Found a commit asking to skip CI, nothing to report.[/dim]")
        raise typer.Exit(code=0)

    try:
        entries = load_problems(problems_file)
    except ProblemsFileError as exc:
        console.print(f"[bold red]Problems file error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    reports = bind_reports(entries, records, cfg.report.include_unmodified)

    commenter = None
    if not dry_run and cfg.reporter.platform != "none":
        try:
            commenter = build_commenter(cfg, runner)
        except ConfigError as exc:
            console.print(f"[bold red]Config error:[/bold red] {exc}")
            raise typer.Exit(code=2) from exc

    max_length = commenter.max_comment_length if commenter is not None else 0
    pending = make_comments(reports, cfg.reporter.docs_url, max_length)

    results = []
    if commenter is not None:
        summary = RunSummary.from_reports(reports, threshold) if cfg.reporter.publish_summary else None
        results = reconcile(
            commenter,
            reports,
            docs_url=cfg.reporter.docs_url,
            events=LoggingEventSink(),
            cancel=cancel,
            summary=summary,
        )
        errors = [err for r in results for err in r.errors]
        if errors:
            console.print(f"[yellow]⚠[/yellow]  {len(errors)} error(s) while updating review comments")
            if cfg.reporter.summary_on_errors:
                submit_errors(commenter, results)

    blocked = any(r.problem.severity >= threshold for r in reports)

    if (format or cfg.output.format) == "json":
        print(json_report.render_report(pending, results, blocked=blocked))
    else:
        terminal.render_report(pending, results, console, blocked=blocked)

    raise typer.Exit(code=1 if blocked else 0)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init() -> None:
    """Generate a starter .difflint.toml in the repo root."""
    from difflint.config.defaults import DEFAULT_TOML
    from difflint.config.loader import CONFIG_FILENAME

    repo_root = _resolve_repo_root()
    config_path = repo_root / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"difflint {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """difflint — lint only what changed, keep review comments in sync."""
