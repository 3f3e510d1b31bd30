"""Sync commands — qmd-history sync, qmd-history convert."""

from __future__ import annotations

import sys

import click
from rich import box
from rich.panel import Panel
from rich.table import Table

from qmd_history.cli.main import (
    console,
    path_options,
    resolve_settings,
    setup_logging,
    to_verbosity,
    verbosity_options,
)
from qmd_history.core.errors import OutputDirectoryError, PipelineLockedError, StateDirectoryError
from qmd_history.core.logging import Verbosity
from qmd_history.core.models import project_from_collection


def _conversion_table(result, title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Project", style="bold", no_wrap=True)
    table.add_column("Sessions", justify="right", style="green")
    table.add_column("Errors", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Collection", style="magenta")

    statuses = _collection_statuses(result)

    totals: dict[str, list[int]] = {}
    for conversion in result.conversions:
        row = totals.setdefault(conversion.project, [0, 0, 0])
        row[0] += conversion.converted
        row[1] += len(conversion.degraded)
        row[2] += len(conversion.failed)

    for project, (converted, degraded, failed) in sorted(totals.items()):
        table.add_row(project, str(converted), str(degraded), str(failed), statuses.get(project, ""))
    return table


def _collection_statuses(result) -> dict[str, str]:
    """Project name → collection outcome label."""
    rec = result.reconcile
    if rec is None:
        return {}
    if rec.skipped:
        return {project: "[dim]skipped[/dim]" for project in _projects_from(rec.skipped)}
    statuses: dict[str, str] = {}
    for action in rec.actions:
        if action.project is None:
            continue
        if result.dry_run:
            statuses[action.project] = f"{action.kind} (planned)"
        elif action.collection in rec.failed:
            statuses[action.project] = "[red]failed[/red]"
        elif action.collection in rec.recreated:
            statuses[action.project] = "recreated"
        elif action.collection in rec.created:
            statuses[action.project] = "created"
    return statuses


def _projects_from(collections: list[str]) -> list[str]:
    return [project_from_collection(name) or name for name in collections]


def _print_dry_run(result) -> None:
    console.print()
    console.print("[bold]Would write:[/bold]")
    for path in result.planned:
        console.print(f"  [dim]{path.parent.name}/{path.name}[/dim]")
    if not result.planned:
        console.print("  [dim](nothing)[/dim]")
    if result.reconcile is not None:
        console.print("[bold]Would apply:[/bold]")
        for action in result.reconcile.actions:
            console.print(f"  {action.kind:<9} {action.collection}")
        if not result.reconcile.actions:
            console.print("  [dim](nothing)[/dim]")


@click.command()
@path_options
@click.option("--dry-run", is_flag=True, default=False, help="Resolve and name everything; write and change nothing")
@click.option("--prune-stale", is_flag=True, default=False, help="Remove collections whose project has no documents")
@click.option("--no-embed", is_flag=True, default=False, help="Skip embedding generation")
@click.option("--project", "-p", "projects", multiple=True, help="Only sync this project (repeatable)")
@verbosity_options
def sync(
    projects_dir: str | None,
    output_dir: str | None,
    dry_run: bool,
    prune_stale: bool,
    no_embed: bool,
    projects: tuple[str, ...],
    verbose: int,
    quiet: bool,
):
    """Convert session logs and bring qmd collections up to date.

    Safe to run repeatedly: unchanged sessions produce identical files and
    every project's collection is rebuilt from its directory.
    """
    from qmd_history import runner

    setup_logging(verbose, quiet)
    settings = resolve_settings(projects_dir, output_dir)
    verbosity = to_verbosity(verbose, quiet)

    if verbosity >= Verbosity.DEFAULT:
        console.print(
            Panel(
                f"[bold]Logs:[/bold] {settings.projects_dir}\n"
                f"[bold]Output:[/bold] {settings.output_dir}\n"
                f"[bold]Mode:[/bold] {'dry run' if dry_run else 'sync'}",
                title="[bold cyan]qmd-history[/bold cyan]",
                border_style="cyan",
            )
        )

    try:
        result = runner.sync(
            settings,
            dry_run=dry_run,
            prune_stale=prune_stale,
            embed=not no_embed,
            projects=list(projects) or None,
            verbosity=verbosity,
            console=console,
        )
    except PipelineLockedError as e:
        console.print(f"[yellow]{e}[/yellow]")
        sys.exit(1)
    except (OutputDirectoryError, StateDirectoryError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if verbosity < Verbosity.DEFAULT:
        return

    console.print()
    console.print(_conversion_table(result, "Sync Summary"))
    if dry_run:
        _print_dry_run(result)

    rec = result.reconcile
    console.print(
        f"\n[bold]Projects:[/bold] {len(result.projects)} processed, "
        f"{len(result.skipped_groups)} skipped, {len(result.excluded_groups)} excluded"
    )
    console.print(
        f"[bold]Sessions:[/bold] {result.sessions_converted} converted, "
        f"{result.sessions_degraded} with errors, {result.sessions_failed} failed"
    )
    if rec is not None and not dry_run:
        console.print(
            f"[bold]Collections:[/bold] {len(rec.created)} created, {len(rec.recreated)} recreated, "
            f"{len(rec.failed)} failed, {len(rec.pruned)} pruned"
        )
    if rec is not None and rec.stale and not prune_stale:
        console.print(f"[dim]Stale collections (use --prune-stale): {', '.join(rec.stale)}[/dim]")
    if not dry_run:
        console.print(f"[bold]Embeddings:[/bold] {result.embeddings}")


@click.command()
@path_options
@click.option("--dry-run", is_flag=True, default=False, help="Report intended filenames without writing")
@click.option("--project", "-p", "projects", multiple=True, help="Only convert this project (repeatable)")
@verbosity_options
def convert(
    projects_dir: str | None,
    output_dir: str | None,
    dry_run: bool,
    projects: tuple[str, ...],
    verbose: int,
    quiet: bool,
):
    """Convert session logs to markdown transcripts only."""
    from qmd_history import runner

    setup_logging(verbose, quiet)
    settings = resolve_settings(projects_dir, output_dir)
    verbosity = to_verbosity(verbose, quiet)

    try:
        result = runner.convert(
            settings,
            dry_run=dry_run,
            projects=list(projects) or None,
            verbosity=verbosity,
            console=console,
        )
    except OutputDirectoryError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if verbosity < Verbosity.DEFAULT:
        return

    console.print(_conversion_table(result, "Conversion Summary"))
    if dry_run:
        _print_dry_run(result)
    console.print(
        f"\n[bold]Total:[/bold] {result.sessions_converted} converted, "
        f"{result.sessions_failed} failed across {len(result.projects)} projects"
    )
