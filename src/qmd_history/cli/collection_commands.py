"""Collection commands — qmd-history collections."""

from __future__ import annotations

import sys

import click
from rich import box
from rich.table import Table

from qmd_history.cli.main import console, path_options, resolve_settings
from qmd_history.core.errors import SearchEngineError
from qmd_history.core.models import collection_name, project_from_collection
from qmd_history.reconcile import project_dirs_with_documents


@click.command()
@path_options
def collections(projects_dir: str | None, output_dir: str | None):
    """Show each project directory and qmd collection with its status.

    present — directory has documents and the collection exists
    missing — directory has documents but no collection yet
    stale   — collection exists but its directory has no documents
    """
    from qmd_history import runner

    settings = resolve_settings(projects_dir, output_dir)
    engine = runner.make_engine(settings)

    try:
        existing = engine.list_collections()
    except SearchEngineError as e:
        console.print(f"[red]Cannot list collections:[/red] {e}")
        sys.exit(1)

    dirs = project_dirs_with_documents(settings.output_dir)

    rows: list[tuple[str, str, str, int]] = []
    for project, path in dirs.items():
        name = collection_name(project)
        status = "present" if name in existing else "missing"
        rows.append((name, project, status, sum(1 for _ in path.glob("*.md"))))
    for name in existing:
        project = project_from_collection(name)
        if project not in dirs:
            rows.append((name, project or "", "stale", 0))

    if not rows:
        console.print("[dim]No conversations or collections found.[/dim]")
        return

    styles = {"present": "green", "missing": "yellow", "stale": "red"}
    table = Table(title="Collections", box=box.ROUNDED)
    table.add_column("Collection", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Documents", justify="right")
    for name, _project, status, count in sorted(rows):
        style = styles[status]
        table.add_row(name, f"[{style}]{status}[/{style}]", str(count))
    console.print(table)
