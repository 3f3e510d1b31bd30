"""Search commands — qmd-history search, qmd-history get."""

from __future__ import annotations

import sys

import click

from qmd_history.cli.main import console, resolve_settings
from qmd_history.core.errors import SearchEngineError
from qmd_history.core.models import collection_name


@click.command()
@click.argument("query")
@click.option("--project", "-p", default=None, help="Restrict to one project's collection")
@click.option("--limit", "-n", default=10, show_default=True, help="Max results to return")
def search(query: str, project: str | None, limit: int):
    """Search converted conversations.

    QUERY is passed through to qmd.
    """
    from qmd_history import runner

    engine = runner.make_engine(resolve_settings())
    collection = collection_name(project) if project else None
    try:
        output = engine.search(query, collection=collection, limit=limit)
    except SearchEngineError as e:
        console.print(f"[red]Search failed:[/red] {e}")
        sys.exit(1)
    click.echo(output, nl=False)


@click.command()
@click.argument("path")
def get(path: str):
    """Print one document from the index.

    PATH is a qmd document path or URI.
    """
    from qmd_history import runner

    engine = runner.make_engine(resolve_settings())
    try:
        output = engine.get_document(path)
    except SearchEngineError as e:
        console.print(f"[red]Cannot get document:[/red] {e}")
        sys.exit(1)
    click.echo(output, nl=False)
