"""Schedule command — qmd-history schedule."""

from __future__ import annotations

import click

from qmd_history.cli.main import resolve_settings
from qmd_history.scheduler import render_cron, render_launchd


@click.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["launchd", "cron"], case_sensitive=False),
    default="launchd",
    show_default=True,
    help="Scheduler definition to print",
)
@click.option("--interval", type=int, default=None, help="Override interval in seconds")
def schedule(fmt: str, interval: int | None):
    """Print a schedule definition that runs sync periodically.

    Nothing is installed. Save the launchd output to
    ~/Library/LaunchAgents/ and load it with launchctl, or append the cron
    line with `crontab -e`.
    """
    settings = resolve_settings()
    if interval is not None:
        settings = settings.model_copy(update={"schedule_interval": interval})
    if fmt.lower() == "cron":
        click.echo(render_cron(settings), nl=False)
    else:
        click.echo(render_launchd(settings), nl=False)
