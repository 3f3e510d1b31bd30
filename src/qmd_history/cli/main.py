"""qmd-history CLI — main entry point and shared utilities."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console

from qmd_history.config import Settings, get_settings
from qmd_history.core.logging import Verbosity

console = Console()


def setup_logging(verbose: int = 0, quiet: bool = False) -> None:
    """Configure logging based on verbosity."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        force=True,
    )


def to_verbosity(verbose: int, quiet: bool) -> Verbosity:
    if quiet:
        return Verbosity.QUIET
    return Verbosity(min(verbose, Verbosity.DEBUG))


def resolve_settings(projects_dir: str | None = None, output_dir: str | None = None) -> Settings:
    """Settings with CLI overrides applied (CLI > env > .env > defaults)."""
    settings = get_settings()
    update: dict = {}
    if projects_dir:
        update["projects_dir"] = Path(projects_dir).expanduser()
    if output_dir:
        update["output_dir"] = Path(output_dir).expanduser()
    if update:
        settings = settings.model_copy(update=update)
    return settings


def path_options(fn):
    """Shared --projects-dir / --output-dir options."""
    fn = click.option("--output-dir", default=None, help="Override transcript output directory")(fn)
    fn = click.option("--projects-dir", default=None, help="Override Claude Code projects directory")(fn)
    return fn


def verbosity_options(fn):
    """Shared -v / --quiet options."""
    fn = click.option("--quiet", "-q", is_flag=True, default=False, help="Only report errors")(fn)
    fn = click.option("--verbose", "-v", count=True, help="Verbosity level: -v per-project, -vv per-session")(fn)
    return fn


@click.group()
@click.version_option(package_name="qmd-history")
def main():
    """qmd-history — searchable per-project archive of Claude Code conversations."""
    pass


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from qmd_history.cli.collection_commands import collections  # noqa: E402
from qmd_history.cli.schedule_commands import schedule  # noqa: E402
from qmd_history.cli.search_commands import get, search  # noqa: E402
from qmd_history.cli.sync_commands import convert, sync  # noqa: E402

# Register commands
main.add_command(sync)
main.add_command(sync, name="run")
main.add_command(convert)
main.add_command(collections)
main.add_command(search)
main.add_command(get)
main.add_command(schedule)
