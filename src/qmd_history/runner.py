"""Sync runner — resolve projects, convert sessions, reconcile collections, embed."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from rich.console import Console

from qmd_history.config import Settings
from qmd_history.core import lock
from qmd_history.core.errors import SearchEngineError, StateDirectoryError
from qmd_history.core.logging import RunLogger, Verbosity
from qmd_history.core.models import ConvertResult, ReconcileResult
from qmd_history.reconcile import Reconciler, project_dirs_with_documents
from qmd_history.search.engine import SearchEngine
from qmd_history.search.qmd import QmdEngine
from qmd_history.sources.claude_code import discover_projects
from qmd_history.transforms.transcript import convert_project, ensure_output_dir

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Summary of a sync run."""

    dry_run: bool = False
    conversions: list[ConvertResult] = field(default_factory=list)
    skipped_groups: list[str] = field(default_factory=list)
    excluded_groups: list[str] = field(default_factory=list)
    reconcile: ReconcileResult | None = None
    embeddings: str = "skipped"  # ok / timeout / failed / skipped
    total_time: float = 0.0
    log_path: Path | None = None

    @property
    def projects(self) -> list[str]:
        return sorted({c.project for c in self.conversions})

    @property
    def sessions_converted(self) -> int:
        return sum(c.converted for c in self.conversions)

    @property
    def sessions_failed(self) -> int:
        return sum(len(c.failed) for c in self.conversions)

    @property
    def sessions_degraded(self) -> int:
        return sum(len(c.degraded) for c in self.conversions)

    @property
    def planned(self) -> list[Path]:
        return [p for c in self.conversions for p in c.planned]


def make_engine(settings: Settings) -> SearchEngine:
    return QmdEngine(qmd_bin=settings.qmd_bin, cache_dir=settings.qmd_cache_dir)


def _convert_all(
    settings: Settings,
    result: SyncResult,
    run_logger: RunLogger,
    dry_run: bool,
    only: set[str] | None,
    today: date | None,
) -> None:
    def on_skip(group: str, reason: str) -> None:
        result.skipped_groups.append(group)
        run_logger.project_skipped(group, reason)

    def on_exclude(group: str, origin: str, marker: str) -> None:
        result.excluded_groups.append(group)
        run_logger.project_excluded(group, origin, marker)

    groups = discover_projects(
        settings.projects_dir,
        excluded_markers=settings.excluded_markers,
        max_lines=settings.cwd_scan_lines,
        on_skip=on_skip,
        on_exclude=on_exclude,
    )
    for group in groups:
        if only is not None and group.name not in only:
            continue
        run_logger.project_resolved(group.log_dir.name, group.name, group.origin_path, len(group.sessions))
        conversion = convert_project(
            group,
            settings.output_dir,
            dry_run=dry_run,
            title=settings.document_title,
            default_slug=settings.default_slug,
            today=today,
            run_logger=run_logger,
        )
        result.conversions.append(conversion)


def convert(
    settings: Settings,
    dry_run: bool = False,
    projects: list[str] | None = None,
    verbosity: Verbosity = Verbosity.DEFAULT,
    console: Console | None = None,
    today: date | None = None,
) -> SyncResult:
    """Convert session logs to transcripts without touching the search engine."""
    start = time.time()
    result = SyncResult(dry_run=dry_run)
    run_logger = RunLogger(verbosity=verbosity, console=console)
    run_logger.run_start(settings.projects_dir, dry_run)
    try:
        if not dry_run:
            ensure_output_dir(settings.output_dir)
        _convert_all(settings, result, run_logger, dry_run, set(projects) if projects else None, today)
    finally:
        run_logger.run_finish()
    result.total_time = time.time() - start
    return result


def sync(
    settings: Settings,
    engine: SearchEngine | None = None,
    dry_run: bool = False,
    prune_stale: bool = False,
    embed: bool = True,
    projects: list[str] | None = None,
    verbosity: Verbosity = Verbosity.DEFAULT,
    console: Console | None = None,
    today: date | None = None,
) -> SyncResult:
    """Run the full pipeline once.

    Dry runs resolve and name everything and query the collection list, but
    write no files, take no lock, and issue no collection changes or
    embedding runs.

    Raises:
        OutputDirectoryError: the output root cannot be created.
        PipelineLockedError: another sync holds the lock.
        StateDirectoryError: the state directory or run log cannot be created.
    """
    if engine is None:
        engine = make_engine(settings)

    if dry_run:
        return _sync(settings, engine, dry_run, prune_stale, embed, projects, verbosity, console, today)

    try:
        settings.ensure_state_dir()
    except OSError as e:
        raise StateDirectoryError(f"cannot create state directory {settings.state_dir}: {e}") from e
    with lock.run_lock(settings.lock_path):
        return _sync(settings, engine, dry_run, prune_stale, embed, projects, verbosity, console, today)


def _sync(
    settings: Settings,
    engine: SearchEngine,
    dry_run: bool,
    prune_stale: bool,
    embed: bool,
    projects: list[str] | None,
    verbosity: Verbosity,
    console: Console | None,
    today: date | None,
) -> SyncResult:
    start = time.time()
    result = SyncResult(dry_run=dry_run)
    only = set(projects) if projects else None

    run_logger = RunLogger(
        verbosity=verbosity,
        logs_dir=None if dry_run else settings.logs_dir,
        console=console,
    )
    result.log_path = run_logger.log_path
    run_logger.run_start(settings.projects_dir, dry_run)

    try:
        if not dry_run:
            ensure_output_dir(settings.output_dir)

        _convert_all(settings, result, run_logger, dry_run, only, today)

        # Reconcile every project directory with documents, not just the ones
        # converted this run.
        all_dirs = project_dirs_with_documents(settings.output_dir)
        if dry_run:
            for conversion in result.conversions:
                if conversion.planned:
                    all_dirs.setdefault(conversion.project, conversion.output_dir)
        target_dirs = {k: v for k, v in all_dirs.items() if only is None or k in only}

        reconciler = Reconciler(engine, run_logger=run_logger)
        result.reconcile = reconciler.reconcile(
            target_dirs,
            prune_stale=prune_stale and only is None,
            dry_run=dry_run,
            known_projects=set(all_dirs),
        )

        if embed and not dry_run:
            result.embeddings = _generate_embeddings(engine, settings.embed_timeout, run_logger)
    finally:
        run_logger.run_finish()

    result.total_time = time.time() - start
    return result


def _generate_embeddings(engine: SearchEngine, timeout: float, run_logger: RunLogger) -> str:
    """Trigger embedding generation. Failure is logged, never raised."""
    start = time.time()
    try:
        engine.generate_embeddings(timeout=timeout)
    except SearchEngineError as e:
        status = "timeout" if e.timed_out else "failed"
        logger.warning("Embedding generation %s: %s", status, e)
        run_logger.embed_finish(status, time.time() - start, error=str(e))
        return status
    run_logger.embed_finish("ok", time.time() - start)
    return "ok"
