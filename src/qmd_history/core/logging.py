"""Structured logging and verbosity levels for qmd-history runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

from rich.console import Console

from qmd_history.core.errors import StateDirectoryError


class Verbosity(IntEnum):
    """Verbosity levels for console output."""

    QUIET = -1    # Nothing but errors
    DEFAULT = 0   # Summary table only
    VERBOSE = 1   # + per-project progress, per-collection status
    DEBUG = 2     # + per-session detail


@dataclass
class ProjectLog:
    """Per-project run statistics."""

    name: str
    origin_path: str = ""
    converted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)
    collection_status: str = ""  # created / recreated / failed / skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "origin_path": self.origin_path,
            "converted": list(self.converted),
            "failed": list(self.failed),
            "degraded": list(self.degraded),
            "collection_status": self.collection_status,
        }


@dataclass
class RunLog:
    """Structured log of a complete sync run.

    The dict format is::

        {
            "run_id": "20260301T120000Z",
            "projects": {"myapp": {"converted": [...], ...}, ...},
            "skipped_groups": ["-tmp-x"],
            "excluded_groups": ["-Users-me-repo--worktrees-agent-1"],
            "collections_created": 1,
            "collections_recreated": 2,
            "collections_failed": 0,
            "embeddings": "ok",
            "total_time": 4.2,
        }
    """

    run_id: str = ""
    projects: dict[str, ProjectLog] = field(default_factory=dict)
    skipped_groups: list[str] = field(default_factory=list)
    excluded_groups: list[str] = field(default_factory=list)
    collections_created: int = 0
    collections_recreated: int = 0
    collections_failed: int = 0
    collections_pruned: int = 0
    embeddings: str = "not run"
    total_time: float = 0.0

    def get_or_create_project(self, name: str) -> ProjectLog:
        """Get existing project log or create a new one."""
        if name not in self.projects:
            self.projects[name] = ProjectLog(name=name)
        return self.projects[name]

    @property
    def sessions_converted(self) -> int:
        return sum(len(p.converted) for p in self.projects.values())

    @property
    def sessions_failed(self) -> int:
        return sum(len(p.failed) for p in self.projects.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "projects": {name: p.to_dict() for name, p in self.projects.items()},
            "skipped_groups": list(self.skipped_groups),
            "excluded_groups": list(self.excluded_groups),
            "sessions_converted": self.sessions_converted,
            "sessions_failed": self.sessions_failed,
            "collections_created": self.collections_created,
            "collections_recreated": self.collections_recreated,
            "collections_failed": self.collections_failed,
            "collections_pruned": self.collections_pruned,
            "embeddings": self.embeddings,
            "total_time": self.total_time,
        }


class RunLogger:
    """Structured logger for sync runs.

    Writes JSONL log files to logs_dir and optionally emits console
    output via Rich based on verbosity level.
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.DEFAULT,
        logs_dir: Path | None = None,
        console: Console | None = None,
    ):
        self.verbosity = verbosity
        self.run_log = RunLog(
            run_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"),
        )
        self._console = console
        self._log_file = None
        self._log_path: Path | None = None
        self._start: float = 0.0

        if logs_dir is not None:
            self._log_path = logs_dir / f"{self.run_log.run_id}.jsonl"
            try:
                logs_dir.mkdir(parents=True, exist_ok=True)
                self._log_file = open(self._log_path, "a", encoding="utf-8")
            except OSError as e:
                raise StateDirectoryError(f"cannot open run log {self._log_path}: {e}") from e

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def _write_event(self, event: dict[str, Any]) -> None:
        """Write a JSON event to the JSONL log file."""
        if self._log_file is not None:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()
            self._log_file.write(json.dumps(event) + "\n")
            self._log_file.flush()

    def _console_print(self, message: str, min_verbosity: Verbosity) -> None:
        """Print to console if verbosity is high enough."""
        if self.verbosity >= min_verbosity:
            if self._console is None:
                self._console = Console()
            self._console.print(message)

    # -- Run lifecycle --

    def run_start(self, projects_dir: Path, dry_run: bool) -> None:
        self._start = time.time()
        self._write_event({
            "event": "run_start",
            "projects_dir": str(projects_dir),
            "dry_run": dry_run,
        })

    def run_finish(self) -> None:
        """Log the completion of a run and close the log file."""
        self.run_log.total_time = time.time() - self._start if self._start else 0.0
        self._write_event({"event": "run_finish", **self.run_log.to_dict()})
        self.close()

    # -- Resolution events --

    def project_resolved(self, group_dir: str, name: str, origin_path: str, sessions: int) -> None:
        project = self.run_log.get_or_create_project(name)
        project.origin_path = origin_path
        self._write_event({
            "event": "project_resolved",
            "group": group_dir,
            "project": name,
            "origin_path": origin_path,
            "sessions": sessions,
        })
        self._console_print(
            f"  [bold]{name}[/bold] [dim]{origin_path} ({sessions} sessions)[/dim]",
            Verbosity.VERBOSE,
        )

    def project_skipped(self, group_dir: str, reason: str) -> None:
        self.run_log.skipped_groups.append(group_dir)
        self._write_event({"event": "project_skipped", "group": group_dir, "reason": reason})
        self._console_print(
            f"  [yellow]-[/yellow] {group_dir} [dim]skipped: {reason}[/dim]",
            Verbosity.VERBOSE,
        )

    def project_excluded(self, group_dir: str, origin_path: str, marker: str) -> None:
        self.run_log.excluded_groups.append(group_dir)
        self._write_event({
            "event": "project_excluded",
            "group": group_dir,
            "origin_path": origin_path,
            "marker": marker,
        })
        self._console_print(
            f"  [dim]- {group_dir} excluded ({marker})[/dim]",
            Verbosity.DEBUG,
        )

    # -- Conversion events --

    def session_converted(self, project: str, filename: str, degraded: bool = False) -> None:
        log = self.run_log.get_or_create_project(project)
        log.converted.append(filename)
        if degraded:
            log.degraded.append(filename)
        self._write_event({
            "event": "session_converted",
            "project": project,
            "filename": filename,
            "degraded": degraded,
        })
        marker = "[yellow]![/yellow]" if degraded else "[green]+[/green]"
        self._console_print(f"      {marker} {filename}", Verbosity.DEBUG)

    def session_failed(self, project: str, source: str, error: str) -> None:
        self.run_log.get_or_create_project(project).failed.append(source)
        self._write_event({
            "event": "session_failed",
            "project": project,
            "source": source,
            "error": error,
        })
        self._console_print(
            f"      [red]x[/red] {source} [dim]{error}[/dim]",
            Verbosity.VERBOSE,
        )

    # -- Collection events --

    def collection_created(self, project: str, collection: str) -> None:
        self.run_log.collections_created += 1
        self.run_log.get_or_create_project(project).collection_status = "created"
        self._write_event({"event": "collection_created", "project": project, "collection": collection})
        self._console_print(f"  [green]+[/green] {collection}", Verbosity.VERBOSE)

    def collection_recreated(self, project: str, collection: str) -> None:
        self.run_log.collections_recreated += 1
        self.run_log.get_or_create_project(project).collection_status = "recreated"
        self._write_event({"event": "collection_recreated", "project": project, "collection": collection})
        self._console_print(f"  [cyan]~[/cyan] {collection}", Verbosity.VERBOSE)

    def collection_failed(self, project: str | None, collection: str, error: str) -> None:
        self.run_log.collections_failed += 1
        if project is not None:
            self.run_log.get_or_create_project(project).collection_status = "failed"
        self._write_event({
            "event": "collection_failed",
            "project": project,
            "collection": collection,
            "error": error,
        })
        self._console_print(
            f"  [red]x[/red] {collection} [dim]{error}[/dim]",
            Verbosity.DEFAULT,
        )

    def collection_pruned(self, collection: str) -> None:
        self.run_log.collections_pruned += 1
        self._write_event({"event": "collection_pruned", "collection": collection})
        self._console_print(f"  [magenta]-[/magenta] {collection}", Verbosity.VERBOSE)

    # -- Embedding events --

    def embed_finish(self, status: str, elapsed: float, error: str | None = None) -> None:
        self.run_log.embeddings = status
        event: dict[str, Any] = {
            "event": "embed_finish",
            "status": status,
            "time_seconds": round(elapsed, 3),
        }
        if error:
            event["error"] = error
        self._write_event(event)
        self._console_print(
            f"  [dim]embeddings: {status} ({elapsed:.1f}s)[/dim]",
            Verbosity.VERBOSE,
        )

    def close(self) -> None:
        """Close the log file if open."""
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None
