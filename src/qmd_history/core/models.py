"""Core data models for qmd-history."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

COLLECTION_PREFIX = "claude-"
COLLECTION_SUFFIX = "-conversations"


def collection_name(project: str) -> str:
    """Collection name for a project identity: ``claude-<project>-conversations``."""
    return f"{COLLECTION_PREFIX}{project}{COLLECTION_SUFFIX}"


def project_from_collection(name: str) -> str | None:
    """Inverse of :func:`collection_name`; None for names outside the pattern."""
    if not (name.startswith(COLLECTION_PREFIX) and name.endswith(COLLECTION_SUFFIX)):
        return None
    project = name[len(COLLECTION_PREFIX):-len(COLLECTION_SUFFIX)]
    return project or None


@dataclass
class ProjectGroup:
    """Session logs that share one originating working directory."""

    name: str  # basename of the originating path
    origin_path: str
    log_dir: Path
    sessions: list[Path] = field(default_factory=list)

    @property
    def collection(self) -> str:
        return collection_name(self.name)


@dataclass
class SessionHeader:
    """Metadata read from the first event of a session log."""

    session_id: str
    slug: str
    date: str  # YYYY-MM-DD
    id_prefix: str  # first 8 characters used in the document filename

    @property
    def filename(self) -> str:
        return f"{self.date}-{self.id_prefix}.md"


@dataclass
class TranscriptDocument:
    """Rendered markdown for one session log."""

    project: str
    source: Path
    path: Path
    header: SessionHeader
    content: str
    error_lines: list[int] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.error_lines)


@dataclass
class ConvertResult:
    """Outcome of converting every session of one project group."""

    project: str
    output_dir: Path
    written: list[Path] = field(default_factory=list)
    planned: list[Path] = field(default_factory=list)  # dry-run only
    failed: list[Path] = field(default_factory=list)
    degraded: list[Path] = field(default_factory=list)  # rendered with error markers

    @property
    def converted(self) -> int:
        return len(self.written) + len(self.planned)


@dataclass
class ReconcileAction:
    """One collection transition: create, recreate (remove + add), or prune."""

    kind: str  # "create", "recreate", "prune"
    collection: str
    project: str | None = None
    path: Path | None = None


@dataclass
class ReconcileResult:
    """Aggregate counts of a reconciliation pass."""

    created: list[str] = field(default_factory=list)
    recreated: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    actions: list[ReconcileAction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
