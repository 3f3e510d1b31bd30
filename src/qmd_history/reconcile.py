"""Collection reconciliation — keep qmd collections in step with project directories.

Each project directory holding at least one transcript maps to exactly one
collection, ``claude-<project>-conversations``. qmd ingests a collection as a
snapshot of its directory, so an existing collection is never updated in
place: it is removed and added again (present → absent → present). That is
the only way to pick up new documents without leaving entries behind for
deleted ones.

Collections with no backing directory are reported as stale and left alone
unless pruning is asked for explicitly.
"""

from __future__ import annotations

import logging
from pathlib import Path

from qmd_history.core.errors import SearchEngineError
from qmd_history.core.models import (
    ReconcileAction,
    ReconcileResult,
    collection_name,
    project_from_collection,
)
from qmd_history.search.engine import SearchEngine

logger = logging.getLogger(__name__)

DOCUMENT_GLOB = "*.md"


def context_description(project: str) -> str:
    return f"Claude Code conversation history for the {project} project"


def project_dirs_with_documents(output_dir: Path) -> dict[str, Path]:
    """Map project name → directory for every subdirectory holding a transcript."""
    if not output_dir.is_dir():
        return {}
    dirs: dict[str, Path] = {}
    for path in sorted(p for p in output_dir.iterdir() if p.is_dir()):
        if any(f.is_file() for f in path.glob(DOCUMENT_GLOB)):
            dirs[path.name] = path
    return dirs


def stale_collections(existing: set[str], projects: set[str]) -> list[str]:
    """Registered collections whose project has no documents."""
    return sorted(name for name in existing if project_from_collection(name) not in projects)


def plan_reconciliation(
    project_dirs: dict[str, Path],
    existing: set[str],
    prune_stale: bool = False,
    known_projects: set[str] | None = None,
) -> list[ReconcileAction]:
    """Actions that bring the collection set in line with project_dirs.

    ``known_projects`` is every project with documents, used for stale
    detection when project_dirs has been narrowed to a subset. Defaults to
    the keys of project_dirs.
    """
    actions: list[ReconcileAction] = []
    for project, path in sorted(project_dirs.items()):
        name = collection_name(project)
        kind = "recreate" if name in existing else "create"
        actions.append(ReconcileAction(kind=kind, collection=name, project=project, path=path))

    if prune_stale:
        projects = known_projects if known_projects is not None else set(project_dirs)
        for name in stale_collections(existing, projects):
            actions.append(ReconcileAction(kind="prune", collection=name))

    return actions


class Reconciler:
    """Applies reconciliation plans against a SearchEngine.

    Every engine failure is caught per project; the remaining projects are
    still processed.
    """

    def __init__(self, engine: SearchEngine, run_logger=None):
        self.engine = engine
        self.run_logger = run_logger

    def reconcile(
        self,
        project_dirs: dict[str, Path],
        prune_stale: bool = False,
        dry_run: bool = False,
        known_projects: set[str] | None = None,
    ) -> ReconcileResult:
        """Compute and (unless dry_run) apply the collection changes."""
        result = ReconcileResult()

        try:
            existing = self.engine.list_collections()
        except SearchEngineError as e:
            logger.error("Cannot list collections, skipping reconciliation: %s", e)
            result.errors.append(str(e))
            result.skipped = [collection_name(p) for p in sorted(project_dirs)]
            return result

        projects = known_projects if known_projects is not None else set(project_dirs)
        result.stale = stale_collections(existing, projects)
        if result.stale and not prune_stale:
            logger.info("Stale collections left in place: %s", ", ".join(result.stale))

        result.actions = plan_reconciliation(
            project_dirs, existing, prune_stale=prune_stale, known_projects=projects
        )
        if dry_run:
            return result

        for action in result.actions:
            self._apply(action, result)
        return result

    def _apply(self, action: ReconcileAction, result: ReconcileResult) -> None:
        name = action.collection
        try:
            if action.kind == "prune":
                self.engine.remove_collection(name)
                result.pruned.append(name)
                if self.run_logger is not None:
                    self.run_logger.collection_pruned(name)
                return

            if action.kind == "recreate":
                self.engine.remove_collection(name)
            self.engine.add_collection(action.path, name)
            self.engine.register_context(
                self.engine.context_uri(name), context_description(action.project)
            )
        except SearchEngineError as e:
            logger.error("Collection %s (%s) failed: %s", name, action.kind, e)
            result.failed.append(name)
            result.errors.append(f"{name}: {e}")
            if self.run_logger is not None:
                self.run_logger.collection_failed(action.project, name, str(e))
            return

        if action.kind == "recreate":
            result.recreated.append(name)
            if self.run_logger is not None:
                self.run_logger.collection_recreated(action.project, name)
        else:
            result.created.append(name)
            if self.run_logger is not None:
                self.run_logger.collection_created(action.project, name)
