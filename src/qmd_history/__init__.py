"""qmd-history - Searchable per-project archive of Claude Code conversations.

Usage:
    from qmd_history import get_settings, sync

    result = sync(get_settings(), dry_run=True)
    print(result.sessions_converted, result.planned)
"""

from qmd_history.config import Settings, get_settings
from qmd_history.core.models import (
    ConvertResult,
    ProjectGroup,
    ReconcileAction,
    ReconcileResult,
    SessionHeader,
    TranscriptDocument,
    collection_name,
)
from qmd_history.reconcile import Reconciler, plan_reconciliation
from qmd_history.runner import SyncResult, convert, sync
from qmd_history.search.engine import SearchEngine
from qmd_history.search.qmd import QmdEngine

__all__ = [
    "ConvertResult",
    "ProjectGroup",
    "QmdEngine",
    "ReconcileAction",
    "ReconcileResult",
    "Reconciler",
    "SearchEngine",
    "SessionHeader",
    "Settings",
    "SyncResult",
    "TranscriptDocument",
    "collection_name",
    "convert",
    "get_settings",
    "plan_reconciliation",
    "sync",
]

__version__ = "0.1.0"
