"""Search engine capability interface.

The reconciler only needs a handful of collection operations from the
downstream engine. Implementations may shell out, call a library, or talk
RPC; the reconciler does not care which.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class SearchEngine(ABC):
    """Operations the pipeline consumes from a search engine.

    Every method raises :class:`~qmd_history.core.errors.SearchEngineError`
    on failure.
    """

    @abstractmethod
    def list_collections(self) -> set[str]:
        """Names of the pipeline-owned collections currently registered."""
        ...

    @abstractmethod
    def add_collection(self, path: Path, name: str) -> None:
        """Register a collection as a snapshot of every document under path."""
        ...

    @abstractmethod
    def remove_collection(self, name: str) -> None:
        ...

    @abstractmethod
    def register_context(self, uri: str, description: str) -> None:
        """Attach a human-readable description to a collection URI."""
        ...

    @abstractmethod
    def generate_embeddings(self, timeout: float | None = None) -> None:
        """Embed all content that has no embeddings yet."""
        ...

    @abstractmethod
    def search(self, query: str, collection: str | None = None, limit: int = 10) -> str:
        ...

    @abstractmethod
    def get_document(self, path: str) -> str:
        ...

    def context_uri(self, name: str) -> str:
        """URI used when registering context for a collection."""
        return f"qmd://{name}"
