"""Search engine interface and adapters."""

from qmd_history.search.engine import SearchEngine
from qmd_history.search.qmd import QmdEngine, parse_collection_listing

__all__ = [
    "QmdEngine",
    "SearchEngine",
    "parse_collection_listing",
]
