"""Session log sources."""

from qmd_history.sources.claude_code import discover_projects, extract_origin_path, resolve_group

__all__ = [
    "discover_projects",
    "extract_origin_path",
    "resolve_group",
]
