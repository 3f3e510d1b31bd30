"""Claude Code session log discovery.

Claude Code writes one JSONL file per session under
``~/.claude/projects/<encoded-path>/<session-id>.jsonl``. The directory name
is a lossy encoding of the working directory (``/`` and ``.`` both become
``-``), so the real path is read back from the ``cwd`` field of the log
records instead::

    {"type": "user", "cwd": "/Users/me/code/myapp", "sessionId": "...", ...}

A project's identity is the last component of that path.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path, PurePosixPath

from qmd_history.core.errors import ResolutionError
from qmd_history.core.models import ProjectGroup

logger = logging.getLogger(__name__)

SESSION_GLOB = "*.jsonl"


def list_session_logs(group_dir: Path) -> list[Path]:
    """Session log files directly inside a group directory, sorted by name."""
    return sorted(p for p in group_dir.glob(SESSION_GLOB) if p.is_file())


def extract_origin_path(log_path: Path, max_lines: int = 10) -> str | None:
    """Return the first non-empty ``cwd`` among the first ``max_lines`` records.

    Malformed lines are skipped; the scan never reads past ``max_lines``.
    """
    with open(log_path, encoding="utf-8", errors="replace") as f:
        for line_num, line in enumerate(f, start=1):
            if line_num > max_lines:
                break
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Malformed JSON at line %d in %s", line_num, log_path.name)
                continue
            if not isinstance(record, dict):
                continue
            cwd = record.get("cwd")
            if isinstance(cwd, str) and cwd.strip():
                return cwd.strip()
    return None


def project_name(origin_path: str) -> str:
    """Final path segment of the originating path."""
    # Backslashes cover logs recorded on Windows
    return PurePosixPath(origin_path.replace("\\", "/").rstrip("/")).name


def excluded_marker(origin_path: str, markers: list[str]) -> str | None:
    """Return the first disposable-context marker found in the path, if any.

    Any single marker excludes the group.
    """
    for marker in markers:
        if marker and marker in origin_path:
            return marker
    return None


def resolve_group(group_dir: Path, max_lines: int = 10) -> ProjectGroup:
    """Build a ProjectGroup for one log directory.

    Session logs are tried in order and the first one carrying a working
    directory decides the origin. Summary-only logs carry none and are passed
    over.

    Raises:
        ResolutionError: no session logs, or no originating path in any of
            them.
    """
    sessions = list_session_logs(group_dir)
    if not sessions:
        raise ResolutionError(f"no session logs in {group_dir.name}")

    origin = None
    for log_path in sessions:
        try:
            origin = extract_origin_path(log_path, max_lines=max_lines)
        except OSError as e:
            logger.debug("Cannot read %s: %s", log_path, e)
            continue
        if origin is not None:
            break
    if origin is None:
        raise ResolutionError(
            f"no working directory in first {max_lines} lines of any of {len(sessions)} session log(s)"
        )

    name = project_name(origin)
    if not name:
        raise ResolutionError(f"empty project name for origin {origin!r}")

    return ProjectGroup(name=name, origin_path=origin, log_dir=group_dir, sessions=sessions)


def discover_projects(
    projects_dir: Path,
    excluded_markers: list[str] | None = None,
    max_lines: int = 10,
    on_skip=None,
    on_exclude=None,
) -> Iterator[ProjectGroup]:
    """Yield a ProjectGroup for every usable log directory under projects_dir.

    Groups without session logs or without a recoverable working directory are
    skipped with a warning. Groups whose working directory contains an excluded
    marker are dropped. Groups that resolve to the same name are yielded
    separately; callers key on the name.

    ``on_skip(group_dir_name, reason)`` and
    ``on_exclude(group_dir_name, origin_path, marker)`` are optional hooks for
    run logging.
    """
    markers = excluded_markers or []
    if not projects_dir.is_dir():
        logger.warning("Projects directory not found: %s", projects_dir)
        return

    for group_dir in sorted(p for p in projects_dir.iterdir() if p.is_dir()):
        try:
            group = resolve_group(group_dir, max_lines=max_lines)
        except ResolutionError as e:
            logger.warning("Skipping %s: %s", group_dir.name, e)
            if on_skip is not None:
                on_skip(group_dir.name, str(e))
            continue

        marker = excluded_marker(group.origin_path, markers)
        if marker is not None:
            logger.info("Excluding %s: %s matches %r", group_dir.name, group.origin_path, marker)
            if on_exclude is not None:
                on_exclude(group_dir.name, group.origin_path, marker)
            continue

        yield group
