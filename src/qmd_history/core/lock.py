"""Single-instance run lock backed by a pid file."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from qmd_history.core.errors import PipelineLockedError, StateDirectoryError

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


def _read_pid(path: Path) -> int | None:
    try:
        return int(path.read_text().strip())
    except (OSError, ValueError):
        return None


def acquire(path: Path) -> None:
    """Create the lock file, reclaiming it if its owner is gone.

    Raises:
        PipelineLockedError: a live process already holds the lock.
        StateDirectoryError: the lock file cannot be created.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StateDirectoryError(f"cannot create state directory {path.parent}: {e}") from e
    for _ in range(2):
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            pid = _read_pid(path)
            if pid is not None and _pid_alive(pid):
                raise PipelineLockedError(path, pid) from None
            logger.warning("Removing stale lock %s (pid %s)", path, pid)
            path.unlink(missing_ok=True)
            continue
        except OSError as e:
            raise StateDirectoryError(f"cannot create lock file {path}: {e}") from e
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return
    raise PipelineLockedError(path, _read_pid(path))


def release(path: Path) -> None:
    """Remove the lock file if this process owns it."""
    if _read_pid(path) == os.getpid():
        path.unlink(missing_ok=True)


@contextmanager
def run_lock(path: Path) -> Iterator[Path]:
    """Hold the run lock for the duration of the block."""
    acquire(path)
    try:
        yield path
    finally:
        release(path)
