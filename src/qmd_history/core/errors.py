"""qmd-history error types and utilities."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using temp file + rename.

    Writes to a temporary file in the same directory, fsyncs it,
    then atomically replaces the target path.
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content.encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class QmdHistoryError(Exception):
    """Base exception for qmd-history."""

    pass


class ResolutionError(QmdHistoryError):
    """A log group has no usable originating path."""

    pass


class ConversionError(QmdHistoryError):
    """A session log could not be read."""

    pass


class OutputDirectoryError(QmdHistoryError):
    """The output directory structure could not be created. Fatal for a run."""

    pass


class StateDirectoryError(QmdHistoryError):
    """The state directory (run logs, lock file) is not writable. Fatal for a run."""

    pass


class PipelineLockedError(QmdHistoryError):
    """Another sync run holds the lock."""

    def __init__(self, lock_path: Path, pid: int | None = None):
        self.lock_path = lock_path
        self.pid = pid
        holder = f" (pid {pid})" if pid else ""
        super().__init__(f"Another run is in progress{holder}: {lock_path}")


class SearchEngineError(QmdHistoryError):
    """A search engine command failed, exited non-zero, or timed out."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)
