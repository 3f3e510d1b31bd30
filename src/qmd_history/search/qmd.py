"""qmd command-line adapter.

qmd is driven entirely through its CLI. Its output is not a stable API, so
the only parsing done here is picking collection names out of
``qmd collection list``, which prints lines like::

    claude-myapp-conversations (qmd://claude-myapp-conversations/)
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

from qmd_history.core.errors import SearchEngineError
from qmd_history.search.engine import SearchEngine

logger = logging.getLogger(__name__)

_COLLECTION_LINE_RE = re.compile(r"^\s*(claude-.+?-conversations)\s+\(", re.MULTILINE)


def parse_collection_listing(output: str) -> set[str]:
    """Collection names in ``qmd collection list`` output matching the claude pattern."""
    return set(_COLLECTION_LINE_RE.findall(output))


class QmdEngine(SearchEngine):
    """SearchEngine backed by the ``qmd`` executable."""

    def __init__(self, qmd_bin: str = "qmd", cache_dir: Path | None = None):
        self.qmd_bin = qmd_bin
        self.cache_dir = cache_dir

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        if self.cache_dir is not None:
            env["XDG_CACHE_HOME"] = str(self.cache_dir)
        return env

    def _run(self, args: list[str], timeout: float | None = None) -> str:
        cmd = [self.qmd_bin, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._env(),
                check=False,
            )
        except FileNotFoundError as e:
            raise SearchEngineError(f"{self.qmd_bin} not found on PATH", command=cmd) from e
        except subprocess.TimeoutExpired as e:
            raise SearchEngineError(
                f"{' '.join(args)} timed out after {timeout:g}s",
                command=cmd,
                timed_out=True,
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise SearchEngineError(
                f"{' '.join(args)} exited with code {result.returncode}: {stderr or result.stdout.strip()}",
                command=cmd,
                returncode=result.returncode,
                stderr=stderr,
            )
        return result.stdout

    def list_collections(self) -> set[str]:
        return parse_collection_listing(self._run(["collection", "list"]))

    def add_collection(self, path: Path, name: str) -> None:
        self._run(["collection", "add", str(path), "--name", name])

    def remove_collection(self, name: str) -> None:
        self._run(["collection", "remove", name])

    def register_context(self, uri: str, description: str) -> None:
        self._run(["context", "add", uri, description])

    def generate_embeddings(self, timeout: float | None = None) -> None:
        self._run(["embed"], timeout=timeout)

    def search(self, query: str, collection: str | None = None, limit: int = 10) -> str:
        args = ["search", query, "-n", str(limit)]
        if collection:
            args.extend(["-c", collection])
        return self._run(args)

    def get_document(self, path: str) -> str:
        return self._run(["get", path])
