"""Shared test fixtures for qmd-history."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import pytest

from qmd_history.config import Settings, reset_settings
from qmd_history.core.errors import SearchEngineError
from qmd_history.search.engine import SearchEngine

FIXED_TODAY = date(2026, 1, 15)


def write_session(group_dir: Path, name: str, records: list) -> Path:
    """Write a session log. Dict records are JSON-encoded, strings written verbatim."""
    group_dir.mkdir(parents=True, exist_ok=True)
    path = group_dir / name
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def user(text, session_id="abcdef1234567890", cwd="/Users/me/code/myapp", **extra) -> dict:
    record = {
        "type": "user",
        "sessionId": session_id,
        "cwd": cwd,
        "timestamp": "2024-03-01T10:00:00.000Z",
        "message": {"role": "user", "content": text},
    }
    record.update(extra)
    return record


def assistant(content, session_id="abcdef1234567890", cwd="/Users/me/code/myapp", **extra) -> dict:
    record = {
        "type": "assistant",
        "sessionId": session_id,
        "cwd": cwd,
        "timestamp": "2024-03-01T10:00:05.000Z",
        "message": {"role": "assistant", "content": content},
    }
    record.update(extra)
    return record


@dataclass
class FakeEngine(SearchEngine):
    """In-memory search engine recording every call."""

    collections: dict[str, Path] = field(default_factory=dict)
    contexts: dict[str, str] = field(default_factory=dict)
    calls: list[tuple] = field(default_factory=list)
    fail: dict[str, set[str]] = field(default_factory=dict)  # op -> collection names
    list_error: bool = False
    embed_error: SearchEngineError | None = None

    def _check(self, op: str, name: str) -> None:
        if name in self.fail.get(op, set()):
            raise SearchEngineError(f"{op} {name} failed", command=["qmd", op, name], returncode=1)

    def list_collections(self) -> set[str]:
        self.calls.append(("list",))
        if self.list_error:
            raise SearchEngineError("collection list failed", returncode=1)
        return set(self.collections)

    def add_collection(self, path: Path, name: str) -> None:
        self.calls.append(("add", name, path))
        self._check("add", name)
        if name in self.collections:
            raise SearchEngineError(f"collection {name} already exists", returncode=1)
        self.collections[name] = path

    def remove_collection(self, name: str) -> None:
        self.calls.append(("remove", name))
        self._check("remove", name)
        self.collections.pop(name, None)

    def register_context(self, uri: str, description: str) -> None:
        self.calls.append(("context", uri, description))
        self.contexts[uri] = description

    def generate_embeddings(self, timeout: float | None = None) -> None:
        self.calls.append(("embed", timeout))
        if self.embed_error is not None:
            raise self.embed_error

    def search(self, query: str, collection: str | None = None, limit: int = 10) -> str:
        self.calls.append(("search", query, collection, limit))
        return f"results for {query}\n"

    def get_document(self, path: str) -> str:
        self.calls.append(("get", path))
        return f"# {path}\n"

    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("add", "remove", "context")]


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Keep real environment variables and the settings cache out of tests."""
    for key in list(os.environ):
        if key.startswith("QMD_HISTORY_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def projects_dir(tmp_path):
    d = tmp_path / "projects"
    d.mkdir()
    return d


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "conversations"


@pytest.fixture
def settings(tmp_path, projects_dir, output_dir):
    return Settings(
        projects_dir=projects_dir,
        output_dir=output_dir,
        state_dir=tmp_path / "state",
        _env_file=None,
    )


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def populated_projects(projects_dir):
    """Two projects, one disposable worktree group, one group without cwd."""
    myapp = projects_dir / "-Users-me-code-myapp"
    write_session(myapp, "abcdef1234567890.jsonl", [
        user("How do I add a route?"),
        assistant([{"type": "text", "text": "Use the router."}]),
    ])
    write_session(myapp, "bbbbbbbb0000.jsonl", [
        user("Second session", session_id="bbbbbbbb0000"),
        assistant("Sure.", session_id="bbbbbbbb0000"),
    ])

    other = projects_dir / "-Users-me-code-other"
    write_session(other, "cccccccc1111.jsonl", [
        user("Hello", session_id="cccccccc1111", cwd="/Users/me/code/other"),
    ])

    worktree = projects_dir / "-Users-me-code-myapp--claude-worktrees-fix"
    write_session(worktree, "dddddddd2222.jsonl", [
        user("In a worktree", session_id="dddddddd2222", cwd="/Users/me/code/myapp/.claude/worktrees/fix"),
    ])

    nocwd = projects_dir / "-tmp-nocwd"
    write_session(nocwd, "eeeeeeee3333.jsonl", [
        {"type": "summary", "summary": "no cwd here"},
    ])
    return projects_dir
