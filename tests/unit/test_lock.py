"""Tests for the single-instance run lock."""

from __future__ import annotations

import os

import pytest

from qmd_history.core import lock
from qmd_history.core.errors import PipelineLockedError, StateDirectoryError


def test_acquire_and_release(tmp_path):
    path = tmp_path / "state" / "sync.lock"
    with lock.run_lock(path):
        assert path.read_text() == str(os.getpid())
    assert not path.exists()


def test_live_holder_blocks(tmp_path, monkeypatch):
    path = tmp_path / "sync.lock"
    path.write_text("424242")
    monkeypatch.setattr(lock, "_pid_alive", lambda pid: True)

    with pytest.raises(PipelineLockedError) as exc_info:
        lock.acquire(path)
    assert exc_info.value.pid == 424242
    assert path.read_text() == "424242"


def test_stale_lock_reclaimed(tmp_path, monkeypatch):
    path = tmp_path / "sync.lock"
    path.write_text("424242")
    monkeypatch.setattr(lock, "_pid_alive", lambda pid: False)

    lock.acquire(path)
    assert path.read_text() == str(os.getpid())
    lock.release(path)
    assert not path.exists()


def test_garbage_lock_reclaimed(tmp_path):
    path = tmp_path / "sync.lock"
    path.write_text("not a pid")
    with lock.run_lock(path):
        assert path.read_text() == str(os.getpid())


def test_release_leaves_foreign_lock(tmp_path):
    path = tmp_path / "sync.lock"
    path.write_text("424242")
    lock.release(path)
    assert path.exists()


def test_released_on_error(tmp_path):
    path = tmp_path / "sync.lock"
    with pytest.raises(RuntimeError):
        with lock.run_lock(path):
            raise RuntimeError("boom")
    assert not path.exists()


def test_unwritable_state_dir(tmp_path):
    blocker = tmp_path / "state"
    blocker.write_text("file")
    with pytest.raises(StateDirectoryError):
        lock.acquire(blocker / "sync.lock")
