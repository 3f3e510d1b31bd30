"""End-to-end sync runs against an in-memory search engine."""

from __future__ import annotations

import pytest

from conftest import FIXED_TODAY, user, write_session
from qmd_history import runner
from qmd_history.core.errors import (
    OutputDirectoryError,
    PipelineLockedError,
    SearchEngineError,
    StateDirectoryError,
)


def _snapshot(root):
    return {p.relative_to(root): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


class TestSync:
    def test_full_run(self, settings, populated_projects, fake_engine):
        result = runner.sync(settings, engine=fake_engine, today=FIXED_TODAY)

        out = settings.output_dir
        assert sorted(p.name for p in (out / "myapp").iterdir()) == [
            "2024-03-01-abcdef12.md",
            "2024-03-01-bbbbbbbb.md",
        ]
        assert sorted(p.name for p in (out / "other").iterdir()) == ["2024-03-01-cccccccc.md"]
        assert result.projects == ["myapp", "other"]
        assert result.sessions_converted == 3
        assert result.skipped_groups == ["-tmp-nocwd"]
        assert result.excluded_groups == ["-Users-me-code-myapp--claude-worktrees-fix"]
        assert result.reconcile.created == ["claude-myapp-conversations", "claude-other-conversations"]
        assert result.embeddings == "ok"
        assert ("embed", settings.embed_timeout) in fake_engine.calls
        assert result.log_path is not None and result.log_path.exists()
        assert not settings.lock_path.exists()

    def test_excluded_group_yields_nothing(self, settings, populated_projects, fake_engine):
        runner.sync(settings, engine=fake_engine)
        assert not (settings.output_dir / "fix").exists()
        assert "claude-fix-conversations" not in fake_engine.collections

    def test_rerun_is_idempotent(self, settings, populated_projects, fake_engine):
        runner.sync(settings, engine=fake_engine, today=FIXED_TODAY)
        before = _snapshot(settings.output_dir)

        second = runner.sync(settings, engine=fake_engine, today=FIXED_TODAY)

        assert _snapshot(settings.output_dir) == before
        assert second.reconcile.created == []
        assert second.reconcile.recreated == ["claude-myapp-conversations", "claude-other-conversations"]
        assert sorted(fake_engine.collections) == ["claude-myapp-conversations", "claude-other-conversations"]

    def test_same_basename_groups_share_directory(self, settings, projects_dir, fake_engine):
        write_session(projects_dir / "-work-api", "11111111.jsonl", [
            user("a", session_id="11111111", cwd="/work/api"),
        ])
        write_session(projects_dir / "-home-api", "22222222.jsonl", [
            user("b", session_id="22222222", cwd="/home/api"),
        ])

        result = runner.sync(settings, engine=fake_engine)

        assert sorted(p.name for p in (settings.output_dir / "api").iterdir()) == [
            "2024-03-01-11111111.md",
            "2024-03-01-22222222.md",
        ]
        assert result.reconcile.created == ["claude-api-conversations"]

    def test_new_session_picked_up_by_recreate(self, settings, projects_dir, fake_engine):
        group = projects_dir / "-x-app"
        write_session(group, "11111111.jsonl", [user("a", session_id="11111111", cwd="/x/app")])
        runner.sync(settings, engine=fake_engine)

        write_session(group, "22222222.jsonl", [user("b", session_id="22222222", cwd="/x/app")])
        result = runner.sync(settings, engine=fake_engine)

        assert result.reconcile.recreated == ["claude-app-conversations"]
        assert len(list((settings.output_dir / "app").glob("*.md"))) == 2

    def test_project_filter(self, settings, populated_projects, fake_engine):
        fake_engine.collections = {"claude-other-conversations": settings.output_dir / "other"}
        result = runner.sync(settings, engine=fake_engine, projects=["myapp"], prune_stale=True)

        assert result.projects == ["myapp"]
        assert result.reconcile.created == ["claude-myapp-conversations"]
        assert "claude-other-conversations" in fake_engine.collections

    def test_stale_collection_kept_by_default(self, settings, populated_projects, fake_engine):
        fake_engine.collections = {"claude-retired-conversations": settings.output_dir / "retired"}
        result = runner.sync(settings, engine=fake_engine)
        assert result.reconcile.stale == ["claude-retired-conversations"]
        assert "claude-retired-conversations" in fake_engine.collections

    def test_prune_stale(self, settings, populated_projects, fake_engine):
        fake_engine.collections = {"claude-retired-conversations": settings.output_dir / "retired"}
        result = runner.sync(settings, engine=fake_engine, prune_stale=True)
        assert result.reconcile.pruned == ["claude-retired-conversations"]
        assert "claude-retired-conversations" not in fake_engine.collections

    def test_embedding_timeout_not_fatal(self, settings, populated_projects, fake_engine):
        fake_engine.embed_error = SearchEngineError("embed timed out", timed_out=True)
        result = runner.sync(settings, engine=fake_engine)
        assert result.embeddings == "timeout"
        assert result.reconcile.created

    def test_embedding_failure_not_fatal(self, settings, populated_projects, fake_engine):
        fake_engine.embed_error = SearchEngineError("embed broke", returncode=1)
        assert runner.sync(settings, engine=fake_engine).embeddings == "failed"

    def test_no_embed(self, settings, populated_projects, fake_engine):
        result = runner.sync(settings, engine=fake_engine, embed=False)
        assert result.embeddings == "skipped"
        assert not any(c[0] == "embed" for c in fake_engine.calls)

    def test_collection_failure_does_not_abort(self, settings, populated_projects, fake_engine):
        fake_engine.fail = {"add": {"claude-myapp-conversations"}}
        result = runner.sync(settings, engine=fake_engine)
        assert result.reconcile.failed == ["claude-myapp-conversations"]
        assert result.reconcile.created == ["claude-other-conversations"]
        assert result.embeddings == "ok"

    def test_output_dir_failure_is_fatal(self, settings, populated_projects, fake_engine):
        settings.output_dir.parent.mkdir(parents=True, exist_ok=True)
        settings.output_dir.write_text("not a directory")
        with pytest.raises(OutputDirectoryError):
            runner.sync(settings, engine=fake_engine)
        assert fake_engine.mutations() == []
        assert not settings.lock_path.exists()

    def test_state_dir_failure_is_fatal(self, settings, populated_projects, fake_engine):
        settings.state_dir.write_text("not a directory")
        with pytest.raises(StateDirectoryError):
            runner.sync(settings, engine=fake_engine)
        assert fake_engine.calls == []
        assert not settings.output_dir.exists()

    def test_locked(self, settings, populated_projects, fake_engine, monkeypatch):
        from qmd_history.core import lock

        settings.ensure_state_dir()
        settings.lock_path.write_text("424242")
        monkeypatch.setattr(lock, "_pid_alive", lambda pid: True)

        with pytest.raises(PipelineLockedError):
            runner.sync(settings, engine=fake_engine)
        assert fake_engine.calls == []
        assert not settings.output_dir.exists()


class TestDryRun:
    def test_no_writes_no_mutations(self, settings, populated_projects, fake_engine, tmp_path):
        fake_engine.collections = {"claude-myapp-conversations": settings.output_dir / "myapp"}
        before = _snapshot(tmp_path)

        result = runner.sync(settings, engine=fake_engine, dry_run=True, today=FIXED_TODAY)

        assert _snapshot(tmp_path) == before
        assert not settings.output_dir.exists()
        assert not settings.state_dir.exists()
        assert sorted(p.name for p in result.planned) == [
            "2024-03-01-abcdef12.md",
            "2024-03-01-bbbbbbbb.md",
            "2024-03-01-cccccccc.md",
        ]
        assert [(a.kind, a.project) for a in result.reconcile.actions] == [
            ("recreate", "myapp"),
            ("create", "other"),
        ]
        assert fake_engine.mutations() == []
        assert not any(c[0] == "embed" for c in fake_engine.calls)

    def test_convert_only(self, settings, populated_projects):
        result = runner.convert(settings, dry_run=True)
        assert result.sessions_converted == 3
        assert not settings.output_dir.exists()

        written = runner.convert(settings)
        assert written.sessions_converted == 3
        assert written.reconcile is None
        assert len(list(settings.output_dir.rglob("*.md"))) == 3

    def test_missing_projects_dir(self, settings, fake_engine):
        settings.projects_dir.rmdir()
        result = runner.sync(settings, engine=fake_engine)
        assert result.conversions == []
        assert result.reconcile.actions == []
