"""Configuration settings for qmd-history.

Three filesystem locations drive a run:
- projects_dir: raw Claude Code session logs, one subdirectory per project group
- output_dir: converted markdown transcripts, one subdirectory per project
- state_dir: run logs and the single-instance lock
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXCLUDED_MARKERS = [
    "/.claude/worktrees/",
    "/.worktrees/",
    "/worktrees/agent-",
    "/subagents/",
    "/.claude-agent/",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="QMD_HISTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    # Input logs and converted output
    projects_dir: Path = Field(default=Path("~/.claude/projects"))
    output_dir: Path = Field(default=Path("~/.claude/conversation-history"))
    state_dir: Path = Field(default=Path("~/.cache/qmd-history"))

    # Search engine
    qmd_bin: str = "qmd"
    qmd_cache_dir: Path | None = None
    embed_timeout: float = 600.0

    # Project resolution
    cwd_scan_lines: int = 10
    excluded_markers: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_MARKERS))

    # Document rendering
    document_title: str = "Claude Conversation"
    default_slug: str = "untitled"

    # Scheduling
    schedule_interval: int = 1800

    @field_validator("projects_dir", "output_dir", "state_dir", "qmd_cache_dir")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return Path(value).expanduser()

    @property
    def logs_dir(self) -> Path:
        """Directory holding per-run JSONL logs."""
        return self.state_dir / "logs"

    @property
    def lock_path(self) -> Path:
        """Pid file guarding against overlapping runs."""
        return self.state_dir / "sync.lock"

    def ensure_state_dir(self) -> None:
        """Create state directory if it doesn't exist."""
        self.state_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (useful for testing)."""
    global _settings
    _settings = None
