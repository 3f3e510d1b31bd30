"""Schedule definitions for periodic syncs.

Renders a macOS LaunchAgent plist or a crontab line that runs
``qmd-history sync --quiet`` every ``schedule_interval`` seconds. Installing
them is left to the user.
"""

from __future__ import annotations

import os
import plistlib
import shutil

from qmd_history.config import Settings

LAUNCHD_LABEL = "com.qmd-history.sync"


def sync_command() -> list[str]:
    """Command line a scheduler should execute."""
    exe = shutil.which("qmd-history") or "qmd-history"
    return [exe, "sync", "--quiet"]


def render_launchd(settings: Settings, label: str = LAUNCHD_LABEL) -> str:
    """LaunchAgent plist that runs a sync at a fixed interval and at load."""
    plist = {
        "Label": label,
        "ProgramArguments": sync_command(),
        "StartInterval": int(settings.schedule_interval),
        "RunAtLoad": True,
        # launchd starts jobs with a minimal PATH; qmd usually lives in ~/.bun/bin
        "EnvironmentVariables": {"PATH": os.environ.get("PATH", "/usr/bin:/bin")},
        "StandardOutPath": str(settings.state_dir / "launchd.out.log"),
        "StandardErrorPath": str(settings.state_dir / "launchd.err.log"),
    }
    return plistlib.dumps(plist).decode("utf-8")


_MINUTE_STEPS = [d for d in range(1, 61) if 60 % d == 0]
_HOUR_STEPS = [d for d in range(1, 25) if 24 % d == 0]


def _nearest_step(value: int, steps: list[int]) -> int:
    # Ties go to the shorter step
    return min(steps, key=lambda s: (abs(s - value), s))


def cron_schedule(interval_seconds: int) -> str:
    """Cron time fields approximating an interval.

    Cron steps restart at the top of every hour (or day), so ``*/45`` fires at
    :00 and :45. The interval is rounded to the nearest step that divides the
    hour (or the day) evenly: 45 minutes becomes every 30, 7 hours every 6.
    Anything of 24 hours or more runs once a day.
    """
    minutes = max(1, round(int(interval_seconds) / 60))
    if minutes < 60:
        step = _nearest_step(minutes, _MINUTE_STEPS)
        if step == 60:
            return "0 * * * *"
        return f"*/{step} * * * *"
    hours = round(minutes / 60)
    if hours < 24:
        step = _nearest_step(hours, _HOUR_STEPS)
        if step == 24:
            return "0 0 * * *"
        return f"0 */{step} * * *"
    return "0 0 * * *"


def render_cron(settings: Settings) -> str:
    """Crontab line for the sync job."""
    log = settings.state_dir / "cron.log"
    command = " ".join(sync_command())
    return f"{cron_schedule(settings.schedule_interval)} {command} >> {log} 2>&1\n"
