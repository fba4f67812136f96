"""Live time tracking: start/stop timers, manual logs, today's summary.

Only people with time tracking enabled may use these commands. A user has at
most one running timer. Project references take the top match; there is no
disambiguation prompt for timer commands.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable

from .actions import backend_errors
from .directory import EntityDirectory
from .errors import InvalidInputError, NotFoundError, PermissionDeniedError
from .models import CallerIdentity, MatchCandidate, Reply, TimeEntry
from .weeks import format_day_label, format_duration

logger = logging.getLogger(__name__)

MAX_LOG_MINUTES = 24 * 60

TRACKING_DISABLED_TEXT = (
    "❌ Time tracking is not enabled. Enable it in *Settings → Timesheet Preferences* "
    "in the web app."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_minutes(start: datetime | None, end: datetime) -> int:
    if start is None:
        return 0
    if start.tzinfo is None and end.tzinfo is not None:
        start = start.replace(tzinfo=end.tzinfo)
    return max(0, int((end - start).total_seconds() // 60))


class TimerService:
    """Timer sub-commands: start, stop, log, status.

    Attributes:
        directory: Entity lookup for project references
        max_log_minutes: Longest manual log accepted
    """

    def __init__(
        self,
        directory: EntityDirectory,
        clock: Callable[[], datetime] | None = None,
        max_log_minutes: int = MAX_LOG_MINUTES,
    ) -> None:
        self.directory = directory
        self.backend = directory.backend
        self.max_log_minutes = max_log_minutes
        self._clock = clock or _utcnow

    async def start(self, caller: CallerIdentity, project_query: str | None) -> Reply:
        """Start a timer on a project, or list recent projects if none given."""
        await self._require_tracking(caller)

        with backend_errors("Loading timer"):
            running = await self.backend.running_timer(caller.user_id)
        if running is not None:
            elapsed = _elapsed_minutes(running.started_at, self._clock())
            return Reply(
                text=(
                    f"⏱ Timer already running on *{running.project_name}* "
                    f"({format_duration(elapsed)})\n\nUse `/zhuzh stop` first."
                ),
                ephemeral=True,
            )

        if not project_query:
            return await self._recent_projects_hint(caller)

        project = await self._top_project(caller, project_query)
        now = self._clock()
        entry = TimeEntry(
            id=str(uuid.uuid4()),
            user_id=caller.user_id,
            project_id=project.id,
            entry_type="timer",
            entry_date=now.date(),
            started_at=now,
        )
        with backend_errors("Starting timer"):
            await self.backend.add_time_entry(entry)
        logger.info(f"Timer started for {caller.user_id} on {project.id}")

        started = now.strftime("%I:%M %p").lstrip("0")
        return Reply(
            text=(
                f"⏱ *Timer started*\n\n*{project.display_name}*\nStarted at {started}\n\n"
                "Use `/zhuzh stop` when done."
            ),
            ephemeral=True,
        )

    async def stop(self, caller: CallerIdentity, notes: str | None = None) -> Reply:
        """Stop the running timer and report today's total."""
        with backend_errors("Loading timer"):
            running = await self.backend.running_timer(caller.user_id)
        if running is None:
            raise InvalidInputError("❌ No timer running. Use `/zhuzh start [project]` to start one.")

        now = self._clock()
        minutes = _elapsed_minutes(running.started_at, now)
        combined = running.notes
        if notes:
            combined = f"{running.notes}\n{notes}" if running.notes else notes

        with backend_errors("Stopping timer"):
            await self.backend.stop_timer(running.id, now, minutes, combined)
            today = await self.backend.time_entries_for_day(caller.user_id, now.date())
        logger.info(f"Timer {running.id} stopped after {minutes}m")

        total = sum(e.duration_minutes for e in today)
        return Reply(
            text=(
                f"✅ *Time logged*\n\n*{running.project_name}*\n"
                f"Duration: *{format_duration(minutes)}*\n\n"
                f"Today's total: {format_duration(total)}"
            ),
            ephemeral=True,
            metadata={"duration_minutes": minutes, "today_minutes": total},
        )

    async def log(
        self,
        caller: CallerIdentity,
        hours: float,
        minutes: int | None,
        project_query: str | None,
    ) -> Reply:
        """Record a manual time entry of ``hours`` plus ``minutes``."""
        await self._require_tracking(caller)

        total = round(hours * 60) + (minutes or 0)
        if total <= 0 or total > self.max_log_minutes:
            raise InvalidInputError(
                "❌ Invalid duration. Must be between 1 minute and "
                f"{format_duration(self.max_log_minutes)}."
            )
        if not project_query:
            raise InvalidInputError("❌ Please specify a project: `/zhuzh log 2h Project Name`")

        project = await self._top_project(caller, project_query)
        entry = TimeEntry(
            id=str(uuid.uuid4()),
            user_id=caller.user_id,
            project_id=project.id,
            entry_type="manual",
            entry_date=self._clock().date(),
            duration_minutes=total,
        )
        with backend_errors("Logging time"):
            await self.backend.add_time_entry(entry)
        logger.info(f"Logged {total}m for {caller.user_id} on {project.id}")

        return Reply(
            text=f"✅ Logged *{format_duration(total)}* to *{project.display_name}*",
            ephemeral=True,
            metadata={"duration_minutes": total},
        )

    async def status(self, caller: CallerIdentity) -> Reply:
        """Summarize today's time per project plus any running timer."""
        now = self._clock()
        with backend_errors("Loading time entries"):
            entries = await self.backend.time_entries_for_day(caller.user_id, now.date())
            running = await self.backend.running_timer(caller.user_id)

        by_project: dict[str, int] = defaultdict(int)
        for entry in entries:
            by_project[entry.project_name or "Unknown"] += entry.duration_minutes

        if not by_project and running is None:
            return Reply(
                text=(
                    "📊 *Today's Time*\n\nNo time logged yet. Use `/zhuzh start [project]` "
                    "or `/zhuzh log 2h [project]`"
                ),
                ephemeral=True,
            )

        ranked = sorted(by_project.items(), key=lambda item: item[1], reverse=True)
        lines = "\n".join(f"- *{name}* -- {format_duration(mins)}" for name, mins in ranked)
        total = sum(by_project.values())

        running_info = ""
        if running is not None:
            elapsed = _elapsed_minutes(running.started_at, now)
            running_info = (
                f"\n\n⏱ *Currently tracking:* {running.project_name} ({format_duration(elapsed)})"
            )

        return Reply(
            text=(
                f"📊 *Today's Time -- {format_day_label(now.date())}*\n\n"
                f"{lines or '_No completed entries_'}\n"
                f"━━━━━━━━━━━━━━━━\n*Total:* {format_duration(total)}{running_info}"
            ),
            ephemeral=True,
            metadata={"total_minutes": total},
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_tracking(self, caller: CallerIdentity) -> None:
        with backend_errors("Loading person"):
            person = await self.backend.get_user(caller.user_id)
        if person is None or not person.time_tracking_enabled:
            raise PermissionDeniedError(TRACKING_DISABLED_TEXT)

    async def _top_project(self, caller: CallerIdentity, query: str) -> MatchCandidate:
        matches = await self.directory.match_projects(caller.org_id, query)
        if not matches:
            raise NotFoundError("project", query)
        return matches[0]

    async def _recent_projects_hint(self, caller: CallerIdentity) -> Reply:
        with backend_errors("Loading recent projects"):
            recent = await self.backend.recent_projects(caller.user_id, limit=5)
        names = [p.name for p in recent]
        example = names[0] if names else "Project Name"
        listing = "\n".join(f"- {name}" for name in names)
        text = f"Which project? Try:\n`/zhuzh start {example}`"
        if listing:
            text += f"\n\nYour recent projects:\n{listing}"
        return Reply(text=text, ephemeral=True)


__all__ = ["MAX_LOG_MINUTES", "TimerService"]
