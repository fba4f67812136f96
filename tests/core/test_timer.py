"""Tests for zhuzh.core.timer."""

from __future__ import annotations

import pytest
from conftest import THIS_MONDAY, FakeClock

from zhuzh.core.backends.memory import InMemoryBackend
from zhuzh.core.directory import EntityDirectory
from zhuzh.core.errors import InvalidInputError, NotFoundError, PermissionDeniedError
from zhuzh.core.models import CallerIdentity
from zhuzh.core.timer import TimerService


@pytest.fixture
def timer(backend: InMemoryBackend, clock: FakeClock) -> TimerService:
    return TimerService(EntityDirectory(backend), clock=clock)


class TestStartStop:
    """Running timers."""

    @pytest.mark.asyncio
    async def test_start(
        self, timer: TimerService, backend: InMemoryBackend, employee: CallerIdentity
    ) -> None:
        reply = await timer.start(employee, "GCN")

        assert reply.text.startswith("⏱ *Timer started*\n\n*Google Cloud Next 2026*")
        assert "Started at 9:00 AM" in reply.text
        assert reply.ephemeral
        running = await backend.running_timer("u3")
        assert running.project_id == "p1"
        assert running.project_name == "Google Cloud Next 2026"

    @pytest.mark.asyncio
    async def test_start_takes_top_match_without_prompt(
        self, timer: TimerService, backend: InMemoryBackend, employee: CallerIdentity
    ) -> None:
        """'acme' is ambiguous for planning, but timers just take the first."""
        await timer.start(employee, "acme")
        assert (await backend.running_timer("u3")).project_id == "p3"

    @pytest.mark.asyncio
    async def test_start_twice(
        self, timer: TimerService, clock: FakeClock, employee: CallerIdentity
    ) -> None:
        await timer.start(employee, "GCN")
        clock.advance(minutes=25)

        reply = await timer.start(employee, "web")

        assert "Timer already running on *Google Cloud Next 2026* (25m)" in reply.text

    @pytest.mark.asyncio
    async def test_start_without_project_lists_recent(
        self, timer: TimerService, backend: InMemoryBackend, employee: CallerIdentity
    ) -> None:
        await backend.upsert_allocation("u3", "p3", THIS_MONDAY, 8)

        reply = await timer.start(employee, None)

        assert "`/zhuzh start Acme Website`" in reply.text
        assert "- Acme Website" in reply.text
        assert await backend.running_timer("u3") is None

    @pytest.mark.asyncio
    async def test_start_unknown_project(self, timer: TimerService, employee: CallerIdentity) -> None:
        with pytest.raises(NotFoundError):
            await timer.start(employee, "zzz")

    @pytest.mark.asyncio
    async def test_tracking_disabled(self, timer: TimerService, admin: CallerIdentity) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            await timer.start(admin, "GCN")
        assert "Time tracking is not enabled" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_stop(
        self,
        timer: TimerService,
        backend: InMemoryBackend,
        clock: FakeClock,
        employee: CallerIdentity,
    ) -> None:
        await timer.start(employee, "GCN")
        clock.advance(minutes=90)

        reply = await timer.stop(employee, "slides done")

        assert "Duration: *1h 30m*" in reply.text
        assert "Today's total: 1h 30m" in reply.text
        assert reply.metadata == {"duration_minutes": 90, "today_minutes": 90}
        assert await backend.running_timer("u3") is None
        entry = next(iter(backend.time_entries.values()))
        assert entry.notes == "slides done"

    @pytest.mark.asyncio
    async def test_stop_without_timer(self, timer: TimerService, employee: CallerIdentity) -> None:
        with pytest.raises(InvalidInputError, match="No timer running"):
            await timer.stop(employee)


class TestLog:
    """Manual time logs."""

    @pytest.mark.asyncio
    async def test_log(
        self, timer: TimerService, backend: InMemoryBackend, employee: CallerIdentity
    ) -> None:
        reply = await timer.log(employee, 2.0, 30, "GCN")

        assert reply.text == "✅ Logged *2h 30m* to *Google Cloud Next 2026*"
        entry = next(iter(backend.time_entries.values()))
        assert entry.entry_type == "manual"
        assert entry.duration_minutes == 150

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hours,minutes", [(0, None), (25, None), (24, 1)])
    async def test_log_out_of_range(
        self,
        hours: float,
        minutes: int | None,
        timer: TimerService,
        employee: CallerIdentity,
    ) -> None:
        with pytest.raises(InvalidInputError, match="Invalid duration"):
            await timer.log(employee, hours, minutes, "GCN")

    @pytest.mark.asyncio
    async def test_log_requires_project(self, timer: TimerService, employee: CallerIdentity) -> None:
        with pytest.raises(InvalidInputError, match="specify a project"):
            await timer.log(employee, 1, None, None)


class TestStatus:
    """Today's summary."""

    @pytest.mark.asyncio
    async def test_empty(self, timer: TimerService, employee: CallerIdentity) -> None:
        reply = await timer.status(employee)
        assert "No time logged yet" in reply.text

    @pytest.mark.asyncio
    async def test_breakdown_with_running_timer(
        self,
        timer: TimerService,
        clock: FakeClock,
        employee: CallerIdentity,
    ) -> None:
        await timer.log(employee, 1, None, "web")
        await timer.log(employee, 2, None, "GCN")
        await timer.start(employee, "GCN")
        clock.advance(minutes=15)

        reply = await timer.status(employee)

        lines = reply.text.splitlines()
        assert lines[0] == "📊 *Today's Time -- Jan 28*"
        assert lines[2] == "- *Google Cloud Next 2026* -- 2h"
        assert lines[3] == "- *Acme Website* -- 1h"
        assert "*Total:* 3h" in reply.text
        assert "⏱ *Currently tracking:* Google Cloud Next 2026 (15m)" in reply.text
        assert reply.metadata["total_minutes"] == 180
