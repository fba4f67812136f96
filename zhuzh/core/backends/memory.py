"""In-memory data backend.

Holds the directory and records in plain dicts. Every operation completes
without awaiting anything else, so under a single event loop each call
(including the read-add-write of upsert_allocation) is atomic.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime
from typing import Iterable

from ..models import Allocation, AllocationUpsert, Person, Project, TimeEntry
from .base import DataBackend

logger = logging.getLogger(__name__)


class InMemoryBackend(DataBackend):
    """Dict-backed backend seeded with people and projects.

    Example:
        >>> backend = InMemoryBackend(
        ...     people=[Person(id="u1", name="Ryan Daniels", org_id="org")],
        ...     projects=[Project(id="p1", name="GCN", org_id="org")],
        ... )
        >>> await backend.upsert_allocation("u1", "p1", date(2026, 1, 26), 4)
        AllocationUpsert(total_hours=4.0, created=True)
    """

    def __init__(
        self,
        people: Iterable[Person] | None = None,
        projects: Iterable[Project] | None = None,
        org_id: str | None = None,
    ) -> None:
        self.org_id = org_id
        self.people: dict[str, Person] = {p.id: p for p in people or []}
        self.projects: dict[str, Project] = {p.id: p for p in projects or []}
        self.allocations: dict[tuple[str, str, date], Allocation] = {}
        self.time_entries: dict[str, TimeEntry] = {}
        # Confirmed actual hours per project (timesheet confirmations)
        self.actual_hours: dict[str, float] = defaultdict(float)

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_person(self, person: Person) -> None:
        self.people[person.id] = person

    def add_project(self, project: Project) -> None:
        self.projects[project.id] = project

    def record_actual_hours(self, project_id: str, hours: float) -> None:
        self.actual_hours[project_id] += hours

    @property
    def default_org_id(self) -> str | None:
        return self.org_id

    # =========================================================================
    # Directory
    # =========================================================================

    async def find_active_projects(self, org_id: str) -> list[Project]:
        return [p for p in self.projects.values() if p.org_id == org_id and p.is_active]

    async def find_active_users(self, org_id: str) -> list[Person]:
        return [p for p in self.people.values() if p.org_id == org_id and p.is_active]

    async def get_user(self, user_id: str) -> Person | None:
        return self.people.get(user_id)

    async def get_project(self, project_id: str) -> Project | None:
        return self.projects.get(project_id)

    # =========================================================================
    # Allocations
    # =========================================================================

    async def upsert_allocation(
        self,
        user_id: str,
        project_id: str,
        week_start: date,
        delta_hours: float,
        org_id: str | None = None,
        created_by: str | None = None,
    ) -> AllocationUpsert:
        key = (user_id, project_id, week_start)
        existing = self.allocations.get(key)
        if existing is not None:
            total = existing.planned_hours + delta_hours
            self.allocations[key] = existing.model_copy(update={"planned_hours": total})
        else:
            total = float(delta_hours)
            self.allocations[key] = Allocation(
                id=str(uuid.uuid4()),
                user_id=user_id,
                project_id=project_id,
                week_start=week_start,
                planned_hours=total,
                org_id=org_id,
                created_by=created_by or user_id,
            )
        self._after_write()
        return AllocationUpsert(total_hours=total, created=existing is None)

    async def allocations_for_week(self, user_id: str, week_start: date) -> list[Allocation]:
        result = []
        for (uid, project_id, week), allocation in self.allocations.items():
            if uid == user_id and week == week_start:
                project = self.projects.get(project_id)
                result.append(
                    allocation.model_copy(
                        update={"project_name": project.name if project else None}
                    )
                )
        return result

    async def planned_hours_by_user(self, org_id: str, week_start: date) -> dict[str, float]:
        totals: dict[str, float] = defaultdict(float)
        for (uid, _, week), allocation in self.allocations.items():
            person = self.people.get(uid)
            if week == week_start and person is not None and person.org_id == org_id:
                totals[uid] += allocation.planned_hours
        return dict(totals)

    async def project_hours_used(self, project_id: str) -> float:
        return self.actual_hours.get(project_id, 0.0)

    # =========================================================================
    # Live time tracking
    # =========================================================================

    async def running_timer(self, user_id: str) -> TimeEntry | None:
        for entry in self.time_entries.values():
            if entry.user_id == user_id and entry.is_running:
                return self._with_project_name(entry)
        return None

    async def add_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self.time_entries[entry.id] = entry
        self._after_write()
        return self._with_project_name(entry)

    async def stop_timer(
        self,
        entry_id: str,
        stopped_at: datetime,
        duration_minutes: int,
        notes: str | None,
    ) -> TimeEntry:
        entry = self.time_entries[entry_id].model_copy(
            update={
                "stopped_at": stopped_at,
                "duration_minutes": duration_minutes,
                "notes": notes,
            }
        )
        self.time_entries[entry_id] = entry
        self._after_write()
        return self._with_project_name(entry)

    async def time_entries_for_day(self, user_id: str, day: date) -> list[TimeEntry]:
        return [
            self._with_project_name(e)
            for e in self.time_entries.values()
            if e.user_id == user_id and e.entry_date == day and e.is_complete
        ]

    async def recent_projects(self, user_id: str, limit: int = 5) -> list[Project]:
        allocations = sorted(
            (a for a in self.allocations.values() if a.user_id == user_id),
            key=lambda a: a.week_start,
            reverse=True,
        )
        seen: list[Project] = []
        for allocation in allocations:
            project = self.projects.get(allocation.project_id)
            if project is not None and project not in seen:
                seen.append(project)
            if len(seen) >= limit:
                break
        return seen

    # =========================================================================
    # Helpers
    # =========================================================================

    def _with_project_name(self, entry: TimeEntry) -> TimeEntry:
        project = self.projects.get(entry.project_id)
        return entry.model_copy(update={"project_name": project.name if project else None})

    def _after_write(self) -> None:
        """Hook for subclasses that persist after every mutation."""
        return None


__all__ = ["InMemoryBackend"]
