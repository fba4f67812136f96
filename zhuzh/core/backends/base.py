"""Abstract base class for Zhuzh data backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from ..models import Allocation, AllocationUpsert, Person, Project, TimeEntry


class DataBackend(ABC):
    """Storage contract used by the matcher's callers and the action executors.

    The database schema is an external contract; implementations translate
    these calls into queries against it.

    Atomicity:
    - upsert_allocation() must be a single insert-or-add operation so that two
      concurrent adds for the same (user, project, week) cannot lose an update.

    Errors:
    - Implementations raise BackendError subclasses on storage failures.
    """

    # =========================================================================
    # Directory
    # =========================================================================

    @abstractmethod
    async def find_active_projects(self, org_id: str) -> list[Project]:
        """Projects in planning, active or on-hold status for an org."""
        ...

    @abstractmethod
    async def find_active_users(self, org_id: str) -> list[Person]:
        """Active people in an org."""
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Person | None:
        ...

    @abstractmethod
    async def get_project(self, project_id: str) -> Project | None:
        ...

    # =========================================================================
    # Allocations
    # =========================================================================

    @abstractmethod
    async def upsert_allocation(
        self,
        user_id: str,
        project_id: str,
        week_start: date,
        delta_hours: float,
        org_id: str | None = None,
        created_by: str | None = None,
    ) -> AllocationUpsert:
        """Add ``delta_hours`` to the allocation, creating it if absent.

        Returns:
            The new planned-hours total and whether the row was created
        """
        ...

    @abstractmethod
    async def allocations_for_week(self, user_id: str, week_start: date) -> list[Allocation]:
        """A user's allocations for one week, with project names filled in."""
        ...

    @abstractmethod
    async def planned_hours_by_user(self, org_id: str, week_start: date) -> dict[str, float]:
        """Total planned hours per user id for one week."""
        ...

    @abstractmethod
    async def project_hours_used(self, project_id: str) -> float:
        """Hours used against a project's budget."""
        ...

    # =========================================================================
    # Live time tracking
    # =========================================================================

    @abstractmethod
    async def running_timer(self, user_id: str) -> TimeEntry | None:
        """The user's open timer, if any."""
        ...

    @abstractmethod
    async def add_time_entry(self, entry: TimeEntry) -> TimeEntry:
        ...

    @abstractmethod
    async def stop_timer(
        self,
        entry_id: str,
        stopped_at: datetime,
        duration_minutes: int,
        notes: str | None,
    ) -> TimeEntry:
        ...

    @abstractmethod
    async def time_entries_for_day(self, user_id: str, day: date) -> list[TimeEntry]:
        """Completed timers and manual logs for one day."""
        ...

    @abstractmethod
    async def recent_projects(self, user_id: str, limit: int = 5) -> list[Project]:
        """Projects the user was most recently allocated to, newest first."""
        ...

    @property
    def default_org_id(self) -> str | None:
        """Organization implied by the backend's own data, if any."""
        return None

    async def close(self) -> None:
        """Release connections. Must be idempotent."""
        return None


__all__ = ["DataBackend"]
