"""Action executors: the operations a resolved command finally performs.

Each executor talks to the data backend and renders a Reply. Backend failures
are converted to PersistenceError so the conversation boundary can report them
uniformly.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator

from .backends import BackendError, DataBackend
from .errors import NotFoundError, PersistenceError
from .models import Availability, EntityRef, ProjectBudget, Reply
from .weeks import format_hours, format_week_label

logger = logging.getLogger(__name__)

DEFAULT_WEEKLY_CAPACITY = 40.0


@contextmanager
def backend_errors(operation: str) -> Iterator[None]:
    """Convert backend failures inside the block to PersistenceError."""
    try:
        yield
    except BackendError as e:
        logger.error(f"{operation} failed: {e}")
        raise PersistenceError(f"{operation}: {e}") from e


class ActionExecutor:
    """Executes allocation, reporting and availability actions.

    Attributes:
        backend: Data backend
        weekly_capacity: Default weekly hours per person
    """

    def __init__(
        self,
        backend: DataBackend,
        weekly_capacity: float = DEFAULT_WEEKLY_CAPACITY,
    ) -> None:
        self.backend = backend
        self.weekly_capacity = weekly_capacity

    # =========================================================================
    # Allocations
    # =========================================================================

    async def add_hours(
        self,
        user: EntityRef,
        project: EntityRef,
        hours: float,
        week_start: date,
        org_id: str | None = None,
        created_by: str | None = None,
    ) -> Reply:
        """Add ``hours`` to the user's allocation (upsert-by-addition).

        Args:
            user: Person the hours are planned for
            project: Project the hours are planned on
            hours: Hours to add (positive)
            week_start: Monday of the target week
            org_id: Organization recorded on a newly created allocation
            created_by: Caller recorded on a newly created allocation

        Returns:
            Confirmation reply, including the running total when the
            allocation already existed
        """
        with backend_errors("Saving allocation"):
            result = await self.backend.upsert_allocation(
                user.id,
                project.id,
                week_start,
                hours,
                org_id=org_id,
                created_by=created_by,
            )
        total = result.total_hours
        logger.info(
            f"Allocated {hours}h on {project.id} for {user.id} week {week_start} (total {total}h)"
        )

        note = "" if result.created else f" (total: {format_hours(total)}h)"
        week = format_week_label(week_start)
        headline = (
            f"✅ Added *{format_hours(hours)}h* to *{project.name}* for {user.name}{note}"
        )
        return Reply(
            text=f"{headline}\n📅 {week}",
            blocks=[
                {"type": "section", "text": {"type": "mrkdwn", "text": headline}},
                {"type": "context", "elements": [{"type": "mrkdwn", "text": f"📅 {week}"}]},
            ],
            metadata={"total_hours": total},
        )

    async def planned_hours(self, user_id: str, week_start: date) -> float:
        """Total planned hours for a user in a week."""
        with backend_errors("Loading allocations"):
            allocations = await self.backend.allocations_for_week(user_id, week_start)
        return sum(a.planned_hours for a in allocations)

    async def capacity_for(self, user_id: str) -> float:
        with backend_errors("Loading person"):
            person = await self.backend.get_user(user_id)
        if person is not None and person.weekly_capacity:
            return person.weekly_capacity
        return self.weekly_capacity

    async def show_hours(self, user: EntityRef, week_start: date) -> Reply:
        """List a user's allocations for a week."""
        with backend_errors("Loading allocations"):
            allocations = await self.backend.allocations_for_week(user.id, week_start)

        week = format_week_label(week_start)
        if not allocations:
            return Reply(text=f"📊 *{user.name}* has no allocations for the week of {week}.")

        total = sum(a.planned_hours for a in allocations)
        lines = "\n".join(
            f"- {a.project_name or 'Unknown'}: *{format_hours(a.planned_hours)}h*"
            for a in sorted(allocations, key=lambda a: a.planned_hours, reverse=True)
        )
        body = f"📊 *{user.name}'s hours* for {week}:\n\n{lines}\n\n*Total: {format_hours(total)}h*"
        return Reply(
            text=body,
            blocks=[{"type": "section", "text": {"type": "mrkdwn", "text": body}}],
            metadata={"total_hours": total},
        )

    # =========================================================================
    # Reporting
    # =========================================================================

    async def project_budget(self, project: EntityRef) -> ProjectBudget:
        with backend_errors("Loading project"):
            record = await self.backend.get_project(project.id)
            if record is None:
                raise NotFoundError("project", project.name)
            used = await self.backend.project_hours_used(project.id)
        return ProjectBudget(
            project_id=record.id,
            name=record.name,
            client_name=record.client_name,
            budget_hours=record.budget_hours,
            hours_used=used,
        )

    async def project_status(self, project: EntityRef) -> Reply:
        """Report budget burn for a project."""
        budget = await self.project_budget(project)
        budget_str = format_hours(budget.budget_hours)
        used = format_hours(budget.hours_used)
        remaining = format_hours(budget.remaining)
        client = budget.client_name or "No Client"

        header = f"{budget.status_marker} *{budget.name}*\n_{client}_"
        return Reply(
            text=(
                f"{header}\nBudget: {budget_str}h • Used: {used}h ({budget.percent_used}%) "
                f"• Remaining: {remaining}h"
            ),
            blocks=[
                {"type": "section", "text": {"type": "mrkdwn", "text": header}},
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Budget:*\n{budget_str}h"},
                        {
                            "type": "mrkdwn",
                            "text": f"*Used:*\n{used}h ({budget.percent_used}%)",
                        },
                        {"type": "mrkdwn", "text": f"*Remaining:*\n{remaining}h"},
                    ],
                },
            ],
            metadata={"percent_used": budget.percent_used},
        )

    async def availability(self, org_id: str, week_start: date) -> list[Availability]:
        """People with unplanned capacity, most available first."""
        with backend_errors("Loading availability"):
            people = await self.backend.find_active_users(org_id)
            planned = await self.backend.planned_hours_by_user(org_id, week_start)

        result = []
        for person in people:
            capacity = person.weekly_capacity or self.weekly_capacity
            allocated = planned.get(person.id, 0.0)
            available = capacity - allocated
            if available > 0:
                result.append(
                    Availability(
                        user_id=person.id,
                        user_name=person.name,
                        allocated_hours=allocated,
                        available_hours=available,
                    )
                )
        result.sort(key=lambda a: a.available_hours, reverse=True)
        return result

    async def who_is_available(self, org_id: str, week_start: date) -> Reply:
        available = await self.availability(org_id, week_start)
        week = format_week_label(week_start)
        if not available:
            return Reply(text=f"😅 Everyone is fully booked for {week}.")

        lines = "\n".join(
            f"- *{a.user_name}*: {format_hours(a.available_hours)}h free "
            f"({format_hours(a.allocated_hours)}h planned)"
            for a in available
        )
        body = f"🙋 *Available for {week}:*\n\n{lines}"
        return Reply(
            text=body,
            blocks=[{"type": "section", "text": {"type": "mrkdwn", "text": body}}],
        )


__all__ = ["ActionExecutor", "DEFAULT_WEEKLY_CAPACITY", "backend_errors"]
