"""Supabase (PostgREST) HTTP backend for Zhuzh.

Talks to the hosted Postgres database through its REST API. The schema is an
external contract; the only server-side addition this backend relies on is the
``increment_allocation`` function from ``sql/015_increment_allocation.sql``.
It performs the insert-or-add upsert in one statement so concurrent adds never
lose an update, and returns one ``(planned_hours, created)`` row.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import httpx

from ..models import (
    ACTIVE_PROJECT_STATUSES,
    Allocation,
    AllocationUpsert,
    Person,
    Project,
    Role,
    TimeEntry,
)
from . import BackendError, BackendUnavailableError, BackendWriteError
from .base import DataBackend

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = "id,name,aliases,budget_hours,status,org_id,client:clients(name)"
USER_COLUMNS = (
    "id,name,role,job_title,nicknames,slack_user_id,is_active,time_tracking_enabled,org_id"
)
TIME_ENTRY_COLUMNS = (
    "id,user_id,project_id,entry_type,entry_date,started_at,stopped_at,"
    "duration_minutes,notes,source,project:projects(name)"
)


class SupabaseBackend(DataBackend):
    """Async PostgREST client for the Zhuzh schema.

    Example:
        >>> async with SupabaseBackend(url, service_key) as backend:
        ...     projects = await backend.find_active_projects(org_id)

    Attributes:
        _endpoint: REST base URL (``<project url>/rest/v1``)
        _client: httpx.AsyncClient, created lazily
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            url: Supabase project URL (e.g. https://xyz.supabase.co)
            api_key: Service or anon key sent as apikey and bearer token
            timeout: Request timeout in seconds
            client: Pre-built client (tests inject one with a mock transport)
        """
        self._endpoint = url.rstrip("/") + "/rest/v1"
        self._api_key = api_key
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = self._headers
        if prefer:
            headers["Prefer"] = prefer
        try:
            resp = await self._get_client().request(
                method,
                f"{self._endpoint}/{path}",
                params=params,
                json=json,
                headers=headers,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            error_cls = BackendWriteError if method != "GET" else BackendError
            raise error_cls(
                f"{method} {path} failed with status {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.ConnectError as e:
            raise BackendUnavailableError(f"Cannot connect to {self._endpoint}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if not resp.content:
            return None
        return resp.json()

    # =========================================================================
    # Directory
    # =========================================================================

    async def find_active_projects(self, org_id: str) -> list[Project]:
        rows = await self._request(
            "GET",
            "projects",
            params={
                "select": PROJECT_COLUMNS,
                "org_id": f"eq.{org_id}",
                "status": f"in.({','.join(sorted(ACTIVE_PROJECT_STATUSES))})",
            },
        )
        return [_project_from_row(r) for r in rows or []]

    async def find_active_users(self, org_id: str) -> list[Person]:
        rows = await self._request(
            "GET",
            "users",
            params={"select": USER_COLUMNS, "org_id": f"eq.{org_id}", "is_active": "eq.true"},
        )
        return [_person_from_row(r) for r in rows or []]

    async def get_user(self, user_id: str) -> Person | None:
        rows = await self._request(
            "GET",
            "users",
            params={"select": USER_COLUMNS, "id": f"eq.{user_id}", "limit": 1},
        )
        return _person_from_row(rows[0]) if rows else None

    async def get_project(self, project_id: str) -> Project | None:
        rows = await self._request(
            "GET",
            "projects",
            params={"select": PROJECT_COLUMNS, "id": f"eq.{project_id}", "limit": 1},
        )
        return _project_from_row(rows[0]) if rows else None

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
        rows = await self._request(
            "POST",
            "rpc/increment_allocation",
            json={
                "p_user_id": user_id,
                "p_project_id": project_id,
                "p_week_start": week_start.isoformat(),
                "p_delta_hours": delta_hours,
                "p_org_id": org_id,
                "p_created_by": created_by or user_id,
            },
        )
        row = rows[0] if isinstance(rows, list) and rows else rows
        if not isinstance(row, dict) or row.get("planned_hours") is None:
            raise BackendWriteError("increment_allocation returned no total")
        return AllocationUpsert(
            total_hours=float(row["planned_hours"]),
            created=bool(row.get("created", False)),
        )

    async def allocations_for_week(self, user_id: str, week_start: date) -> list[Allocation]:
        rows = await self._request(
            "GET",
            "allocations",
            params={
                "select": "id,user_id,project_id,week_start,planned_hours,project:projects(name)",
                "user_id": f"eq.{user_id}",
                "week_start": f"eq.{week_start.isoformat()}",
            },
        )
        allocations = []
        for row in rows or []:
            project = row.pop("project", None) or {}
            row["project_name"] = project.get("name")
            allocations.append(Allocation.model_validate(row))
        return allocations

    async def planned_hours_by_user(self, org_id: str, week_start: date) -> dict[str, float]:
        rows = await self._request(
            "GET",
            "allocations",
            params={
                "select": "user_id,planned_hours",
                "org_id": f"eq.{org_id}",
                "week_start": f"eq.{week_start.isoformat()}",
            },
        )
        totals: dict[str, float] = {}
        for row in rows or []:
            totals[row["user_id"]] = totals.get(row["user_id"], 0.0) + float(row["planned_hours"])
        return totals

    async def project_hours_used(self, project_id: str) -> float:
        rows = await self._request(
            "GET",
            "time_entries",
            params={"select": "actual_hours", "project_id": f"eq.{project_id}"},
        )
        return sum(float(r.get("actual_hours") or 0) for r in rows or [])

    # =========================================================================
    # Live time tracking
    # =========================================================================

    async def running_timer(self, user_id: str) -> TimeEntry | None:
        rows = await self._request(
            "GET",
            "time_entries_live",
            params={
                "select": TIME_ENTRY_COLUMNS,
                "user_id": f"eq.{user_id}",
                "stopped_at": "is.null",
                "entry_type": "eq.timer",
                "limit": 1,
            },
        )
        return _time_entry_from_row(rows[0]) if rows else None

    async def add_time_entry(self, entry: TimeEntry) -> TimeEntry:
        rows = await self._request(
            "POST",
            "time_entries_live",
            params={"select": TIME_ENTRY_COLUMNS},
            json=entry.to_dict(),
            prefer="return=representation",
        )
        return _time_entry_from_row(rows[0]) if rows else entry

    async def stop_timer(
        self,
        entry_id: str,
        stopped_at: datetime,
        duration_minutes: int,
        notes: str | None,
    ) -> TimeEntry:
        rows = await self._request(
            "PATCH",
            "time_entries_live",
            params={"id": f"eq.{entry_id}", "select": TIME_ENTRY_COLUMNS},
            json={
                "stopped_at": stopped_at.isoformat(),
                "duration_minutes": duration_minutes,
                "notes": notes,
            },
            prefer="return=representation",
        )
        if not rows:
            raise BackendWriteError(f"Timer {entry_id} not found")
        return _time_entry_from_row(rows[0])

    async def time_entries_for_day(self, user_id: str, day: date) -> list[TimeEntry]:
        rows = await self._request(
            "GET",
            "time_entries_live",
            params={
                "select": TIME_ENTRY_COLUMNS,
                "user_id": f"eq.{user_id}",
                "entry_date": f"eq.{day.isoformat()}",
                "or": "(entry_type.eq.manual,stopped_at.not.is.null)",
            },
        )
        return [_time_entry_from_row(r) for r in rows or []]

    async def recent_projects(self, user_id: str, limit: int = 5) -> list[Project]:
        rows = await self._request(
            "GET",
            "allocations",
            params={
                "select": f"week_start,project:projects({PROJECT_COLUMNS})",
                "user_id": f"eq.{user_id}",
                "order": "week_start.desc",
                "limit": limit * 4,
            },
        )
        projects: list[Project] = []
        seen: set[str] = set()
        for row in rows or []:
            data = row.get("project")
            if not data or data["id"] in seen:
                continue
            seen.add(data["id"])
            projects.append(_project_from_row(data))
            if len(projects) >= limit:
                break
        return projects

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SupabaseBackend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# =============================================================================
# Row mapping
# =============================================================================


def _project_from_row(row: dict[str, Any]) -> Project:
    client = row.get("client") or {}
    return Project(
        id=row["id"],
        name=row["name"],
        aliases=row.get("aliases"),
        org_id=row.get("org_id"),
        client_name=client.get("name"),
        budget_hours=float(row.get("budget_hours") or 0),
        status=row.get("status") or "active",
    )


def _person_from_row(row: dict[str, Any]) -> Person:
    return Person(
        id=row["id"],
        name=row["name"],
        aliases=row.get("nicknames"),
        org_id=row.get("org_id"),
        role=_role(row.get("role")),
        job_title=row.get("job_title"),
        slack_user_id=row.get("slack_user_id"),
        is_active=row.get("is_active", True),
        time_tracking_enabled=bool(row.get("time_tracking_enabled")),
    )


def _role(value: str | None) -> Role:
    # Roles outside the enum (e.g. freelancer) plan only for themselves
    try:
        return Role(value or "employee")
    except ValueError:
        return Role.EMPLOYEE


def _time_entry_from_row(row: dict[str, Any]) -> TimeEntry:
    data = dict(row)
    project = data.pop("project", None) or {}
    data["project_name"] = project.get("name")
    return TimeEntry.model_validate(data)


__all__ = ["SupabaseBackend"]
