"""Domain models for Zhuzh.

People and projects are the entities users refer to in free text. Allocations
and time entries are the records the assistant reads and writes. MatchCandidate
is the scored view of an entity produced on every match call; it is never
persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Project statuses that are offered to the matcher
ACTIVE_PROJECT_STATUSES: frozenset[str] = frozenset({"planning", "active", "on-hold"})


class EntityKind(str, Enum):
    """Kinds of entity a free-text fragment can refer to."""

    PERSON = "person"
    PROJECT = "project"


class Role(str, Enum):
    """Organization roles. PMs and admins may plan hours for others."""

    EMPLOYEE = "employee"
    PM = "pm"
    ADMIN = "admin"

    @property
    def is_elevated(self) -> bool:
        return self in (Role.PM, Role.ADMIN)


# =============================================================================
# Entities
# =============================================================================


class Entity(BaseModel):
    """A named thing users can refer to by name or alias.

    Attributes:
        id: Opaque identifier
        name: Display name
        aliases: Comma-separated nicknames/aliases (e.g. "GCN, Next")
        org_id: Owning organization
    """

    id: str
    name: str
    aliases: str | None = None
    org_id: str | None = None

    @property
    def alias_list(self) -> list[str]:
        """Lower-cased, trimmed, non-empty aliases."""
        if not self.aliases:
            return []
        return [a.strip().lower() for a in self.aliases.split(",") if a.strip()]

    @property
    def detail(self) -> str:
        """Secondary label shown next to the name in prompts."""
        return ""

    @property
    def secondary(self) -> str | None:
        """Secondary searchable field, if the entity kind has one."""
        return None


class Person(Entity):
    """An active member of an organization."""

    role: Role = Role.EMPLOYEE
    job_title: str | None = None
    slack_user_id: str | None = None
    is_active: bool = True
    time_tracking_enabled: bool = False
    weekly_capacity: float | None = None

    @property
    def detail(self) -> str:
        return self.job_title or self.role.value


class Project(Entity):
    """A project hours can be planned and logged against."""

    client_name: str | None = None
    budget_hours: float = 0.0
    status: str = "active"

    @property
    def detail(self) -> str:
        return self.client_name or "No Client"

    @property
    def secondary(self) -> str | None:
        return self.client_name

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_PROJECT_STATUSES


class EntityRef(BaseModel):
    """A resolved reference to an entity, carried between conversation turns."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class MatchCandidate(BaseModel):
    """One scored candidate for a free-text entity reference.

    Attributes:
        id: Entity identifier
        display_name: Entity name as shown to the user
        detail: Job title/role for people, client name for projects
        score: Match quality, 0-100
    """

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    detail: str = ""
    score: int = Field(ge=0, le=100)

    def to_ref(self) -> EntityRef:
        return EntityRef(id=self.id, name=self.display_name)


# =============================================================================
# Caller identity
# =============================================================================


class CallerIdentity(BaseModel):
    """The resolved user issuing a command."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    org_id: str
    role: Role = Role.EMPLOYEE

    def to_ref(self) -> EntityRef:
        return EntityRef(id=self.user_id, name=self.name)

    @classmethod
    def from_person(cls, person: Person) -> "CallerIdentity":
        return cls(
            user_id=person.id,
            name=person.name,
            org_id=person.org_id or "",
            role=person.role,
        )


# =============================================================================
# Records
# =============================================================================


class Allocation(BaseModel):
    """Planned hours for one user on one project for one week.

    Attributes:
        week_start: Monday of the planned week
        planned_hours: Planned hours, accumulated by upsert-by-addition
    """

    id: str
    user_id: str
    project_id: str
    week_start: date
    planned_hours: float
    org_id: str | None = None
    created_by: str | None = None
    is_billable: bool = True
    project_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON persistence."""
        return self.model_dump(mode="json", exclude={"project_name"})


class AllocationUpsert(BaseModel):
    """Outcome of an upsert-by-addition.

    Attributes:
        total_hours: Planned hours after the add
        created: True when the row did not exist before this add
    """

    total_hours: float
    created: bool


class TimeEntry(BaseModel):
    """A live time-tracking record (running/stopped timer or manual log)."""

    id: str
    user_id: str
    project_id: str
    entry_type: Literal["timer", "manual"]
    entry_date: date
    started_at: datetime | None = None
    stopped_at: datetime | None = None
    duration_minutes: int = 0
    notes: str | None = None
    source: str = "slack"
    project_name: str | None = None

    @property
    def is_running(self) -> bool:
        return self.entry_type == "timer" and self.stopped_at is None

    @property
    def is_complete(self) -> bool:
        return self.entry_type == "manual" or self.stopped_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON persistence."""
        return self.model_dump(mode="json", exclude={"project_name"})


class ProjectBudget(BaseModel):
    """Budget burn for a project."""

    project_id: str
    name: str
    client_name: str | None = None
    budget_hours: float = 0.0
    hours_used: float = 0.0

    @property
    def percent_used(self) -> int:
        if self.budget_hours <= 0:
            return 0
        return round(self.hours_used / self.budget_hours * 100)

    @property
    def remaining(self) -> float:
        return self.budget_hours - self.hours_used

    @property
    def status_marker(self) -> str:
        if self.percent_used >= 100:
            return "🔴"
        if self.percent_used >= 75:
            return "🟡"
        return "🟢"


class Availability(BaseModel):
    """Unplanned capacity for one person in one week."""

    user_id: str
    user_name: str
    allocated_hours: float
    available_hours: float


# =============================================================================
# Outbound replies
# =============================================================================


@dataclass
class Reply:
    """A message to post back to the user.

    Attributes:
        text: Plain-text/mrkdwn body (also the notification fallback)
        blocks: Optional Slack Block Kit blocks
        ephemeral: Whether only the caller should see the message
    """

    text: str
    blocks: list[dict[str, Any]] | None = None
    ephemeral: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ACTIVE_PROJECT_STATUSES",
    "Allocation",
    "AllocationUpsert",
    "Availability",
    "CallerIdentity",
    "Entity",
    "EntityKind",
    "EntityRef",
    "MatchCandidate",
    "Person",
    "Project",
    "ProjectBudget",
    "Reply",
    "Role",
    "TimeEntry",
]
