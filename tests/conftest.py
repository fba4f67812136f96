"""Shared fixtures: a seeded directory, a controllable clock, wired components."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from zhuzh.config import AppConfig
from zhuzh.core import create_assistant
from zhuzh.core.actions import ActionExecutor
from zhuzh.core.assistant import Assistant
from zhuzh.core.backends.memory import InMemoryBackend
from zhuzh.core.conversation import ConversationKey, InMemoryConversationStore
from zhuzh.core.directory import EntityDirectory
from zhuzh.core.models import CallerIdentity, Person, Project, Role
from zhuzh.core.resolver import DisambiguationResolver
from zhuzh.core.workflow import ResolutionWorkflow

ORG_ID = "org1"

# Wednesday; this week starts Jan 26, next week Feb 2
TODAY = date(2026, 1, 28)
THIS_MONDAY = date(2026, 1, 26)
NEXT_MONDAY = date(2026, 2, 2)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def make_people() -> list[Person]:
    return [
        Person(
            id="u1",
            name="Ryan Daniels",
            aliases="rd",
            role=Role.PM,
            job_title="Producer",
            org_id=ORG_ID,
            time_tracking_enabled=True,
        ),
        Person(id="u2", name="Ryan Brooks", job_title="Designer", org_id=ORG_ID),
        Person(
            id="u3",
            name="Alex Kim",
            job_title="Engineer",
            slack_user_id="U03ALEX",
            org_id=ORG_ID,
            time_tracking_enabled=True,
        ),
        Person(id="u4", name="Priya Shah", role=Role.ADMIN, job_title="Director", org_id=ORG_ID),
        Person(id="u5", name="Former Person", is_active=False, org_id=ORG_ID),
    ]


def make_projects() -> list[Project]:
    return [
        Project(
            id="p1",
            name="Google Cloud Next 2026",
            aliases="GCN, Next",
            client_name="Google",
            budget_hours=400,
            org_id=ORG_ID,
        ),
        Project(id="p2", name="Brand/GCN Refresh", client_name="Acme", budget_hours=100, org_id=ORG_ID),
        Project(
            id="p3",
            name="Acme Website",
            aliases="web",
            client_name="Acme",
            budget_hours=200,
            org_id=ORG_ID,
        ),
        Project(
            id="p4",
            name="Acme Mobile App",
            aliases="app",
            client_name="Acme",
            budget_hours=50,
            org_id=ORG_ID,
        ),
        Project(id="p5", name="Archived Thing", status="archived", org_id=ORG_ID),
    ]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 28, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def backend() -> InMemoryBackend:
    """In-memory backend seeded with five people and five projects."""
    backend = InMemoryBackend(make_people(), make_projects(), org_id=ORG_ID)
    backend.record_actual_hours("p1", 120)
    backend.record_actual_hours("p3", 180)
    return backend


@pytest.fixture
def store(clock: FakeClock) -> InMemoryConversationStore:
    return InMemoryConversationStore(clock=clock)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(backend="memory", data_path=tmp_path)


@pytest.fixture
def workflow(backend: InMemoryBackend, store: InMemoryConversationStore) -> ResolutionWorkflow:
    return ResolutionWorkflow(
        EntityDirectory(backend),
        DisambiguationResolver(),
        store,
        ActionExecutor(backend),
    )


@pytest.fixture
def assistant(
    config: AppConfig,
    backend: InMemoryBackend,
    store: InMemoryConversationStore,
    clock: FakeClock,
) -> Assistant:
    return create_assistant(
        config,
        backend=backend,
        store=store,
        timer_clock=clock,
        today=lambda: TODAY,
    )


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(user_id="u4", name="Priya Shah", org_id=ORG_ID, role=Role.ADMIN)


@pytest.fixture
def pm() -> CallerIdentity:
    return CallerIdentity(user_id="u1", name="Ryan Daniels", org_id=ORG_ID, role=Role.PM)


@pytest.fixture
def employee() -> CallerIdentity:
    return CallerIdentity(user_id="u3", name="Alex Kim", org_id=ORG_ID)


def key_for(caller: CallerIdentity, channel: str = "C1") -> ConversationKey:
    return ConversationKey(channel, caller.user_id)
