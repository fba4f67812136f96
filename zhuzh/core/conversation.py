"""Conversation state for multi-turn exchanges.

When a command cannot finish in one message (an ambiguous name, missing hours,
an over-capacity warning) the assistant stores what it knows and what it is
waiting for, keyed by (channel, user). The next message from that user in that
channel is routed back to the pending state.

Key properties:
- At most one state per (channel, user); put() replaces any previous one
- States are immutable; transitions replace the state wholesale
- States expire after a TTL (10 minutes by default); expiry is silent
- Each state also has an opaque session id so button clicks can find it

State variants (discriminated by ``kind``):
- awaiting-project-choice / awaiting-user-choice: numbered options to pick from
- awaiting-hours: a resolved project waiting for an hours figure
- awaiting-yes-no: a fully resolved add waiting for confirmation
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Annotated, Callable, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .models import EntityRef, MatchCandidate

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=10)

Clock = Callable[[], datetime]


class ConversationKey(NamedTuple):
    """Identifies one user's conversation in one channel."""

    channel_id: str
    user_id: str

    def __str__(self) -> str:
        return f"{self.channel_id}_{self.user_id}"


class Presentation(str, Enum):
    """How a choice prompt is rendered."""

    TEXT = "text"  # Numbered list, user types a reply
    BUTTONS = "buttons"  # Interactive buttons carrying the session id


# =============================================================================
# Pending actions
# =============================================================================


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class AddHoursAction(_Action):
    """Add planned hours to a project for a user and week.

    Attributes:
        hours: Hours to add; None means the user still has to say
        week_start: Monday of the target week
        project_query: Project reference as typed
        project: Resolved project
        target_user_query: Person reference as typed ("for <user>")
        target_user: Resolved person; None with no query means the caller
        confirmed: Whether the user already approved going over capacity
    """

    action: Literal["add_hours"] = "add_hours"
    hours: float | None = None
    week_start: date
    project_query: str | None = None
    project: EntityRef | None = None
    target_user_query: str | None = None
    target_user: EntityRef | None = None
    confirmed: bool = False


class ShowHoursAction(_Action):
    """Show a person's allocations for a week."""

    action: Literal["show_hours"] = "show_hours"
    week_start: date
    user_query: str | None = None
    user: EntityRef | None = None


class ProjectStatusAction(_Action):
    """Show a project's budget burn."""

    action: Literal["project_status"] = "project_status"
    project_query: str | None = None
    project: EntityRef | None = None


PendingAction = Annotated[
    Union[AddHoursAction, ShowHoursAction, ProjectStatusAction],
    Field(discriminator="action"),
]


# =============================================================================
# States
# =============================================================================


class _StateBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_command: str = ""
    session_id: str = Field(default_factory=lambda: f"disamb_{uuid.uuid4().hex[:12]}")
    presentation: Presentation = Presentation.TEXT
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class AwaitingProjectChoice(_StateBase):
    kind: Literal["awaiting-project-choice"] = "awaiting-project-choice"
    query: str
    options: list[MatchCandidate]
    action: PendingAction


class AwaitingUserChoice(_StateBase):
    kind: Literal["awaiting-user-choice"] = "awaiting-user-choice"
    query: str
    options: list[MatchCandidate]
    action: PendingAction


class AwaitingHours(_StateBase):
    kind: Literal["awaiting-hours"] = "awaiting-hours"
    project: EntityRef
    week_start: date
    target_user: EntityRef | None = None


class AwaitingConfirmation(_StateBase):
    kind: Literal["awaiting-yes-no"] = "awaiting-yes-no"
    prompt: str
    action: AddHoursAction


ConversationState = Annotated[
    Union[AwaitingProjectChoice, AwaitingUserChoice, AwaitingHours, AwaitingConfirmation],
    Field(discriminator="kind"),
]

ChoiceState = Union[AwaitingProjectChoice, AwaitingUserChoice]

_state_adapter: TypeAdapter[ConversationState] = TypeAdapter(ConversationState)


# =============================================================================
# Stores
# =============================================================================


class ConversationStore(ABC):
    """Session store for pending conversation state."""

    @abstractmethod
    def put(self, key: ConversationKey, state: ConversationState) -> ConversationState:
        """Store ``state`` for ``key``, replacing any previous state.

        Returns:
            The stored state, stamped with created_at/expires_at
        """
        ...

    @abstractmethod
    def get(self, key: ConversationKey) -> ConversationState | None:
        """The live state for ``key``; expired states are never returned."""
        ...

    @abstractmethod
    def get_by_session(
        self, session_id: str
    ) -> tuple[ConversationKey, ConversationState] | None:
        """Find a live state by its session id (button flows)."""
        ...

    @abstractmethod
    def clear(self, key: ConversationKey) -> None:
        ...

    @abstractmethod
    def sweep(self) -> int:
        """Remove expired states.

        Returns:
            Number of states removed
        """
        ...


class InMemoryConversationStore(ConversationStore):
    """Single-process dict-backed store.

    State is lost on restart and is not shared between processes.

    Example:
        >>> store = InMemoryConversationStore(clock=lambda: fixed_now)
        >>> store.put(key, AwaitingHours(project=ref, week_start=monday))
        >>> store.get(key).kind
        'awaiting-hours'
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock | None = None) -> None:
        self.ttl = ttl
        self._clock = clock or datetime.now
        self._states: dict[ConversationKey, ConversationState] = {}
        self._sessions: dict[str, ConversationKey] = {}

    def now(self) -> datetime:
        return self._clock()

    def put(self, key: ConversationKey, state: ConversationState) -> ConversationState:
        self._drop(key)
        now = self.now()
        stamped = state.model_copy(update={"created_at": now, "expires_at": now + self.ttl})
        self._states[key] = stamped
        self._sessions[stamped.session_id] = key
        logger.debug(f"Conversation {key} -> {stamped.kind}")
        self._changed()
        return stamped

    def get(self, key: ConversationKey) -> ConversationState | None:
        state = self._states.get(key)
        if state is None:
            return None
        if state.is_expired(self.now()):
            logger.debug(f"Conversation {key} expired")
            self._drop(key)
            self._changed()
            return None
        return state

    def get_by_session(
        self, session_id: str
    ) -> tuple[ConversationKey, ConversationState] | None:
        key = self._sessions.get(session_id)
        if key is None:
            return None
        state = self.get(key)
        if state is None or state.session_id != session_id:
            return None
        return key, state

    def clear(self, key: ConversationKey) -> None:
        if self._drop(key):
            logger.debug(f"Conversation {key} cleared")
            self._changed()

    def sweep(self) -> int:
        now = self.now()
        expired = [k for k, s in self._states.items() if s.is_expired(now)]
        for key in expired:
            self._drop(key)
        if expired:
            logger.debug(f"Swept {len(expired)} expired conversation(s)")
            self._changed()
        return len(expired)

    def __len__(self) -> int:
        return len(self._states)

    def _drop(self, key: ConversationKey) -> bool:
        state = self._states.pop(key, None)
        if state is None:
            return False
        self._sessions.pop(state.session_id, None)
        return True

    def _changed(self) -> None:
        """Hook for subclasses that persist after every mutation."""
        return None


class JsonConversationStore(InMemoryConversationStore):
    """Store persisted to .zhuzh/conversations.json.

    Lets one-shot CLI invocations continue a conversation across processes.
    Same semantics as the in-memory store.
    """

    def __init__(
        self,
        path: Path,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load conversations: {e}")
            return

        for item in data:
            try:
                key = ConversationKey(item["channel_id"], item["user_id"])
                state = _state_adapter.validate_python(item["state"])
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable conversation entry: {e}")
                continue
            self._states[key] = state
            self._sessions[state.session_id] = key

    def _changed(self) -> None:
        data = [
            {
                "channel_id": key.channel_id,
                "user_id": key.user_id,
                "state": _state_adapter.dump_python(state, mode="json"),
            }
            for key, state in self._states.items()
        ]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix(".json.tmp")
        with temp_file.open("w") as f:
            json.dump(data, f, indent=2)
        temp_file.replace(self.path)


# =============================================================================
# Expiry sweeper
# =============================================================================


class ExpirySweeper:
    """Periodically removes expired states on the running event loop.

    Example:
        >>> sweeper = ExpirySweeper(store, interval=60)
        >>> sweeper.start()
        >>> ...
        >>> await sweeper.stop()
    """

    def __init__(self, store: ConversationStore, interval: float = 60.0) -> None:
        self.store = store
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.store.sweep()
            except Exception as e:
                logger.warning(f"Conversation sweep failed: {e}")


__all__ = [
    "AddHoursAction",
    "AwaitingConfirmation",
    "AwaitingHours",
    "AwaitingProjectChoice",
    "AwaitingUserChoice",
    "ChoiceState",
    "ConversationKey",
    "ConversationState",
    "ConversationStore",
    "DEFAULT_TTL",
    "ExpirySweeper",
    "InMemoryConversationStore",
    "JsonConversationStore",
    "PendingAction",
    "Presentation",
    "ProjectStatusAction",
    "ShowHoursAction",
]
