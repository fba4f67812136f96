"""Tests for zhuzh.core.replies.

Tests cover:
- Hours and option parsing helpers
- Routing by state kind (choice, hours, yes/no)
- Cancel words and no-state passthrough
- Error policy: invalid input keeps state, other errors clear it
- Button selection and cancel by session id
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import THIS_MONDAY, key_for

from zhuzh.core.backends import BackendWriteError
from zhuzh.core.backends.memory import InMemoryBackend
from zhuzh.core.conversation import (
    AddHoursAction,
    AwaitingConfirmation,
    AwaitingHours,
    AwaitingProjectChoice,
    AwaitingUserChoice,
    InMemoryConversationStore,
)
from zhuzh.core.models import CallerIdentity, EntityRef, MatchCandidate
from zhuzh.core.presentation import CANCELLED_TEXT, EXPIRED_TEXT, encode_action_value
from zhuzh.core.replies import ConversationalReplyRouter, parse_hours, pick_option
from zhuzh.core.workflow import ResolutionWorkflow

GCN = EntityRef(id="p1", name="GCN")

OPTIONS = [
    MatchCandidate(id="p3", display_name="Acme Website", detail="Acme", score=80),
    MatchCandidate(id="p4", display_name="Acme Mobile App", detail="Acme", score=80),
    MatchCandidate(id="p2", display_name="Brand/GCN Refresh", detail="Acme", score=40),
]


@pytest.fixture
def router(
    store: InMemoryConversationStore, workflow: ResolutionWorkflow
) -> ConversationalReplyRouter:
    return ConversationalReplyRouter(store, workflow)


def project_choice(hours: float | None = 4) -> AwaitingProjectChoice:
    return AwaitingProjectChoice(
        query="acme",
        options=OPTIONS,
        action=AddHoursAction(hours=hours, week_start=THIS_MONDAY, project_query="acme"),
        original_command="add 4h to acme",
    )


# =============================================================================
# Helpers
# =============================================================================


class TestParseHours:
    @pytest.mark.parametrize(
        "text,expected",
        [("4", 4.0), ("4.5", 4.5), ("4.5h", 4.5), (" 6 hours ", 6.0), ("about 3", 3.0)],
    )
    def test_valid(self, text: str, expected: float) -> None:
        assert parse_hours(text) == expected

    @pytest.mark.parametrize("text", ["abc", "", "1.2.3", "."])
    def test_invalid(self, text: str) -> None:
        assert parse_hours(text) is None


class TestPickOption:
    def test_by_number(self) -> None:
        assert pick_option(OPTIONS, "2").id == "p4"
        assert pick_option(OPTIONS, " 1 ").id == "p3"

    def test_number_out_of_range(self) -> None:
        assert pick_option(OPTIONS, "4") is None
        assert pick_option(OPTIONS, "0") is None

    def test_by_exact_name(self) -> None:
        assert pick_option(OPTIONS, "acme mobile app").id == "p4"

    def test_by_substring_first_wins(self) -> None:
        """'acme' is in two names; the first listed option wins."""
        assert pick_option(OPTIONS, "ACME").id == "p3"
        assert pick_option(OPTIONS, "mobile").id == "p4"

    def test_no_match(self) -> None:
        assert pick_option(OPTIONS, "abc") is None
        assert pick_option(OPTIONS, "") is None


# =============================================================================
# Routing
# =============================================================================


class TestAwaitingHours:
    """Replies to "How many hours?"."""

    @pytest.mark.asyncio
    async def test_valid_hours_upserts_and_clears(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        """'4.5' adds 4.5h for the caller and clears the state."""
        key = key_for(employee)
        store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))

        reply = await router.handle_message(key, employee, "4.5")

        assert reply.text.startswith("✅ Added *4.5h* to *GCN* for Alex Kim")
        assert store.get(key) is None
        allocation = backend.allocations[("u3", "p1", THIS_MONDAY)]
        assert allocation.planned_hours == 4.5

    @pytest.mark.asyncio
    async def test_hours_past_capacity_still_written(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        """A week already at 38h still takes the answer without a yes/no detour."""
        await backend.upsert_allocation("u3", "p3", THIS_MONDAY, 38)
        key = key_for(employee)
        store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))

        reply = await router.handle_message(key, employee, "4.5")

        assert reply.text.startswith("✅ Added *4.5h* to *GCN* for Alex Kim")
        assert store.get(key) is None
        assert backend.allocations[("u3", "p1", THIS_MONDAY)].planned_hours == 4.5

    @pytest.mark.asyncio
    async def test_invalid_hours_keeps_state(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        """'abc' re-prompts and leaves the state untouched."""
        key = key_for(employee)
        stored = store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))

        reply = await router.handle_message(key, employee, "abc")

        assert reply.text.startswith("❓ Please enter a valid number of hours")
        assert "Maximum is 80 hours" in reply.text
        assert store.get(key) == stored
        assert backend.allocations == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["0", "81", "100.5"])
    async def test_out_of_range_keeps_state(
        self,
        text: str,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))

        reply = await router.handle_message(key, employee, text)

        assert reply.text.startswith("❓")
        assert store.get(key) is not None

    @pytest.mark.asyncio
    async def test_target_user_kept(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        admin: CallerIdentity,
    ) -> None:
        key = key_for(admin)
        store.put(
            key,
            AwaitingHours(
                project=GCN,
                week_start=THIS_MONDAY,
                target_user=EntityRef(id="u2", name="Ryan Brooks"),
            ),
        )
        await router.handle_message(key, admin, "3")
        assert backend.allocations[("u2", "p1", THIS_MONDAY)].planned_hours == 3


class TestChoiceReplies:
    """Replies to a numbered option list."""

    @pytest.mark.asyncio
    async def test_number_selects_and_executes(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        store.put(key, project_choice())

        reply = await router.handle_message(key, employee, "2")

        assert "Acme Mobile App" in reply.text
        assert store.get(key) is None
        assert backend.allocations[("u3", "p4", THIS_MONDAY)].planned_hours == 4

    @pytest.mark.asyncio
    async def test_name_selects(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        store.put(key, project_choice())
        await router.handle_message(key, employee, "website")
        assert ("u3", "p3", THIS_MONDAY) in backend.allocations

    @pytest.mark.asyncio
    async def test_unrecognized_keeps_state(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        stored = store.put(key, project_choice())

        reply = await router.handle_message(key, employee, "abc")

        assert reply.text == (
            '❓ I didn\'t understand "abc". Please reply with a number (1-3) or type the name.'
        )
        assert store.get(key) == stored

    @pytest.mark.asyncio
    async def test_selection_without_hours_asks_for_hours(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        """A choice can hand off to another prompt."""
        key = key_for(employee)
        store.put(key, project_choice(hours=None))

        reply = await router.handle_message(key, employee, "1")

        assert "How many hours?" in reply.text
        state = store.get(key)
        assert isinstance(state, AwaitingHours)
        assert state.project.name == "Acme Website"

    @pytest.mark.asyncio
    async def test_user_choice_for_show_hours(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        admin: CallerIdentity,
    ) -> None:
        from zhuzh.core.conversation import ShowHoursAction

        key = key_for(admin)
        store.put(
            key,
            AwaitingUserChoice(
                query="ryan",
                options=[
                    MatchCandidate(id="u1", display_name="Ryan Daniels", score=90),
                    MatchCandidate(id="u2", display_name="Ryan Brooks", score=90),
                ],
                action=ShowHoursAction(week_start=THIS_MONDAY, user_query="ryan"),
            ),
        )
        reply = await router.handle_message(key, admin, "1")
        assert "*Ryan Daniels* has no allocations" in reply.text
        assert store.get(key) is None


class TestConfirmationReplies:
    """Replies to an over-capacity yes/no question."""

    def confirmation(self) -> AwaitingConfirmation:
        return AwaitingConfirmation(
            prompt="Add it anyway?",
            action=AddHoursAction(
                hours=4,
                week_start=THIS_MONDAY,
                project=GCN,
                target_user=EntityRef(id="u3", name="Alex Kim"),
            ),
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", ["yes", "Y", "ok", "confirm"])
    async def test_yes_executes(
        self,
        answer: str,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        await backend.upsert_allocation("u3", "p3", THIS_MONDAY, 38)
        store.put(key, self.confirmation())

        reply = await router.handle_message(key, employee, answer)

        assert reply.text.startswith("✅ Added *4h*")
        assert store.get(key) is None
        assert backend.allocations[("u3", "p1", THIS_MONDAY)].planned_hours == 4

    @pytest.mark.asyncio
    async def test_no_cancels(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        store.put(key, self.confirmation())

        reply = await router.handle_message(key, employee, "no")

        assert reply.text == CANCELLED_TEXT
        assert store.get(key) is None
        assert backend.allocations == {}

    @pytest.mark.asyncio
    async def test_other_answer_keeps_state(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        store.put(key, self.confirmation())
        reply = await router.handle_message(key, employee, "maybe")
        assert reply.text == '❓ Please reply "yes" or "no".'
        assert store.get(key) is not None


class TestRouting:
    """Cancel, passthrough and error handling."""

    @pytest.mark.asyncio
    async def test_no_state_is_not_routed(
        self, router: ConversationalReplyRouter, employee: CallerIdentity
    ) -> None:
        assert await router.handle_message(key_for(employee), employee, "4") is None

    @pytest.mark.asyncio
    async def test_expired_state_is_not_routed(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        clock,
        employee: CallerIdentity,
    ) -> None:
        key = key_for(employee)
        store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))
        clock.advance(minutes=11)
        assert await router.handle_message(key, employee, "4") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("word", ["cancel", "Nevermind", " abort "])
    async def test_cancel_touches_no_collaborator(
        self, word: str, store: InMemoryConversationStore, employee: CallerIdentity
    ) -> None:
        workflow = MagicMock()
        workflow.submit_hours = AsyncMock()
        workflow.select_option = AsyncMock()
        router = ConversationalReplyRouter(store, workflow)
        key = key_for(employee)
        store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))

        reply = await router.handle_message(key, employee, word)

        assert reply.text == CANCELLED_TEXT
        assert store.get(key) is None
        workflow.submit_hours.assert_not_called()
        workflow.select_option.assert_not_called()

    @pytest.mark.asyncio
    async def test_persistence_failure_clears_state(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        backend.upsert_allocation = AsyncMock(side_effect=BackendWriteError("disk full"))
        key = key_for(employee)
        store.put(key, AwaitingHours(project=GCN, week_start=THIS_MONDAY))

        reply = await router.handle_message(key, employee, "4")

        assert reply.text == "❌ Something went wrong saving that. Please try again."
        assert store.get(key) is None

    @pytest.mark.asyncio
    async def test_other_channel_not_routed(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        store.put(key_for(employee, "C1"), AwaitingHours(project=GCN, week_start=THIS_MONDAY))
        assert await router.handle_message(key_for(employee, "C2"), employee, "4") is None


class TestButtonReplies:
    """Selections and cancels arriving by session id."""

    @pytest.mark.asyncio
    async def test_selection(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        backend: InMemoryBackend,
        employee: CallerIdentity,
    ) -> None:
        stored = store.put(key_for(employee), project_choice())

        reply = await router.handle_selection(stored.session_id, "p4", employee)

        assert "Acme Mobile App" in reply.text
        assert ("u3", "p4", THIS_MONDAY) in backend.allocations

    @pytest.mark.asyncio
    async def test_unknown_session(
        self, router: ConversationalReplyRouter, employee: CallerIdentity
    ) -> None:
        reply = await router.handle_selection("disamb_missing", "p4", employee)
        assert reply.text == EXPIRED_TEXT
        assert reply.ephemeral

    @pytest.mark.asyncio
    async def test_other_user_cannot_select(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
        admin: CallerIdentity,
    ) -> None:
        stored = store.put(key_for(employee), project_choice())
        reply = await router.handle_selection(stored.session_id, "p4", admin)
        assert reply.text == EXPIRED_TEXT
        assert store.get(key_for(employee)) is not None

    @pytest.mark.asyncio
    async def test_option_not_offered(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        stored = store.put(key_for(employee), project_choice())
        reply = await router.handle_selection(stored.session_id, "p1", employee)
        assert reply.text == EXPIRED_TEXT

    @pytest.mark.asyncio
    async def test_cancel(
        self,
        router: ConversationalReplyRouter,
        store: InMemoryConversationStore,
        employee: CallerIdentity,
    ) -> None:
        stored = store.put(key_for(employee), project_choice())
        reply = await router.handle_cancel(stored.session_id)
        assert reply.text == CANCELLED_TEXT
        assert store.get(key_for(employee)) is None

    def test_value_encoding_used_by_buttons(self) -> None:
        assert '"selected_id": "p4"' in encode_action_value("disamb_x", "p4")
