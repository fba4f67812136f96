"""Conversational reply router.

Catches the next message from a (channel, user) that has pending conversation
state and continues the exchange:

    State              Input                      Result
    none               anything                   None (not routed)
    any                cancel/nevermind/abort     clear, "cancelled"
    choice             1..N                       select option N, continue
    choice             free text                  first option whose name matches
    awaiting-hours     "4", "4.5h", ...           add hours, clear
    awaiting-yes-no    yes/y/confirm/ok           execute, clear
    awaiting-yes-no    no/n                       clear, acknowledge

Unparseable input re-prompts and keeps the state. Any other failure clears the
state and reports the error.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable

from . import presentation
from .conversation import (
    AwaitingConfirmation,
    AwaitingHours,
    AwaitingProjectChoice,
    AwaitingUserChoice,
    ChoiceState,
    ConversationKey,
    ConversationState,
    ConversationStore,
)
from .errors import InvalidInputError, ZhuzhError
from .models import CallerIdentity, MatchCandidate, Reply
from .workflow import ResolutionWorkflow

logger = logging.getLogger(__name__)

CANCEL_WORDS = frozenset({"cancel", "nevermind", "abort"})
YES_WORDS = frozenset({"yes", "y", "confirm", "ok"})
NO_WORDS = frozenset({"no", "n"})

_NON_NUMERIC = re.compile(r"[^0-9.]")
_INTEGER = re.compile(r"^\d+$")


def parse_hours(text: str) -> float | None:
    """Parse an hours reply such as "4", "4.5" or "4.5h".

    Everything except digits and dots is discarded first.

    Returns:
        The parsed value, or None if nothing numeric remains
    """
    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def pick_option(options: list[MatchCandidate], text: str) -> MatchCandidate | None:
    """Select an option by 1-based number or by name.

    A name matches when the option's lower-cased display name equals,
    contains, or starts with the reply. The first such option wins.
    """
    reply = text.strip()
    if _INTEGER.match(reply):
        index = int(reply)
        if 1 <= index <= len(options):
            return options[index - 1]

    needle = reply.lower()
    if not needle:
        return None
    for option in options:
        name = option.display_name.lower()
        if name == needle or needle in name or name.startswith(needle):
            return option
    return None


class ConversationalReplyRouter:
    """Routes replies to pending conversation state.

    Attributes:
        store: Conversation state store
        workflow: Workflow used to continue pending actions
    """

    def __init__(self, store: ConversationStore, workflow: ResolutionWorkflow) -> None:
        self.store = store
        self.workflow = workflow

    async def handle_message(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        text: str,
    ) -> Reply | None:
        """Continue the pending exchange for ``key``.

        Args:
            key: (channel, user) the message came from
            caller: Resolved identity of the sender
            text: Message text

        Returns:
            Reply to post, or None when no state is pending (not a reply)
        """
        state = self.store.get(key)
        if state is None:
            return None

        reply = text.strip()
        if reply.lower() in CANCEL_WORDS:
            self.store.clear(key)
            logger.debug(f"{key}: cancelled {state.kind}")
            return Reply(text=presentation.CANCELLED_TEXT)

        return await self._guarded(key, lambda: self._dispatch(key, caller, state, reply))

    async def handle_selection(
        self,
        session_id: str,
        option_id: str,
        caller: CallerIdentity,
    ) -> Reply:
        """Continue a choice state from a button click."""
        found = self.store.get_by_session(session_id)
        if found is None or found[0].user_id != caller.user_id:
            return Reply(text=presentation.EXPIRED_TEXT, ephemeral=True)

        key, state = found
        if not isinstance(state, (AwaitingProjectChoice, AwaitingUserChoice)):
            return Reply(text=presentation.EXPIRED_TEXT, ephemeral=True)

        choice = next((o for o in state.options if o.id == option_id), None)
        if choice is None:
            return Reply(text=presentation.EXPIRED_TEXT, ephemeral=True)

        return await self._guarded(
            key, lambda: self.workflow.select_option(key, caller, state, choice)
        )

    async def handle_cancel(self, session_id: str) -> Reply:
        """Cancel the state behind a button prompt."""
        found = self.store.get_by_session(session_id)
        if found is None:
            return Reply(text=presentation.EXPIRED_TEXT, ephemeral=True)
        self.store.clear(found[0])
        return Reply(text=presentation.CANCELLED_TEXT, ephemeral=True)

    # =========================================================================
    # Per-state handlers
    # =========================================================================

    async def _dispatch(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: ConversationState,
        text: str,
    ) -> Reply:
        if isinstance(state, (AwaitingProjectChoice, AwaitingUserChoice)):
            return await self._handle_choice(key, caller, state, text)
        if isinstance(state, AwaitingHours):
            return await self._handle_hours(key, caller, state, text)
        if isinstance(state, AwaitingConfirmation):
            return await self._handle_yes_no(key, caller, state, text)
        raise TypeError(f"Unknown conversation state: {state!r}")

    async def _handle_choice(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: ChoiceState,
        text: str,
    ) -> Reply:
        choice = pick_option(state.options, text)
        if choice is None:
            raise InvalidInputError(presentation.choice_retry_text(text, len(state.options)))
        return await self.workflow.select_option(key, caller, state, choice)

    async def _handle_hours(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: AwaitingHours,
        text: str,
    ) -> Reply:
        hours = parse_hours(text)
        max_hours = self.workflow.max_hours
        if hours is None or not 0 < hours <= max_hours:
            raise InvalidInputError(presentation.hours_retry_text(max_hours))
        return await self.workflow.submit_hours(key, caller, state, hours)

    async def _handle_yes_no(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: AwaitingConfirmation,
        text: str,
    ) -> Reply:
        answer = text.lower()
        if answer in YES_WORDS:
            return await self.workflow.confirm(key, caller, state)
        if answer in NO_WORDS:
            self.store.clear(key)
            return Reply(text=presentation.CANCELLED_TEXT)
        raise InvalidInputError(presentation.YES_NO_RETRY_TEXT)

    async def _guarded(
        self,
        key: ConversationKey,
        step: Callable[[], Awaitable[Reply]],
    ) -> Reply:
        """Run a continuation, turning errors into replies.

        InvalidInputError keeps the state so the user can try again; every
        other ZhuzhError clears it.
        """
        try:
            return await step()
        except InvalidInputError as e:
            logger.debug(f"{key}: invalid reply, re-prompting")
            return Reply(text=e.user_message)
        except ZhuzhError as e:
            logger.warning(f"{key}: {type(e).__name__}: {e.user_message}")
            self.store.clear(key)
            return Reply(text=e.user_message)


__all__ = [
    "CANCEL_WORDS",
    "ConversationalReplyRouter",
    "NO_WORDS",
    "YES_WORDS",
    "parse_hours",
    "pick_option",
]
