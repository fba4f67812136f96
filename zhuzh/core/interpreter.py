"""Command interpreter: parse a chat command and dispatch it.

The interpreter is the entry point for new commands (as opposed to replies to
a pending prompt, which the reply router handles). Planning and reporting
commands go through the resolution workflow so ambiguous names can be
clarified over several turns; timer commands go to the timer service.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from . import presentation
from .actions import ActionExecutor
from .conversation import (
    AddHoursAction,
    ConversationKey,
    ConversationStore,
    ProjectStatusAction,
    ShowHoursAction,
)
from .errors import InvalidInputError, ZhuzhError
from .intent import IntentParser, IntentResult, IntentType
from .models import CallerIdentity, Reply
from .timer import TimerService
from .weeks import resolve_week
from .workflow import ResolutionWorkflow

logger = logging.getLogger(__name__)


class CommandInterpreter:
    """Turns command text into replies.

    Attributes:
        parser: Intent parser
        workflow: Resolution workflow for planning/reporting commands
        executor: Action executors (availability)
        timer: Timer service
        store: Conversation store, cleared when a command fails
    """

    def __init__(
        self,
        workflow: ResolutionWorkflow,
        timer: TimerService,
        parser: IntentParser | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.workflow = workflow
        self.timer = timer
        self.parser = parser or IntentParser()
        self.executor: ActionExecutor = workflow.executor
        self.store: ConversationStore = workflow.store
        self._today = today or date.today

    async def handle(
        self,
        text: str,
        caller: CallerIdentity,
        key: ConversationKey,
    ) -> Reply:
        """Interpret a command and return the reply.

        Errors never escape: invalid input becomes a hint, and any other
        ZhuzhError becomes its message after clearing pending state.

        Args:
            text: Command text, with or without a leading "/zhuzh"
            caller: Resolved identity of the sender
            key: (channel, user) the command came from

        Returns:
            Reply to post
        """
        result = self.parser.parse(text)
        logger.info(f"{key}: {result.intent.value} from {caller.user_id}")

        try:
            return await self._dispatch(result, caller, key)
        except InvalidInputError as e:
            return Reply(text=e.user_message, ephemeral=True)
        except ZhuzhError as e:
            logger.warning(f"{key}: {type(e).__name__}: {e.user_message}")
            self.store.clear(key)
            return Reply(text=e.user_message)

    async def _dispatch(
        self,
        result: IntentResult,
        caller: CallerIdentity,
        key: ConversationKey,
    ) -> Reply:
        entities = result.entities
        intent = result.intent

        if intent == IntentType.HELP:
            return presentation.help_reply()

        # Timer sub-grammar
        if intent == IntentType.TIMER_START:
            return await self.timer.start(caller, entities.get("project_query"))
        if intent == IntentType.TIMER_STOP:
            return await self.timer.stop(caller, entities.get("notes"))
        if intent == IntentType.TIMER_LOG:
            return await self.timer.log(
                caller,
                entities.get("hours", 0.0),
                entities.get("minutes"),
                entities.get("project_query"),
            )
        if intent == IntentType.TIMER_STATUS:
            return await self.timer.status(caller)

        week = resolve_week(self._today(), entities.get("week"))

        # Planning
        if intent == IntentType.ADD_HOURS:
            action = AddHoursAction(
                hours=entities.get("hours"),
                week_start=week,
                project_query=entities.get("project_query"),
                target_user_query=entities.get("user_query"),
            )
            return await self.workflow.advance(key, caller, action, result.text)
        if intent == IntentType.ADD_TIME_TO:
            action = AddHoursAction(week_start=week, project_query=entities.get("project_query"))
            return await self.workflow.advance(key, caller, action, result.text)

        # Reporting
        if intent == IntentType.SHOW_HOURS:
            action = ShowHoursAction(week_start=week, user_query=entities.get("user_query"))
            return await self.workflow.advance(key, caller, action, result.text)
        if intent == IntentType.PROJECT_STATUS:
            action = ProjectStatusAction(project_query=entities.get("project_query"))
            return await self.workflow.advance(key, caller, action, result.text)
        if intent == IntentType.WHO_AVAILABLE:
            return await self.executor.who_is_available(caller.org_id, week)

        return presentation.unknown_reply()


__all__ = ["CommandInterpreter"]
