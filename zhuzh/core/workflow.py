"""Resolution workflow: resolve references, prompt, store, resume.

A pending action carries free-text references ("GCN", "Ryan") and whatever has
already been resolved. ``advance`` resolves the next missing piece; when the
resolver is unsure it stores a ConversationState and returns the prompt. When
the user answers, the reply router calls back into the workflow with the
updated action and ``advance`` picks up where it left off.

Order of resolution for adding hours:
    project -> target user (permission checked) -> hours -> write

With ``confirm_over_capacity`` on, an add that would push the target past
their weekly capacity asks for yes/no confirmation before the write.
"""

from __future__ import annotations

import logging

from . import presentation
from .actions import ActionExecutor
from .conversation import (
    AddHoursAction,
    AwaitingConfirmation,
    AwaitingHours,
    AwaitingProjectChoice,
    AwaitingUserChoice,
    ChoiceState,
    ConversationKey,
    ConversationStore,
    PendingAction,
    Presentation,
    ProjectStatusAction,
    ShowHoursAction,
)
from .directory import EntityDirectory
from .errors import InvalidInputError, NotFoundError, PermissionDeniedError
from .intent.entities import is_self_reference
from .models import CallerIdentity, EntityRef, MatchCandidate, Reply
from .resolver import DisambiguationResolver
from .weeks import format_hours

logger = logging.getLogger(__name__)


class ResolutionWorkflow:
    """Drives pending actions to completion across conversation turns.

    Attributes:
        directory: Entity lookup
        resolver: Auto-resolve vs. prompt policy
        store: Conversation state store
        executor: Action executors
        default_presentation: Presentation used for new choice prompts
        max_hours: Largest hours figure accepted per add
        confirm_over_capacity: Ask yes/no before an add that exceeds weekly capacity
    """

    def __init__(
        self,
        directory: EntityDirectory,
        resolver: DisambiguationResolver,
        store: ConversationStore,
        executor: ActionExecutor,
        default_presentation: Presentation = Presentation.TEXT,
        max_hours: float = 80.0,
        confirm_over_capacity: bool = False,
    ) -> None:
        self.directory = directory
        self.resolver = resolver
        self.store = store
        self.executor = executor
        self.default_presentation = default_presentation
        self.max_hours = max_hours
        self.confirm_over_capacity = confirm_over_capacity

    # =========================================================================
    # Entry points
    # =========================================================================

    async def advance(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        action: PendingAction,
        original_command: str = "",
        presentation_mode: Presentation | None = None,
    ) -> Reply:
        """Resolve whatever ``action`` still lacks, then execute it.

        Stores a new conversation state and returns its prompt when user input
        is needed; otherwise clears the key and returns the action's result.

        Raises:
            NotFoundError: A reference matched nothing
            PermissionDeniedError: The caller may not target that user
            InvalidInputError: The hours figure is out of range
            PersistenceError: The backend failed
        """
        mode = presentation_mode or self.default_presentation
        if isinstance(action, AddHoursAction):
            return await self._advance_add(key, caller, action, original_command, mode)
        if isinstance(action, ShowHoursAction):
            return await self._advance_show(key, caller, action, original_command, mode)
        if isinstance(action, ProjectStatusAction):
            return await self._advance_status(key, caller, action, original_command, mode)
        raise TypeError(f"Unsupported action: {action!r}")

    async def select_option(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: ChoiceState,
        choice: MatchCandidate,
    ) -> Reply:
        """Continue a choice state with the option the user picked."""
        ref = choice.to_ref()
        action = state.action
        if isinstance(state, AwaitingProjectChoice):
            action = action.model_copy(update={"project": ref})
        elif isinstance(action, AddHoursAction):
            action = action.model_copy(update={"target_user": ref})
        elif isinstance(action, ShowHoursAction):
            action = action.model_copy(update={"user": ref})

        logger.debug(f"{key}: selected {ref.name} for {action.action}")
        return await self.advance(key, caller, action, state.original_command, state.presentation)

    async def submit_hours(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: AwaitingHours,
        hours: float,
    ) -> Reply:
        """Continue an awaiting-hours state with a parsed hours figure."""
        action = AddHoursAction(
            hours=hours,
            week_start=state.week_start,
            project=state.project,
            target_user=state.target_user or caller.to_ref(),
        )
        return await self.advance(key, caller, action, state.original_command, state.presentation)

    async def confirm(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        state: AwaitingConfirmation,
    ) -> Reply:
        """Execute a confirmed add."""
        action = state.action.model_copy(update={"confirmed": True})
        return await self.advance(key, caller, action, state.original_command, state.presentation)

    # =========================================================================
    # Add hours
    # =========================================================================

    async def _advance_add(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        action: AddHoursAction,
        original_command: str,
        mode: Presentation,
    ) -> Reply:
        if action.hours is not None:
            self.validate_hours(action.hours)

        if action.project is None:
            match = await self._resolve_project(action.project_query or "", caller)
            if isinstance(match, list):
                return self._prompt_choice(
                    key,
                    AwaitingProjectChoice(
                        query=action.project_query or "",
                        options=match,
                        action=action,
                        original_command=original_command,
                        presentation=mode,
                    ),
                )
            action = action.model_copy(update={"project": match})

        if action.target_user is None:
            match = await self._resolve_target(action.target_user_query, caller)
            if isinstance(match, list):
                return self._prompt_choice(
                    key,
                    AwaitingUserChoice(
                        query=action.target_user_query or "",
                        options=match,
                        action=action,
                        original_command=original_command,
                        presentation=mode,
                    ),
                )
            action = action.model_copy(update={"target_user": match})

        assert action.project is not None and action.target_user is not None

        if action.hours is None:
            state = self.store.put(
                key,
                AwaitingHours(
                    project=action.project,
                    week_start=action.week_start,
                    target_user=action.target_user,
                    original_command=original_command or f"add time to {action.project.name}",
                    presentation=mode,
                ),
            )
            return presentation.hours_prompt(action.project.name, state.week_start)

        if self.confirm_over_capacity and not action.confirmed:
            planned = await self.executor.planned_hours(action.target_user.id, action.week_start)
            capacity = await self.executor.capacity_for(action.target_user.id)
            if planned + action.hours > capacity:
                prompt = presentation.capacity_warning(
                    action.target_user.name,
                    action.hours,
                    planned,
                    capacity,
                    action.week_start,
                )
                self.store.put(
                    key,
                    AwaitingConfirmation(
                        prompt=prompt,
                        action=action,
                        original_command=original_command,
                        presentation=mode,
                    ),
                )
                return presentation.confirmation_prompt(prompt)

        self.store.clear(key)
        return await self.executor.add_hours(
            action.target_user,
            action.project,
            action.hours,
            action.week_start,
            org_id=caller.org_id,
            created_by=caller.user_id,
        )

    def validate_hours(self, hours: float) -> None:
        if not 0 < hours <= self.max_hours:
            raise InvalidInputError(
                f"❓ {format_hours(hours)}h isn't a valid amount. "
                f"Hours must be more than 0 and at most {format_hours(self.max_hours)}."
            )

    async def _resolve_target(
        self, query: str | None, caller: CallerIdentity
    ) -> EntityRef | list[MatchCandidate]:
        """Resolve the "for <user>" part of an add, enforcing roles.

        Non-elevated callers may only name themselves; anything else is denied
        before they are asked to pick between other people. A name that also
        fits someone else still counts as the caller when the caller is among
        the matches.
        """
        if not query or is_self_reference(query):
            return caller.to_ref()

        matches = await self.directory.match_people(caller.org_id, query)
        resolution = self.resolver.resolve(matches)

        if not caller.role.is_elevated:
            if any(m.id == caller.user_id for m in matches):
                return caller.to_ref()
            raise PermissionDeniedError(
                "🔒 Only PMs and admins can add hours for other people."
            )

        if resolution.is_not_found:
            raise NotFoundError("person", query)
        if resolution.is_ambiguous:
            return resolution.options
        return resolution.match.to_ref()

    # =========================================================================
    # Show hours / project status
    # =========================================================================

    async def _advance_show(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        action: ShowHoursAction,
        original_command: str,
        mode: Presentation,
    ) -> Reply:
        user = action.user
        if user is None:
            query = action.user_query or ""
            if not query or is_self_reference(query):
                user = caller.to_ref()
            else:
                match = await self._resolve_person(query, caller)
                if isinstance(match, list):
                    return self._prompt_choice(
                        key,
                        AwaitingUserChoice(
                            query=query,
                            options=match,
                            action=action,
                            original_command=original_command,
                            presentation=mode,
                        ),
                    )
                user = match

        self.store.clear(key)
        return await self.executor.show_hours(user, action.week_start)

    async def _advance_status(
        self,
        key: ConversationKey,
        caller: CallerIdentity,
        action: ProjectStatusAction,
        original_command: str,
        mode: Presentation,
    ) -> Reply:
        project = action.project
        if project is None:
            query = action.project_query or ""
            match = await self._resolve_project(query, caller)
            if isinstance(match, list):
                return self._prompt_choice(
                    key,
                    AwaitingProjectChoice(
                        query=query,
                        options=match,
                        action=action,
                        original_command=original_command,
                        presentation=mode,
                    ),
                )
            project = match

        self.store.clear(key)
        return await self.executor.project_status(project)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _resolve_project(
        self, query: str, caller: CallerIdentity
    ) -> EntityRef | list[MatchCandidate]:
        """Auto-resolved project ref, or the options to ask about."""
        matches = await self.directory.match_projects(caller.org_id, query)
        resolution = self.resolver.resolve(matches)
        if resolution.is_not_found:
            raise NotFoundError("project", query)
        if resolution.is_ambiguous:
            return resolution.options
        return resolution.match.to_ref()

    async def _resolve_person(
        self, query: str, caller: CallerIdentity
    ) -> EntityRef | list[MatchCandidate]:
        matches = await self.directory.match_people(caller.org_id, query)
        resolution = self.resolver.resolve(matches)
        if resolution.is_not_found:
            raise NotFoundError("person", query)
        if resolution.is_ambiguous:
            return resolution.options
        return resolution.match.to_ref()

    def _prompt_choice(self, key: ConversationKey, state: ChoiceState) -> Reply:
        stored = self.store.put(key, state)
        logger.info(
            f"{key}: asking user to choose between {len(stored.options)} "
            f"option(s) for {stored.query!r}"
        )
        return presentation.choice_prompt(stored)


__all__ = ["ResolutionWorkflow"]
