"""Assistant facade: one object a transport talks to.

Wires the directory, resolver, conversation store, executors, workflow, reply
router, timer and interpreter together, and owns the expiry sweeper.

Inbound events:
- handle_command(): a new command (e.g. the /zhuzh slash command)
- handle_message(): a plain message; routed only if a prompt is pending
- handle_action(): a button click from a Block Kit prompt
- respond(): chat-style entry used by the CLI; replies first, then commands
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from .actions import ActionExecutor
from .backends import DataBackend, create_backend
from .conversation import (
    ConversationKey,
    ConversationStore,
    ExpirySweeper,
    InMemoryConversationStore,
    Presentation,
)
from .directory import EntityDirectory
from .interpreter import CommandInterpreter
from .matching import PERSON_WEIGHTS, PROJECT_WEIGHTS
from .models import CallerIdentity, Reply
from .presentation import (
    ACTION_PREFIX,
    CANCEL_ACTION_ID,
    EXPIRED_TEXT,
    decode_action_value,
)
from .replies import ConversationalReplyRouter
from .resolver import DisambiguationResolver
from .timer import TimerService
from .workflow import ResolutionWorkflow

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)


class Assistant:
    """The Zhuzh conversational assistant.

    Example:
        >>> assistant = create_assistant(config)
        >>> assistant.start()
        >>> reply = await assistant.handle_command("add 4h to GCN", caller, "D123")
        >>> await assistant.close()

    Attributes:
        backend: Data backend
        store: Conversation state store
        interpreter: Command interpreter
        router: Reply router for pending prompts
    """

    def __init__(
        self,
        backend: DataBackend,
        store: ConversationStore,
        interpreter: CommandInterpreter,
        router: ConversationalReplyRouter,
        sweep_interval: float = 60.0,
    ) -> None:
        self.backend = backend
        self.store = store
        self.interpreter = interpreter
        self.router = router
        self.directory = interpreter.workflow.directory
        self.sweeper = ExpirySweeper(store, interval=sweep_interval)

    def start(self) -> None:
        """Start the expiry sweeper on the running event loop."""
        self.sweeper.start()

    async def close(self) -> None:
        await self.sweeper.stop()
        await self.backend.close()

    async def __aenter__(self) -> "Assistant":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Inbound events
    # =========================================================================

    async def handle_command(
        self, text: str, caller: CallerIdentity, channel_id: str
    ) -> Reply:
        """Interpret a new command."""
        key = ConversationKey(channel_id, caller.user_id)
        return await self.interpreter.handle(text, caller, key)

    async def handle_message(
        self, text: str, caller: CallerIdentity, channel_id: str
    ) -> Reply | None:
        """Route a message to a pending prompt.

        Returns:
            Reply, or None if nothing is pending for this channel and user
        """
        key = ConversationKey(channel_id, caller.user_id)
        return await self.router.handle_message(key, caller, text)

    async def respond(self, text: str, caller: CallerIdentity, channel_id: str) -> Reply:
        """Answer a chat line: a pending prompt first, otherwise a command.

        Text starting with "/zhuzh" is always treated as a new command.
        """
        if not text.strip().lower().startswith("/zhuzh"):
            reply = await self.handle_message(text, caller, channel_id)
            if reply is not None:
                return reply
        return await self.handle_command(text, caller, channel_id)

    async def handle_action(
        self, action_id: str, value: str, caller: CallerIdentity
    ) -> Reply:
        """Handle a button click from a choice prompt.

        Args:
            action_id: "disambiguate_<kind>_<index>" or "disambiguate_cancel"
            value: Button value (session id for cancel, JSON selection otherwise)
            caller: Identity of the user who clicked

        Returns:
            Reply to post
        """
        if action_id == CANCEL_ACTION_ID:
            return await self.router.handle_cancel(value)

        if not action_id.startswith(ACTION_PREFIX):
            logger.warning(f"Ignoring unknown action {action_id!r}")
            return Reply(text=EXPIRED_TEXT, ephemeral=True)

        try:
            session_id, selected_id = decode_action_value(value)
        except ValueError as e:
            logger.warning(str(e))
            return Reply(text=EXPIRED_TEXT, ephemeral=True)

        return await self.router.handle_selection(session_id, selected_id, caller)

    async def identify(self, reference: str, org_id: str | None = None) -> CallerIdentity | None:
        """Resolve a caller by id, Slack id or name."""
        return await self.directory.find_caller(org_id or self.backend.default_org_id, reference)


def create_assistant(
    config: "AppConfig",
    backend: DataBackend | None = None,
    store: ConversationStore | None = None,
    **components: Any,
) -> Assistant:
    """Build an Assistant from configuration.

    Args:
        config: Application configuration
        backend: Data backend (default: create_backend(config))
        store: Conversation store (default: in-memory with the configured TTL)
        **components: Optional clock overrides (``timer_clock``, ``today``)

    Returns:
        Wired Assistant (sweeper not yet started)
    """
    if backend is None:
        backend = create_backend(config)
    if store is None:
        store = InMemoryConversationStore(ttl=timedelta(minutes=config.conversation.ttl_minutes))

    directory = EntityDirectory(
        backend,
        person_weights=PERSON_WEIGHTS.with_overrides(config.resolver.person_weights),
        project_weights=PROJECT_WEIGHTS.with_overrides(config.resolver.project_weights),
    )
    resolver = DisambiguationResolver(
        min_auto_score=config.resolver.auto_resolve_min_score,
        min_gap=config.resolver.auto_resolve_min_gap,
        max_options=config.resolver.max_options,
    )
    executor = ActionExecutor(backend, weekly_capacity=config.hours.weekly_capacity_hours)
    workflow = ResolutionWorkflow(
        directory,
        resolver,
        store,
        executor,
        default_presentation=Presentation(config.conversation.presentation),
        max_hours=config.hours.max_hours_per_entry,
        confirm_over_capacity=config.hours.confirm_over_capacity,
    )
    timer = TimerService(
        directory,
        clock=components.get("timer_clock"),
        max_log_minutes=config.hours.max_log_minutes,
    )
    interpreter = CommandInterpreter(workflow, timer, today=components.get("today"))
    router = ConversationalReplyRouter(store, workflow)

    return Assistant(
        backend,
        store,
        interpreter,
        router,
        sweep_interval=config.conversation.sweep_interval_seconds,
    )


__all__ = ["Assistant", "create_assistant"]
