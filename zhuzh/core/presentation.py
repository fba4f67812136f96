"""Prompt and message rendering.

Everything the assistant says is built here as a transport-neutral ``Reply``.
Where a message has structure, ``blocks`` follow Slack Block Kit so a host can
post them as-is; ``text`` is always a readable fallback.

Choice prompts come in two presentations:
- text: numbered list, the user replies with a number or a name
- buttons: one button per option; each button value carries the session id
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any

from .conversation import AwaitingProjectChoice, ChoiceState, Presentation
from .models import MatchCandidate, Reply
from .weeks import format_hours, format_week_label

NUMBER_EMOJIS = ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟"]

ACTION_PREFIX = "disambiguate_"
CANCEL_ACTION_ID = "disambiguate_cancel"
MAX_BUTTON_LABEL = 40

CANCELLED_TEXT = "👍 No problem, cancelled."
EXPIRED_TEXT = "⌛ That request has expired. Please try again."

HELP_TEXT = (
    "*Time Tracking*\n"
    "- `/zhuzh start [project]` - Start a timer\n"
    "- `/zhuzh stop` - Stop the running timer\n"
    "- `/zhuzh log 2h [project]` - Log time manually\n"
    "- `/zhuzh status` - Today's time breakdown\n\n"
    "*Resource Management*\n"
    "- `/zhuzh add 4h to [project]` - Add planned hours\n"
    "- `/zhuzh show my hours` - See your allocations\n"
    "- `/zhuzh how's [project] budget?` - Check project status\n"
    "- `/zhuzh who's available next week?` - Find availability"
)

UNKNOWN_TEXT = (
    "🤔 I didn't quite understand that. Try:\n"
    "- `add 4h to [project]`\n"
    "- `show my hours`\n"
    "- `how's [project] budget?`"
)


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _context(*texts: str) -> dict[str, Any]:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": t} for t in texts]}


def _button(text: str, action_id: str, value: str, style: str | None = None) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": "button",
        "text": {"type": "plain_text", "text": text, "emoji": True},
        "action_id": action_id,
        "value": value,
    }
    if style:
        button["style"] = style
    return button


def _truncate(name: str, limit: int = MAX_BUTTON_LABEL) -> str:
    if len(name) <= limit:
        return name
    return name[: limit - 3] + "..."


# =============================================================================
# Choice prompts
# =============================================================================


def format_numbered_options(options: list[MatchCandidate]) -> str:
    """Render options as an emoji-numbered list (at most ten)."""
    lines = []
    for emoji, option in zip(NUMBER_EMOJIS, options):
        detail = f" _({option.detail})_" if option.detail else ""
        lines.append(f"{emoji} *{option.display_name}*{detail}")
    return "\n".join(lines)


def choice_kind(state: ChoiceState) -> str:
    """Short entity kind used in action ids: "project" or "user"."""
    return "project" if isinstance(state, AwaitingProjectChoice) else "user"


def choice_prompt(state: ChoiceState) -> Reply:
    """Ask the user to pick one of the state's options."""
    noun = "projects" if choice_kind(state) == "project" else "people"
    if state.presentation == Presentation.BUTTONS:
        return _button_prompt(state, noun)

    count = len(state.options)
    blocks = [
        _section(f'🤔 I found multiple {noun} matching *"{state.query}"*. Reply with a number:'),
        _section(format_numbered_options(state.options)),
        _context(f'_Reply with a number (1-{count}), type a name, or say "cancel"_'),
    ]
    fallback = "\n".join(
        [
            f'🤔 I found multiple {noun} matching "{state.query}". Reply with a number:',
            format_numbered_options(state.options),
            f'Reply with a number (1-{count}), type a name, or say "cancel".',
        ]
    )
    return Reply(text=fallback, blocks=blocks, metadata={"session_id": state.session_id})


def _button_prompt(state: ChoiceState, noun: str) -> Reply:
    kind = choice_kind(state)
    buttons = [
        _button(
            _truncate(option.display_name),
            f"{ACTION_PREFIX}{kind}_{index}",
            encode_action_value(state.session_id, option.id),
            style="primary" if index == 0 else None,
        )
        for index, option in enumerate(state.options)
    ]
    blocks = [
        _section(f'🤔 I found multiple {noun} matching *"{state.query}"*. Which one did you mean?'),
        {"type": "divider"},
        {"type": "actions", "elements": buttons},
        _context(*(f"*{o.display_name}* - {o.detail}" for o in state.options)),
        {
            "type": "actions",
            "elements": [_button("❌ Cancel", CANCEL_ACTION_ID, state.session_id)],
        },
    ]
    return Reply(
        text=f'Multiple {noun} match "{state.query}". Please select one.',
        blocks=blocks,
        ephemeral=True,
        metadata={"session_id": state.session_id},
    )


def encode_action_value(session_id: str, selected_id: str) -> str:
    return json.dumps({"session_id": session_id, "selected_id": selected_id})


def decode_action_value(value: str) -> tuple[str, str]:
    """Parse a button value into (session_id, selected_id).

    Raises:
        ValueError: If the value is not a selection payload
    """
    try:
        data = json.loads(value)
        return str(data["session_id"]), str(data["selected_id"])
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise ValueError(f"Malformed selection payload: {value!r}") from e


def choice_retry_text(text: str, count: int) -> str:
    return f'❓ I didn\'t understand "{text}". Please reply with a number (1-{count}) or type the name.'


# =============================================================================
# Hours and confirmation prompts
# =============================================================================


def hours_prompt(project_name: str, week_start: date) -> Reply:
    week = format_week_label(week_start)
    return Reply(
        text=f"✅ Got it! Adding time to *{project_name}*.\n\nHow many hours? (e.g., \"4\" or \"4.5\")",
        blocks=[
            _section(
                f"✅ Got it! Adding time to *{project_name}*.\n\n"
                'How many hours? (e.g., "4" or "4.5")'
            ),
            _context(f'_Week of {week} • Reply with a number or "cancel"_'),
        ],
    )


def hours_retry_text(max_hours: float) -> str:
    return (
        '❓ Please enter a valid number of hours (e.g., "4" or "4.5"). '
        f"Maximum is {format_hours(max_hours)} hours."
    )


def capacity_warning(
    user_name: str, hours: float, planned: float, capacity: float, week_start: date
) -> str:
    return (
        f"⚠️ Adding *{format_hours(hours)}h* would put *{user_name}* at "
        f"*{format_hours(planned + hours)}h* for {format_week_label(week_start)} "
        f"(capacity {format_hours(capacity)}h). Add it anyway? Reply \"yes\" or \"no\"."
    )


def confirmation_prompt(prompt: str) -> Reply:
    return Reply(text=prompt, blocks=[_section(prompt)])


YES_NO_RETRY_TEXT = '❓ Please reply "yes" or "no".'


# =============================================================================
# Help
# =============================================================================


def help_reply() -> Reply:
    return Reply(
        text="I'm Zhuzh, your resource management assistant.\n\n" + HELP_TEXT,
        blocks=[
            _section(
                "*👋 Hey! I'm Zhuzh, your resource management assistant.*\n\n"
                "Here are some things you can ask me:"
            ),
            _section(HELP_TEXT),
            _context('_Tip: I understand project aliases! "GCN" → "Google Cloud Next 2026"_'),
        ],
        ephemeral=True,
    )


def unknown_reply() -> Reply:
    return Reply(text=UNKNOWN_TEXT)


__all__ = [
    "ACTION_PREFIX",
    "CANCEL_ACTION_ID",
    "CANCELLED_TEXT",
    "EXPIRED_TEXT",
    "NUMBER_EMOJIS",
    "YES_NO_RETRY_TEXT",
    "capacity_warning",
    "choice_kind",
    "choice_prompt",
    "choice_retry_text",
    "confirmation_prompt",
    "decode_action_value",
    "encode_action_value",
    "format_numbered_options",
    "help_reply",
    "hours_prompt",
    "hours_retry_text",
    "unknown_reply",
]
