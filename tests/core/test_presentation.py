"""Tests for zhuzh.core.presentation."""

from __future__ import annotations

import json
from datetime import date

import pytest

from zhuzh.core.conversation import (
    AddHoursAction,
    AwaitingProjectChoice,
    AwaitingUserChoice,
    Presentation,
)
from zhuzh.core.models import MatchCandidate
from zhuzh.core.presentation import (
    CANCEL_ACTION_ID,
    choice_prompt,
    decode_action_value,
    encode_action_value,
    format_numbered_options,
    help_reply,
    hours_prompt,
)

MONDAY = date(2026, 1, 26)

OPTIONS = [
    MatchCandidate(id="u1", display_name="Ryan Daniels", detail="Producer", score=90),
    MatchCandidate(id="u2", display_name="Ryan Brooks", detail="Designer", score=90),
]


def user_choice(mode: Presentation = Presentation.TEXT) -> AwaitingUserChoice:
    return AwaitingUserChoice(
        query="Ryan",
        options=OPTIONS,
        action=AddHoursAction(hours=4, week_start=MONDAY, target_user_query="Ryan"),
        presentation=mode,
    )


class TestTextPrompt:
    """Numbered-list prompts."""

    def test_numbered_options(self) -> None:
        text = format_numbered_options(OPTIONS)
        assert text.splitlines() == [
            "1️⃣ *Ryan Daniels* _(Producer)_",
            "2️⃣ *Ryan Brooks* _(Designer)_",
        ]

    def test_prompt_text(self) -> None:
        reply = choice_prompt(user_choice())
        assert reply.text.startswith('🤔 I found multiple people matching "Ryan"')
        assert "Reply with a number (1-2)" in reply.text
        assert not reply.ephemeral

    def test_prompt_blocks(self) -> None:
        reply = choice_prompt(user_choice())
        assert [b["type"] for b in reply.blocks] == ["section", "section", "context"]
        assert reply.metadata["session_id"].startswith("disamb_")

    def test_project_noun(self) -> None:
        state = AwaitingProjectChoice(
            query="acme",
            options=OPTIONS,
            action=AddHoursAction(hours=4, week_start=MONDAY),
        )
        assert "multiple projects" in choice_prompt(state).text


class TestButtonPrompt:
    """Block Kit button prompts."""

    def test_layout(self) -> None:
        reply = choice_prompt(user_choice(Presentation.BUTTONS))
        assert reply.ephemeral
        assert [b["type"] for b in reply.blocks] == [
            "section",
            "divider",
            "actions",
            "context",
            "actions",
        ]

    def test_buttons_carry_session_and_id(self) -> None:
        state = user_choice(Presentation.BUTTONS)
        buttons = choice_prompt(state).blocks[2]["elements"]

        assert [b["action_id"] for b in buttons] == [
            "disambiguate_user_0",
            "disambiguate_user_1",
        ]
        assert buttons[0]["style"] == "primary"
        assert "style" not in buttons[1]
        assert json.loads(buttons[1]["value"]) == {
            "session_id": state.session_id,
            "selected_id": "u2",
        }

    def test_cancel_button(self) -> None:
        state = user_choice(Presentation.BUTTONS)
        cancel = choice_prompt(state).blocks[-1]["elements"][0]
        assert cancel["action_id"] == CANCEL_ACTION_ID
        assert cancel["value"] == state.session_id

    def test_long_names_truncated(self) -> None:
        long_name = "The Extremely Long Annual Partner Summit Microsite"
        state = AwaitingProjectChoice(
            query="summit",
            options=[
                MatchCandidate(id="p1", display_name=long_name, score=60),
                MatchCandidate(id="p2", display_name="Summit", score=100),
            ],
            action=AddHoursAction(hours=4, week_start=MONDAY),
            presentation=Presentation.BUTTONS,
        )
        label = choice_prompt(state).blocks[2]["elements"][0]["text"]["text"]
        assert len(label) == 40
        assert label.endswith("...")


class TestActionValues:
    def test_round_trip(self) -> None:
        assert decode_action_value(encode_action_value("disamb_abc", "p1")) == ("disamb_abc", "p1")

    @pytest.mark.parametrize("value", ["", "not json", '{"session_id": "x"}', "[1, 2]"])
    def test_malformed(self, value: str) -> None:
        with pytest.raises(ValueError):
            decode_action_value(value)


class TestOtherPrompts:
    def test_hours_prompt(self) -> None:
        reply = hours_prompt("Google Cloud Next 2026", MONDAY)
        assert "Adding time to *Google Cloud Next 2026*" in reply.text
        assert "How many hours?" in reply.text
        assert "Week of Jan 26 - Jan 30" in reply.blocks[1]["elements"][0]["text"]

    def test_help_is_ephemeral(self) -> None:
        reply = help_reply()
        assert reply.ephemeral
        assert "/zhuzh add 4h to [project]" in reply.text
