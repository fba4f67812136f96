"""Intent taxonomy for Zhuzh commands.

This module defines the command intents the interpreter understands and the
result type produced by the parser.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentType(str, Enum):
    """Command intents, in the order the patterns are tried."""

    TIMER_START = "timer.start"  # start [project]
    TIMER_STOP = "timer.stop"  # stop [notes]
    TIMER_LOG = "timer.log"  # log 2h [30m] [project]
    TIMER_STATUS = "timer.status"  # status | today | time
    ADD_HOURS = "plan.add_hours"  # add 4h to GCN [for Ryan] [next week]
    ADD_TIME_TO = "plan.add_time_to"  # add time to GCN
    SHOW_HOURS = "report.show_hours"  # show me Ryan's hours
    PROJECT_STATUS = "report.project_status"  # how's the GCN budget?
    WHO_AVAILABLE = "report.who_available"  # who's available next week?
    HELP = "help"
    UNKNOWN = "unknown"


@dataclass
class IntentResult:
    """Result of intent parsing.

    Attributes:
        intent: The detected intent
        entities: Extracted entities (hours, project_query, user_query, ...)
        text: Normalized input text
        source: Classification source (command, pattern, fallback)
        matched_pattern: The regex that matched (for debugging)
    """

    intent: IntentType
    entities: dict[str, Any] = field(default_factory=dict)
    text: str = ""
    source: str = "unknown"
    matched_pattern: str | None = None

    @classmethod
    def help(cls, text: str = "") -> "IntentResult":
        """Create a help result for empty input or an explicit help command."""
        return cls(intent=IntentType.HELP, text=text, source="command")

    @classmethod
    def unknown(cls, text: str) -> "IntentResult":
        """Create a fallback result for input no pattern understood."""
        return cls(intent=IntentType.UNKNOWN, text=text, source="fallback")

    @property
    def is_timer(self) -> bool:
        return self.intent.value.startswith("timer.")


__all__ = ["IntentResult", "IntentType"]
