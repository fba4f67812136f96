"""Entity extraction for Zhuzh intent parsing.

Turns the capture groups of a matched intent pattern into typed entities:
hours figures, free-text project and person references, the target week and
timer notes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Words that mean "the caller" in a person reference
SELF_WORDS = frozenset({"my", "me", "myself", "i"})

WEEK_WORDS = frozenset({"this", "next"})


@dataclass
class ExtractedEntities:
    """Container for entities extracted from a command.

    Attributes:
        hours: Hours figure ("4h" -> 4.0)
        minutes: Extra minutes for timer logs ("2h 30m" -> 30)
        project_query: Project reference as typed
        user_query: Person reference as typed
        week: "this" or "next"
        notes: Free-text notes for a stopped timer
    """

    hours: float | None = None
    minutes: int | None = None
    project_query: str | None = None
    user_query: str | None = None
    week: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def clean_reference(value: str | None) -> str | None:
    """Trim a captured reference; empty captures become None."""
    if value is None:
        return None
    value = value.strip().strip("\"'")
    return value or None


def parse_number(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def normalize_week(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.lower()
    return value if value in WEEK_WORDS else None


def is_self_reference(value: str | None) -> bool:
    return value is not None and value.strip().lower() in SELF_WORDS


__all__ = [
    "ExtractedEntities",
    "SELF_WORDS",
    "clean_reference",
    "is_self_reference",
    "normalize_week",
    "parse_number",
]
