"""Ordered regex patterns for Zhuzh command intents.

Patterns are tried in declaration order and the first match wins, so the
timer sub-grammar is checked before planning commands and the specific
"add <hours>h" form before the generic "add time to" form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .entities import (
    ExtractedEntities,
    clean_reference,
    normalize_week,
    parse_number,
)
from .taxonomy import IntentResult, IntentType


@dataclass
class PatternMatch:
    """Result of pattern matching.

    Attributes:
        intent: Matched intent
        groups: Raw capture groups
        pattern: Source of the regex that matched
        entities: Entities extracted from the groups
    """

    intent: IntentType
    groups: tuple[str | None, ...]
    pattern: str
    entities: dict[str, Any] = field(default_factory=dict)


class IntentPatternMatcher:
    """First-match-wins regex classifier for command text."""

    # (intent, pattern); order matters
    PATTERNS: list[tuple[IntentType, str]] = [
        # Timer sub-grammar
        (IntentType.TIMER_START, r"^start(?:\s+(.+))?$"),
        (IntentType.TIMER_STOP, r"^stop(?:\s+(.*))?$"),
        (
            IntentType.TIMER_LOG,
            r"^log\s+(\d+(?:\.\d+)?)\s*h(?:ours?)?"
            r"(?:\s*(\d+)\s*m(?:in(?:ute)?s?)?)?"
            r"(?:\s+(?:to\s+)?(.+))?$",
        ),
        (IntentType.TIMER_STATUS, r"^(?:status|today|time)$"),
        # Planning
        (
            IntentType.ADD_HOURS,
            r"^add\s+(\d+(?:\.\d+)?)\s*h(?:ours?|rs?)?\s+(?:to\s+)?(.+?)"
            r"(?:\s+for\s+(.+?))?(?:\s+(this|next)\s+week)?$",
        ),
        (IntentType.ADD_TIME_TO, r"^add\s+(?:time|hours?)\s+(?:to\s+)?(.+)$"),
        # Reporting
        (
            IntentType.SHOW_HOURS,
            r"^(?:show|get|what(?:'?s| is))\s+(?:me\s+)?(.+?)(?:'s)?\s+hours?"
            r"(?:\s+(?:for\s+)?(this|next)\s+week)?",
        ),
        (
            IntentType.PROJECT_STATUS,
            r"^(?:how(?:'?s| is)|show|get)\s+(?:the\s+)?(.+?)\s+(?:budget|status|doing)",
        ),
        (
            IntentType.WHO_AVAILABLE,
            r"^who(?:'?s| is)\s+(?:available|free)(?:\s+(this|next)\s+week)?",
        ),
    ]

    def __init__(self) -> None:
        """Initialize the matcher with compiled regexes."""
        self._compiled: list[tuple[IntentType, re.Pattern[str]]] = [
            (intent, re.compile(pattern, re.IGNORECASE)) for intent, pattern in self.PATTERNS
        ]

    def match(self, text: str) -> PatternMatch | None:
        """Return the first pattern that matches ``text``.

        Args:
            text: Normalized command text

        Returns:
            PatternMatch, or None if no pattern matches
        """
        for intent, regex in self._compiled:
            m = regex.match(text)
            if m:
                groups = m.groups()
                return PatternMatch(
                    intent=intent,
                    groups=groups,
                    pattern=regex.pattern,
                    entities=self.extract(intent, groups).to_dict(),
                )
        return None

    def extract(self, intent: IntentType, groups: tuple[str | None, ...]) -> ExtractedEntities:
        """Map capture groups to entities for ``intent``."""
        entities = ExtractedEntities()

        if intent == IntentType.TIMER_START:
            entities.project_query = clean_reference(groups[0])
        elif intent == IntentType.TIMER_STOP:
            entities.notes = clean_reference(groups[0])
        elif intent == IntentType.TIMER_LOG:
            entities.hours = parse_number(groups[0])
            entities.minutes = int(groups[1]) if groups[1] else None
            entities.project_query = clean_reference(groups[2])
        elif intent == IntentType.ADD_HOURS:
            entities.hours = parse_number(groups[0])
            entities.project_query = clean_reference(groups[1])
            entities.user_query = clean_reference(groups[2])
            entities.week = normalize_week(groups[3])
        elif intent == IntentType.ADD_TIME_TO:
            entities.project_query = clean_reference(groups[0])
        elif intent == IntentType.SHOW_HOURS:
            entities.user_query = clean_reference(groups[0])
            entities.week = normalize_week(groups[1])
        elif intent == IntentType.PROJECT_STATUS:
            entities.project_query = clean_reference(groups[0])
        elif intent == IntentType.WHO_AVAILABLE:
            entities.week = normalize_week(groups[0])

        return entities

    def to_intent_result(self, match: PatternMatch, text: str) -> IntentResult:
        """Convert a PatternMatch to an IntentResult."""
        return IntentResult(
            intent=match.intent,
            entities=match.entities,
            text=text,
            source="pattern",
            matched_pattern=match.pattern,
        )


__all__ = ["IntentPatternMatcher", "PatternMatch"]
