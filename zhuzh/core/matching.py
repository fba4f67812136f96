"""Fuzzy entity matching for free-text references.

Scores a query such as "gcn" or "ryan" against a set of people or projects
using ordered string-comparison rules. The first rule that applies decides a
candidate's score; candidates scoring 0 are dropped.

People and projects share one scorer. They differ only in their weights:

    Rule                          Person   Project
    exact full name                 100      100
    exact first name                 90        -
    exact alias                      85       95
    name starts with query           70       80
    alias starts with query          65       75
    any name word starts with        -        70
    name contains query              50       60
    alias contains query             45       55
    client name contains query       -        40

The matcher does no I/O; callers fetch candidates first (see directory.py).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Sequence

from .models import Entity, EntityKind, MatchCandidate


@dataclass(frozen=True)
class ScoringWeights:
    """Score awarded by each matching rule. ``None`` disables the rule.

    Rules are tried in field order; the first applicable one wins.
    """

    exact_name: int | None = 100
    exact_first_name: int | None = None
    exact_alias: int | None = None
    name_prefix: int | None = None
    alias_prefix: int | None = None
    word_prefix: int | None = None
    name_contains: int | None = None
    alias_contains: int | None = None
    secondary_contains: int | None = None

    def with_overrides(self, overrides: dict[str, Any] | None) -> "ScoringWeights":
        """Return a copy with the given rule weights replaced."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown scoring rules: {', '.join(sorted(unknown))}")
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(overrides)
        return ScoringWeights(**values)


PERSON_WEIGHTS = ScoringWeights(
    exact_name=100,
    exact_first_name=90,
    exact_alias=85,
    name_prefix=70,
    alias_prefix=65,
    name_contains=50,
    alias_contains=45,
)

PROJECT_WEIGHTS = ScoringWeights(
    exact_name=100,
    exact_alias=95,
    name_prefix=80,
    alias_prefix=75,
    word_prefix=70,
    name_contains=60,
    alias_contains=55,
    secondary_contains=40,
)

DEFAULT_WEIGHTS: dict[EntityKind, ScoringWeights] = {
    EntityKind.PERSON: PERSON_WEIGHTS,
    EntityKind.PROJECT: PROJECT_WEIGHTS,
}


class EntityMatcher:
    """Score entities against a free-text query.

    Example:
        >>> matcher = EntityMatcher(PROJECT_WEIGHTS)
        >>> matcher.match(projects, "gcn")
        [MatchCandidate(id='p1', display_name='Google Cloud Next 2026', ...)]
    """

    def __init__(self, weights: ScoringWeights) -> None:
        self.weights = weights

    @classmethod
    def for_kind(cls, kind: EntityKind) -> "EntityMatcher":
        return cls(DEFAULT_WEIGHTS[kind])

    def score(self, entity: Entity, query: str) -> int:
        """Score one entity; ``query`` must already be lower-cased and stripped."""
        w = self.weights
        name = entity.name.lower().strip()
        words = name.split()
        first_name = words[0] if words else ""
        aliases = entity.alias_list
        secondary = (entity.secondary or "").lower()

        rules: list[tuple[int | None, bool]] = [
            (w.exact_name, name == query),
            (w.exact_first_name, first_name == query),
            (w.exact_alias, query in aliases),
            (w.name_prefix, name.startswith(query)),
            (w.alias_prefix, any(a.startswith(query) for a in aliases)),
            (w.word_prefix, any(word.startswith(query) for word in words)),
            (w.name_contains, query in name),
            (w.alias_contains, any(query in a for a in aliases)),
            (w.secondary_contains, bool(secondary) and query in secondary),
        ]
        for weight, applies in rules:
            if weight is not None and applies:
                return weight
        return 0

    def match(self, candidates: Sequence[Entity], query: str) -> list[MatchCandidate]:
        """Return candidates with a positive score, best first.

        Ties keep the order of ``candidates``.

        Args:
            candidates: Entities to score
            query: Free-text reference as typed by the user

        Returns:
            Scored candidates sorted by descending score
        """
        needle = query.lower().strip()
        if not needle:
            return []

        scored: list[MatchCandidate] = []
        for entity in candidates:
            score = self.score(entity, needle)
            if score > 0:
                scored.append(
                    MatchCandidate(
                        id=entity.id,
                        display_name=entity.name,
                        detail=entity.detail,
                        score=score,
                    )
                )

        # sorted() is stable, so equal scores keep candidate order
        return sorted(scored, key=lambda c: c.score, reverse=True)


def match_people(people: Sequence[Entity], query: str) -> list[MatchCandidate]:
    """Match people with the default person weights."""
    return EntityMatcher(PERSON_WEIGHTS).match(people, query)


def match_projects(projects: Sequence[Entity], query: str) -> list[MatchCandidate]:
    """Match projects with the default project weights."""
    return EntityMatcher(PROJECT_WEIGHTS).match(projects, query)


__all__ = [
    "DEFAULT_WEIGHTS",
    "EntityMatcher",
    "PERSON_WEIGHTS",
    "PROJECT_WEIGHTS",
    "ScoringWeights",
    "match_people",
    "match_projects",
]
