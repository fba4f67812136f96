"""Disambiguation policy: auto-resolve a match or ask the user.

A lone candidate is always taken. Among several, the top candidate is taken
only when it is a near-exact hit (score >= 90) that clearly beats the runner-up
(gap >= 20); otherwise the user is asked to pick from the top five.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .models import MatchCandidate


class ResolutionStatus(str, Enum):
    NOT_FOUND = "not_found"
    AUTO = "auto"
    AMBIGUOUS = "ambiguous"


@dataclass
class Resolution:
    """Outcome of resolving a scored match list.

    Attributes:
        status: Whether the reference was found, auto-resolved, or ambiguous
        match: The chosen candidate when status is AUTO
        options: Candidates to offer the user when status is AMBIGUOUS
    """

    status: ResolutionStatus
    match: MatchCandidate | None = None
    options: list[MatchCandidate] = field(default_factory=list)

    @property
    def is_auto(self) -> bool:
        return self.status == ResolutionStatus.AUTO

    @property
    def is_ambiguous(self) -> bool:
        return self.status == ResolutionStatus.AMBIGUOUS

    @property
    def is_not_found(self) -> bool:
        return self.status == ResolutionStatus.NOT_FOUND


class DisambiguationResolver:
    """Decide between auto-resolution and a user prompt."""

    def __init__(
        self,
        min_auto_score: int = 90,
        min_gap: int = 20,
        max_options: int = 5,
    ) -> None:
        """Initialize the resolver.

        Args:
            min_auto_score: Minimum top score for auto-resolving among several
            min_gap: Minimum lead of the top score over the runner-up
            max_options: Maximum options offered in a prompt
        """
        self.min_auto_score = min_auto_score
        self.min_gap = min_gap
        self.max_options = max_options

    def resolve(self, matches: list[MatchCandidate]) -> Resolution:
        """Resolve matches, which must be sorted best first."""
        if not matches:
            return Resolution(status=ResolutionStatus.NOT_FOUND)

        if len(matches) == 1:
            return Resolution(status=ResolutionStatus.AUTO, match=matches[0])

        top, runner_up = matches[0], matches[1]
        if top.score >= self.min_auto_score and top.score - runner_up.score >= self.min_gap:
            return Resolution(status=ResolutionStatus.AUTO, match=top)

        return Resolution(
            status=ResolutionStatus.AMBIGUOUS,
            options=list(matches[: self.max_options]),
        )


__all__ = ["DisambiguationResolver", "Resolution", "ResolutionStatus"]
