"""Entity directory: fetch active people/projects and score them.

The matcher itself is pure; this module is the caller side that loads the
candidate set from a backend for one organization and hands it to the matcher.
"""

from __future__ import annotations

import logging

from .backends import BackendError, DataBackend
from .errors import PersistenceError
from .matching import PERSON_WEIGHTS, PROJECT_WEIGHTS, EntityMatcher, ScoringWeights
from .models import CallerIdentity, MatchCandidate, Person, Project

logger = logging.getLogger(__name__)


class EntityDirectory:
    """Looks up people and projects for free-text references.

    Attributes:
        backend: Data backend holding the directory
        person_matcher: Matcher configured with person weights
        project_matcher: Matcher configured with project weights
    """

    def __init__(
        self,
        backend: DataBackend,
        person_weights: ScoringWeights = PERSON_WEIGHTS,
        project_weights: ScoringWeights = PROJECT_WEIGHTS,
    ) -> None:
        self.backend = backend
        self.person_matcher = EntityMatcher(person_weights)
        self.project_matcher = EntityMatcher(project_weights)

    async def active_projects(self, org_id: str) -> list[Project]:
        try:
            return await self.backend.find_active_projects(org_id)
        except BackendError as e:
            logger.error(f"Failed to load projects for {org_id}: {e}")
            raise PersistenceError(str(e)) from e

    async def active_people(self, org_id: str) -> list[Person]:
        try:
            return await self.backend.find_active_users(org_id)
        except BackendError as e:
            logger.error(f"Failed to load people for {org_id}: {e}")
            raise PersistenceError(str(e)) from e

    async def match_projects(self, org_id: str, query: str) -> list[MatchCandidate]:
        """Score the organization's active projects against ``query``."""
        matches = self.project_matcher.match(await self.active_projects(org_id), query)
        logger.debug(f"Project query {query!r}: {len(matches)} match(es)")
        return matches

    async def match_people(self, org_id: str, query: str) -> list[MatchCandidate]:
        """Score the organization's active people against ``query``."""
        matches = self.person_matcher.match(await self.active_people(org_id), query)
        logger.debug(f"Person query {query!r}: {len(matches)} match(es)")
        return matches

    async def find_caller(self, org_id: str | None, reference: str) -> CallerIdentity | None:
        """Identify a caller by user id, Slack user id, or name.

        Used by local front ends that act "as" a named person. Ids win over
        names; a name must resolve to a single best match.

        Args:
            org_id: Organization to search; None searches by id only
            reference: User id, Slack user id, or (partial) name

        Returns:
            CallerIdentity, or None if nobody matches
        """
        person = await self.backend.get_user(reference)
        if person is not None:
            return CallerIdentity.from_person(person)

        if org_id is None:
            return None

        people = await self.active_people(org_id)
        for candidate in people:
            if candidate.slack_user_id and candidate.slack_user_id == reference:
                return CallerIdentity.from_person(candidate)

        matches = self.person_matcher.match(people, reference)
        if not matches:
            return None
        if len(matches) > 1 and matches[0].score == matches[1].score:
            logger.warning(f"Caller reference {reference!r} is ambiguous")
            return None
        best = next(p for p in people if p.id == matches[0].id)
        return CallerIdentity.from_person(best)


__all__ = ["EntityDirectory"]
