"""Tests for zhuzh.core.matching.

Tests cover:
- Person scoring rules and their order
- Project scoring rules, including word prefix and client name
- Sorting, tie order and dropped zero scores
- Weight overrides
"""

from __future__ import annotations

import pytest
from conftest import make_people, make_projects

from zhuzh.core.matching import (
    PERSON_WEIGHTS,
    PROJECT_WEIGHTS,
    EntityMatcher,
    match_people,
    match_projects,
)
from zhuzh.core.models import Person, Project

# =============================================================================
# People
# =============================================================================


class TestPersonScoring:
    """Tests for person weights."""

    @pytest.fixture
    def matcher(self) -> EntityMatcher:
        return EntityMatcher(PERSON_WEIGHTS)

    @pytest.fixture
    def ryan(self) -> Person:
        return Person(id="u1", name="Ryan Daniels", aliases="RD, Danno")

    def test_exact_full_name(self, matcher: EntityMatcher, ryan: Person) -> None:
        """Full name match ignores case."""
        assert matcher.score(ryan, "ryan daniels") == 100

    def test_exact_first_name(self, matcher: EntityMatcher, ryan: Person) -> None:
        """First word of the name scores 90."""
        assert matcher.score(ryan, "ryan") == 90

    def test_exact_alias(self, matcher: EntityMatcher, ryan: Person) -> None:
        """Aliases are trimmed and lower-cased before comparing."""
        assert matcher.score(ryan, "danno") == 85
        assert matcher.score(ryan, "rd") == 85

    def test_name_prefix(self, matcher: EntityMatcher, ryan: Person) -> None:
        """A prefix of the full name scores 70."""
        assert matcher.score(ryan, "ry") == 70

    def test_alias_prefix(self, matcher: EntityMatcher, ryan: Person) -> None:
        """A prefix of an alias scores 65."""
        assert matcher.score(ryan, "dann") == 65

    def test_name_contains(self, matcher: EntityMatcher, ryan: Person) -> None:
        """A substring of the name scores 50; people have no word-prefix rule."""
        assert matcher.score(ryan, "iel") == 50

    def test_alias_contains(self, matcher: EntityMatcher, ryan: Person) -> None:
        """A substring of an alias scores 45."""
        assert matcher.score(ryan, "nno") == 45

    def test_no_match(self, matcher: EntityMatcher, ryan: Person) -> None:
        assert matcher.score(ryan, "zed") == 0


# =============================================================================
# Projects
# =============================================================================


class TestProjectScoring:
    """Tests for project weights."""

    @pytest.fixture
    def matcher(self) -> EntityMatcher:
        return EntityMatcher(PROJECT_WEIGHTS)

    @pytest.fixture
    def gcn(self) -> Project:
        return Project(
            id="p1",
            name="Google Cloud Next 2026",
            aliases="GCN, Next",
            client_name="Google",
        )

    def test_exact_name(self, matcher: EntityMatcher, gcn: Project) -> None:
        assert matcher.score(gcn, "google cloud next 2026") == 100

    def test_exact_alias(self, matcher: EntityMatcher, gcn: Project) -> None:
        """Project aliases outrank person aliases (95 vs 85)."""
        assert matcher.score(gcn, "gcn") == 95

    def test_name_prefix(self, matcher: EntityMatcher, gcn: Project) -> None:
        assert matcher.score(gcn, "goo") == 80

    def test_alias_prefix(self, matcher: EntityMatcher, gcn: Project) -> None:
        assert matcher.score(gcn, "nex") == 75

    def test_word_prefix(self, matcher: EntityMatcher, gcn: Project) -> None:
        """Any word of the name may start with the query."""
        assert matcher.score(gcn, "cloud") == 70

    def test_name_contains(self, matcher: EntityMatcher, gcn: Project) -> None:
        assert matcher.score(gcn, "oud") == 60

    def test_alias_contains(self, matcher: EntityMatcher, gcn: Project) -> None:
        assert matcher.score(gcn, "cn") == 55

    def test_client_name_contains(self, matcher: EntityMatcher) -> None:
        """Client name is the last rule."""
        project = Project(id="p2", name="Brand Refresh", client_name="Acme Corp")
        assert matcher.score(project, "acme") == 40

    def test_project_has_no_first_name_rule(self, matcher: EntityMatcher, gcn: Project) -> None:
        """'google' is a name prefix for projects, not a first-name hit."""
        assert matcher.score(gcn, "google") == 80


# =============================================================================
# Matching
# =============================================================================


class TestMatch:
    """Tests for EntityMatcher.match()."""

    def test_sorted_by_descending_score(self) -> None:
        """'gcn' hits an alias (95) and a name substring (60)."""
        matches = match_projects(make_projects(), "GCN")
        assert [(m.id, m.score) for m in matches] == [("p1", 95), ("p2", 60)]

    def test_zero_scores_dropped(self) -> None:
        matches = match_projects(make_projects(), "gcn")
        assert all(m.score > 0 for m in matches)
        assert "p3" not in {m.id for m in matches}

    def test_ties_keep_candidate_order(self) -> None:
        """Two Ryans score 90 and stay in directory order."""
        matches = match_people(make_people(), "ryan")
        assert [(m.display_name, m.score) for m in matches] == [
            ("Ryan Daniels", 90),
            ("Ryan Brooks", 90),
        ]

    def test_query_is_trimmed_and_lowercased(self) -> None:
        matches = match_people(make_people(), "  ALEX  ")
        assert matches[0].id == "u3"

    def test_empty_query_matches_nothing(self) -> None:
        assert match_people(make_people(), "   ") == []

    def test_candidate_detail(self) -> None:
        """Detail is the job title for people and client name for projects."""
        person = match_people(make_people(), "alex")[0]
        project = match_projects(make_projects(), "web")[0]
        assert person.detail == "Engineer"
        assert project.detail == "Acme"

    def test_project_without_client_detail(self) -> None:
        projects = [Project(id="x", name="Internal")]
        assert match_projects(projects, "internal")[0].detail == "No Client"


# =============================================================================
# Weights
# =============================================================================


class TestScoringWeights:
    """Tests for ScoringWeights overrides."""

    def test_override_disables_rule(self) -> None:
        """Disabling the first-name rule falls through to the name prefix."""
        weights = PERSON_WEIGHTS.with_overrides({"exact_first_name": None})
        matcher = EntityMatcher(weights)
        assert matcher.score(Person(id="u1", name="Ryan Daniels"), "ryan") == 70

    def test_override_changes_score(self) -> None:
        weights = PROJECT_WEIGHTS.with_overrides({"exact_alias": 99})
        assert weights.exact_alias == 99
        assert weights.name_prefix == PROJECT_WEIGHTS.name_prefix

    def test_empty_override_returns_same(self) -> None:
        assert PERSON_WEIGHTS.with_overrides({}) is PERSON_WEIGHTS

    def test_unknown_rule_rejected(self) -> None:
        with pytest.raises(ValueError, match="nickname_exact"):
            PERSON_WEIGHTS.with_overrides({"nickname_exact": 80})
