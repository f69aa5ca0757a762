from __future__ import annotations

from caseflow.matching.domain import CriteriaMatcher, MatchCandidate

matcher = CriteriaMatcher(["classification", "location", "department"])


def test_most_specific_candidate_wins() -> None:
    generic = MatchCandidate.of("generic")
    by_class = MatchCandidate.of("by-class", classification=["network"])
    by_class_and_site = MatchCandidate.of("by-class-site", classification=["network"], location=["hq"])

    result = matcher.match(
        [generic, by_class, by_class_and_site],
        {"classification": "network", "location": "hq"},
    )

    assert result.single
    assert result.matched_id == "by-class-site"
    assert [r.candidate.id for r in result.ranked] == ["by-class-site", "by-class", "generic"]


def test_unsatisfied_constraint_excludes_candidate() -> None:
    # A declared constraint must be met; it is never a partial match.
    candidate = MatchCandidate.of("hq-only", location=["hq"])

    assert matcher.match([candidate], {"location": "branch"}).is_empty
    assert matcher.match([candidate], {}).is_empty


def test_empty_dimension_is_wildcard() -> None:
    candidate = MatchCandidate.of("any", classification=[], location=None)

    result = matcher.match([candidate], {"classification": "hardware"})

    assert result.matched_id == "any"
    assert result.ranked[0].score == 0


def test_equal_scores_are_ambiguous() -> None:
    a = MatchCandidate.of("a", classification=["network"])
    b = MatchCandidate.of("b", location=["hq"])

    result = matcher.match([a, b], {"classification": "network", "location": "hq"})

    assert not result.single
    assert result.matched_id is None
    assert [c.id for c in result.matches] == ["a", "b"]


def test_collection_criterion_matches_any_value() -> None:
    candidate = MatchCandidate.of("multi", department=["it", "facilities"])

    assert matcher.match([candidate], {"department": ["hr", "it"]}).single
    assert matcher.match([candidate], {"department": ["hr"]}).is_empty


def test_constraints_outside_matcher_dimensions_are_ignored() -> None:
    candidate = MatchCandidate.of("web", channel=["web"])

    result = matcher.match([candidate], {"channel": "email"})

    assert result.matched_id == "web"


def test_no_candidates_is_empty_result() -> None:
    result = matcher.match([], {"classification": "network"})

    assert result.is_empty
    assert result.to_dict() == {"matches": [], "single": False, "matched_id": None}
