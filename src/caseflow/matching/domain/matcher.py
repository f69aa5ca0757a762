"""
Criteria Matcher
================

Specificity ranking over candidates with optional constraint dimensions.

Algorithm:
1. Keep candidates whose every declared constraint is satisfied by the
   criteria. An empty or missing dimension is a wildcard.
2. Score each survivor by the number of dimensions it actually constrains.
3. Sort by score descending. The top tier is returned as ``matches``;
   exactly one top-tier candidate makes the result ``single``.
4. No survivors is an empty result, not an error.
"""

from dataclasses import dataclass, field
from typing import Any, Collection, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence


@dataclass(frozen=True)
class MatchCandidate:
    """Something that can be selected, with its constraint per dimension."""

    id: Any
    constraints: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    item: Any = None

    @classmethod
    def of(cls, id: Any, item: Any = None, **constraints: Optional[Iterable[str]]) -> "MatchCandidate":
        return cls(
            id=id,
            item=item,
            constraints={k: frozenset(v) for k, v in constraints.items() if v},
        )


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: MatchCandidate
    score: int


@dataclass
class MatchResult:
    """Outcome of one match call."""

    matches: List[MatchCandidate] = field(default_factory=list)
    ranked: List[ScoredCandidate] = field(default_factory=list)

    @property
    def single(self) -> bool:
        return len(self.matches) == 1

    @property
    def matched_id(self) -> Optional[Any]:
        return self.matches[0].id if self.single else None

    @property
    def matched(self) -> Optional[MatchCandidate]:
        return self.matches[0] if self.single else None

    @property
    def is_empty(self) -> bool:
        return not self.matches

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [str(c.id) for c in self.matches],
            "single": self.single,
            "matched_id": str(self.matched_id) if self.matched_id is not None else None,
        }


class CriteriaMatcher:
    """
    Generic specificity matcher.

    Args:
        dimensions: Dimensions this matcher considers. Constraints on other
            dimensions are ignored, so one candidate model can feed several
            matchers.
    """

    def __init__(self, dimensions: Sequence[str]):
        self.dimensions = tuple(dimensions)

    def match(
        self,
        candidates: Iterable[MatchCandidate],
        criteria: Mapping[str, Any]
    ) -> MatchResult:
        """
        Rank ``candidates`` against ``criteria``.

        A criterion may be a single value or a collection of values; a
        collection satisfies a constraint when any of its values does.
        """
        scored = []
        for position, candidate in enumerate(candidates):
            score = self._score(candidate, criteria)
            if score is not None:
                scored.append((score, position, candidate))

        if not scored:
            return MatchResult()

        # stable on input order within a tier
        scored.sort(key=lambda entry: (-entry[0], entry[1]))
        top = scored[0][0]
        return MatchResult(
            matches=[c for score, _, c in scored if score == top],
            ranked=[ScoredCandidate(candidate=c, score=score) for score, _, c in scored],
        )

    def _score(self, candidate: MatchCandidate, criteria: Mapping[str, Any]) -> Optional[int]:
        score = 0
        for dimension in self.dimensions:
            accepted = candidate.constraints.get(dimension)
            if not accepted:
                continue
            values = _as_values(criteria.get(dimension))
            if not values or accepted.isdisjoint(values):
                return None
            score += 1
        return score


def _as_values(criterion: Any) -> FrozenSet[str]:
    if criterion is None or criterion == "":
        return frozenset()
    if isinstance(criterion, str) or not isinstance(criterion, Collection):
        return frozenset({str(criterion)})
    return frozenset(str(v) for v in criterion if v not in (None, ""))
