"""
Matching Domain Layer
=====================

The generic criteria matcher. Pure Python, no I/O.
"""

from caseflow.matching.domain.matcher import (
    MatchCandidate,
    ScoredCandidate,
    MatchResult,
    CriteriaMatcher,
)

__all__ = [
    "MatchCandidate",
    "ScoredCandidate",
    "MatchResult",
    "CriteriaMatcher",
]
