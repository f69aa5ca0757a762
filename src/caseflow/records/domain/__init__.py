"""
Records Domain Layer
====================
"""

from caseflow.records.domain.entities import (
    Record,
    TransitionPayload,
    TransitionHistoryEntry,
    Comment,
    Attachment,
    UPDATABLE_FIELDS,
    GUARDED_FIELDS,
)
from caseflow.records.domain.validator import RequirementValidator, Violation

__all__ = [
    "Record",
    "TransitionPayload",
    "TransitionHistoryEntry",
    "Comment",
    "Attachment",
    "UPDATABLE_FIELDS",
    "GUARDED_FIELDS",
    "RequirementValidator",
    "Violation",
]
