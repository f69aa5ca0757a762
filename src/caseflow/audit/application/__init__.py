"""
Audit Application Layer
=======================
"""

from caseflow.audit.application.dto import (
    RevisionResponse,
    RevisionPageResponse,
    PurgeRequest,
    PurgeResponse,
)
from caseflow.audit.application.services import IRevisionRepository, RevisionLog

__all__ = [
    "RevisionResponse",
    "RevisionPageResponse",
    "PurgeRequest",
    "PurgeResponse",
    "IRevisionRepository",
    "RevisionLog",
]
