"""
Audit Infrastructure Layer
==========================
"""

from caseflow.audit.infrastructure.models import RevisionModel
from caseflow.audit.infrastructure.repositories import SQLAlchemyRevisionRepository

__all__ = ["RevisionModel", "SQLAlchemyRevisionRepository"]
