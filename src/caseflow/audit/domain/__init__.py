"""
Audit Domain Layer
==================
"""

from caseflow.audit.domain.entities import Revision, RevisionQuery, RevisionPage, FieldChange

__all__ = ["Revision", "RevisionQuery", "RevisionPage", "FieldChange"]
