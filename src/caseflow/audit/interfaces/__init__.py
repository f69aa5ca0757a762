"""
Audit Interfaces Layer
======================
"""

from caseflow.audit.interfaces.controllers import audit_router

__all__ = ["audit_router"]
