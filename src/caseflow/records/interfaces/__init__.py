"""
Records Interfaces Layer
========================

FastAPI route handlers for records and transition execution.
"""

from caseflow.records.interfaces.controllers import records_router

__all__ = ["records_router"]
