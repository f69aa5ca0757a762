"""
Workflow Interfaces Layer
=========================

FastAPI route handlers for workflow definitions and matching.
"""

from caseflow.workflow.interfaces.controllers import workflow_router

__all__ = ["workflow_router"]
