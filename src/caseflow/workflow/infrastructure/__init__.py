"""
Workflow Infrastructure Layer
=============================

- Models: SQLAlchemy ORM models
- Repositories: data access for workflow definitions
"""

from caseflow.workflow.infrastructure.models import (
    WorkflowModel,
    WorkflowConstraintModel,
    StateModel,
    TransitionModel,
    RequirementModel,
    ActionModel,
)
from caseflow.workflow.infrastructure.repositories import SQLAlchemyWorkflowRepository

__all__ = [
    "WorkflowModel",
    "WorkflowConstraintModel",
    "StateModel",
    "TransitionModel",
    "RequirementModel",
    "ActionModel",
    "SQLAlchemyWorkflowRepository",
]
