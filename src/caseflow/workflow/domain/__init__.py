"""
Workflow Domain Layer
=====================

Entities and graph rules for workflow definitions. No infrastructure imports.
"""

from caseflow.workflow.domain.entities import (
    Workflow,
    WorkflowLifecycle,
    State,
    Transition,
    Requirement,
    Action,
    WorkflowGraph,
    GraphReport,
)

__all__ = [
    "Workflow",
    "WorkflowLifecycle",
    "State",
    "Transition",
    "Requirement",
    "Action",
    "WorkflowGraph",
    "GraphReport",
]
