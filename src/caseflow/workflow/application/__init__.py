"""
Workflow Application Layer
==========================

Contains:
- Services: the workflow definition store and its repository interface
- Portability: JSON export and import of workflow graphs
- DTOs: request and response models

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from caseflow.workflow.application.dto import (
    WorkflowCreateDTO,
    WorkflowUpdateDTO,
    StateCreateDTO,
    StateUpdateDTO,
    RequirementDTO,
    ActionDTO,
    TransitionCreateDTO,
    TransitionUpdateDTO,
    DuplicateWorkflowDTO,
    StateResponse,
    TransitionResponse,
    WorkflowResponse,
    WorkflowGraphResponse,
    GraphReportResponse,
    WorkflowImportResponse,
)
from caseflow.workflow.application.services import IWorkflowRepository, WorkflowService
from caseflow.workflow.application.portability import (
    WorkflowExport,
    ImportResult,
    WorkflowPortability,
)

__all__ = [
    # DTOs
    "WorkflowCreateDTO",
    "WorkflowUpdateDTO",
    "StateCreateDTO",
    "StateUpdateDTO",
    "RequirementDTO",
    "ActionDTO",
    "TransitionCreateDTO",
    "TransitionUpdateDTO",
    "DuplicateWorkflowDTO",
    "StateResponse",
    "TransitionResponse",
    "WorkflowResponse",
    "WorkflowGraphResponse",
    "GraphReportResponse",
    "WorkflowImportResponse",
    # Services
    "IWorkflowRepository",
    "WorkflowService",
    # Portability
    "WorkflowExport",
    "ImportResult",
    "WorkflowPortability",
]
