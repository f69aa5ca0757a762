"""
Matching Application Layer
==========================

- Services: workflow, department and user matching
- Directory: the external organization lookup interface
- DTOs: match requests and responses
"""

from caseflow.matching.application.directory import (
    DepartmentProfile,
    UserProfile,
    IDirectory,
    EmptyDirectory,
)
from caseflow.matching.application.dto import (
    WorkflowMatchRequest,
    DepartmentMatchRequest,
    WorkflowMatchResponse,
    DepartmentMatchResponse,
)
from caseflow.matching.application.services import MatchingService, WorkflowMatch

__all__ = [
    "DepartmentProfile",
    "UserProfile",
    "IDirectory",
    "EmptyDirectory",
    "WorkflowMatchRequest",
    "DepartmentMatchRequest",
    "WorkflowMatchResponse",
    "DepartmentMatchResponse",
    "MatchingService",
    "WorkflowMatch",
]
