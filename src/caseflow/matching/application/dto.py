"""
Matching Application DTOs
=========================
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from caseflow.workflow.application.dto import RecordTypeStr


class WorkflowMatchRequest(BaseModel):
    """Criteria describing a record that needs a workflow."""
    record_type: RecordTypeStr
    classification_id: Optional[str] = None
    location_id: Optional[str] = None
    department_id: Optional[str] = None
    channel: Optional[str] = None

    def criteria(self) -> dict:
        return {
            "record_type": self.record_type,
            "classification": self.classification_id,
            "location": self.location_id,
            "department": self.department_id,
            "channel": self.channel,
        }


class DepartmentMatchRequest(BaseModel):
    classification_id: Optional[str] = None
    location_id: Optional[str] = None


class WorkflowMatchResponse(BaseModel):
    matches: List[UUID] = Field(default_factory=list)
    single: bool = False
    matched_id: Optional[UUID] = None
    used_default: bool = False


class DepartmentMatchResponse(BaseModel):
    matches: List[str] = Field(default_factory=list)
    single: bool = False
    matched_id: Optional[str] = None
