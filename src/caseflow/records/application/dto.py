"""
Records Application DTOs
========================

Pydantic models for record input and output.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from caseflow.records.domain import TransitionPayload
from caseflow.workflow.application.dto import RecordTypeStr, RequirementResponse


# ========== Request DTOs ==========

class RecordCreateDTO(BaseModel):
    """DTO for creating a record. The workflow is matched when not given."""
    title: str = Field(..., min_length=1, max_length=500)
    record_type: RecordTypeStr
    description: str = ""
    workflow_id: Optional[UUID] = None
    channel: Optional[str] = None
    classification_id: Optional[str] = None
    department_id: Optional[str] = None
    location_id: Optional[str] = None
    assignee_id: Optional[str] = None
    priority: int = Field(3, ge=1, le=5)
    severity: int = Field(3, ge=1, le=5)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class RecordUpdateDTO(BaseModel):
    """
    DTO for direct field updates.

    Workflow position, version and SLA fields are not accepted here; the
    state of a record changes only by executing a transition.
    """
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    channel: Optional[str] = None
    classification_id: Optional[str] = None
    department_id: Optional[str] = None
    location_id: Optional[str] = None
    priority: Optional[int] = Field(None, ge=1, le=5)
    severity: Optional[int] = Field(None, ge=1, le=5)
    custom_fields: Optional[Dict[str, Any]] = None
    expected_version: Optional[int] = Field(None, ge=1)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"expected_version"})


class CommentCreateDTO(BaseModel):
    body: str = Field(..., min_length=1)
    is_internal: bool = False


class AttachmentCreateDTO(BaseModel):
    """Metadata of a file already stored externally."""
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = "application/octet-stream"
    size_bytes: int = Field(0, ge=0)
    storage_key: str = ""


class AssignDTO(BaseModel):
    assignee_id: Optional[str] = None
    department_id: Optional[str] = None
    expected_version: Optional[int] = Field(None, ge=1)


class FeedbackDTO(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class TransitionRequest(BaseModel):
    """DTO for executing a transition."""
    transition_id: UUID
    expected_version: Optional[int] = Field(None, ge=1)
    comment: str = ""
    fields: Dict[str, Any] = Field(default_factory=dict)
    attachment_ids: List[UUID] = Field(default_factory=list)
    feedback: Optional[FeedbackDTO] = None
    assignee_id: Optional[str] = None
    department_id: Optional[str] = None

    def to_payload(self) -> TransitionPayload:
        return TransitionPayload(
            comment=self.comment,
            fields=dict(self.fields),
            attachment_ids=list(self.attachment_ids),
            feedback_rating=self.feedback.rating if self.feedback else None,
            feedback_comment=self.feedback.comment if self.feedback else "",
            assignee_id=self.assignee_id,
            department_id=self.department_id,
        )


class ConvertDTO(BaseModel):
    workflow_id: Optional[UUID] = None
    title: Optional[str] = Field(None, min_length=1, max_length=500)


# ========== Response DTOs ==========

class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    title: str
    description: str
    record_type: str
    workflow_id: UUID
    current_state_id: UUID
    reporter_id: str
    channel: Optional[str]
    classification_id: Optional[str]
    department_id: Optional[str]
    location_id: Optional[str]
    assignee_id: Optional[str]
    priority: int
    severity: int
    custom_fields: Dict[str, Any]
    sla_due_at: Optional[datetime]
    sla_breached: bool
    version: int
    resolved_at: Optional[datetime]
    closed_at: Optional[datetime]
    source_record_id: Optional[UUID]
    converted_record_id: Optional[UUID]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ActionWarningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action_id: UUID
    action_type: str
    message: str


class TransitionOutcomeResponse(BaseModel):
    record: RecordResponse
    history_id: UUID
    warnings: List[ActionWarningResponse]


class AvailableTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str
    to_state_id: UUID
    requirements: List[RequirementResponse]


class HistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    transition_id: UUID
    from_state_id: UUID
    to_state_id: UUID
    performed_by: str
    record_version: int
    created_at: datetime
    comment: str
    attachment_ids: List[UUID]
    feedback_rating: Optional[int]
    feedback_comment: str


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    author_id: str
    body: str
    is_internal: bool
    transition_history_id: Optional[UUID]
    created_at: datetime


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    file_name: str
    content_type: str
    size_bytes: int
    storage_key: str
    uploaded_by: str
    created_at: datetime
