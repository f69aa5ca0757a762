"""
Workflow Application DTOs
=========================

Pydantic models validating workflow definition input and shaping output.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ========== Type Aliases for Literals ==========
RecordTypeStr = Literal["incident", "request", "complaint", "query"]
RequirementTypeStr = Literal["comment", "field", "attachment", "min_attachments", "feedback"]
ActionTypeStr = Literal["assign", "set_field", "recompute_sla", "change_record_type", "notify", "webhook"]


# ========== Request DTOs ==========

class WorkflowCreateDTO(BaseModel):
    """DTO for creating a workflow."""
    code: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_\-]+$")
    name: str = Field(..., min_length=1, max_length=255)
    record_type: RecordTypeStr
    description: str = ""
    is_active: bool = True
    is_default: bool = False
    required_fields: List[str] = Field(default_factory=list)
    convert_to_request_roles: List[str] = Field(default_factory=list)
    classification_ids: List[str] = Field(default_factory=list)
    location_ids: List[str] = Field(default_factory=list)
    department_ids: List[str] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)

    def match_constraints(self) -> Dict[str, set]:
        return constraints_from(self)


class WorkflowUpdateDTO(BaseModel):
    """DTO for updating a workflow. Unset fields are left untouched."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    required_fields: Optional[List[str]] = None
    convert_to_request_roles: Optional[List[str]] = None
    classification_ids: Optional[List[str]] = None
    location_ids: Optional[List[str]] = None
    department_ids: Optional[List[str]] = None
    channels: Optional[List[str]] = None


class StateCreateDTO(BaseModel):
    """DTO for adding a state to a workflow."""
    code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    is_initial: bool = False
    is_terminal: bool = False
    sla_hours: Optional[float] = Field(None, gt=0)
    color: str = "#6B7280"
    sort_order: int = 0


class StateUpdateDTO(BaseModel):
    """DTO for updating a state."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_initial: Optional[bool] = None
    is_terminal: Optional[bool] = None
    sla_hours: Optional[float] = Field(None, gt=0)
    color: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class RequirementDTO(BaseModel):
    """Transition guard definition."""
    requirement_type: RequirementTypeStr
    field_name: Optional[str] = None
    min_count: Optional[int] = Field(None, ge=1)
    is_mandatory: bool = True
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def check_parameters(self) -> "RequirementDTO":
        if self.requirement_type == "field" and not self.field_name:
            raise ValueError("field requirements need field_name")
        if self.requirement_type == "min_attachments" and not self.min_count:
            raise ValueError("min_attachments requirements need min_count")
        return self


_ACTION_REQUIRED_KEYS = {
    "set_field": ("field",),
    "change_record_type": ("record_type",),
    "notify": ("recipients",),
    "webhook": ("url",),
}


class ActionDTO(BaseModel):
    """Transition effect definition."""
    action_type: ActionTypeStr
    name: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)
    execution_order: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def check_config(self) -> "ActionDTO":
        missing = [k for k in _ACTION_REQUIRED_KEYS.get(self.action_type, ()) if k not in self.config]
        if missing:
            raise ValueError(f"{self.action_type} actions need config keys: {', '.join(missing)}")
        if self.action_type == "change_record_type" and self.config["record_type"] not in (
            "incident", "request", "complaint", "query"
        ):
            raise ValueError(f"unknown record_type '{self.config['record_type']}'")
        if self.action_type == "assign" and not any(
            k in self.config for k in ("user_id", "department_id", "role", "manual", "auto_detect_department")
        ):
            raise ValueError("assign actions need user_id, department_id, role, manual or auto_detect_department")
        return self


class TransitionCreateDTO(BaseModel):
    """DTO for adding a transition to a workflow."""
    code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    from_state_id: UUID
    to_state_id: UUID
    description: str = ""
    allowed_roles: List[str] = Field(default_factory=list)
    requirements: List[RequirementDTO] = Field(default_factory=list)
    actions: List[ActionDTO] = Field(default_factory=list)
    sort_order: int = 0
    is_active: bool = True


class TransitionUpdateDTO(BaseModel):
    """DTO for updating a transition. Lists given here replace the stored ones."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    from_state_id: Optional[UUID] = None
    to_state_id: Optional[UUID] = None
    allowed_roles: Optional[List[str]] = None
    requirements: Optional[List[RequirementDTO]] = None
    actions: Optional[List[ActionDTO]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class DuplicateWorkflowDTO(BaseModel):
    """DTO for duplicating a workflow under a new code."""
    code: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_\-]+$")
    name: str = Field(..., min_length=1, max_length=255)


# ========== Response DTOs ==========

class StateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    code: str
    name: str
    description: str
    is_initial: bool
    is_terminal: bool
    sla_hours: Optional[float]
    color: str
    sort_order: int
    is_active: bool


class RequirementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requirement_type: str
    field_name: Optional[str]
    min_count: Optional[int]
    is_mandatory: bool
    error_message: Optional[str]


class ActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action_type: str
    name: str
    config: Dict[str, Any]
    execution_order: int
    is_active: bool


class TransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    code: str
    name: str
    description: str
    from_state_id: UUID
    to_state_id: UUID
    allowed_roles: List[str]
    requirements: List[RequirementResponse]
    actions: List[ActionResponse]
    sort_order: int
    is_active: bool


class WorkflowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str
    record_type: str
    is_active: bool
    is_default: bool
    lifecycle: str
    required_fields: List[str]
    convert_to_request_roles: List[str]
    match_constraints: Dict[str, List[str]]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    deleted_at: Optional[datetime]


class WorkflowGraphResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workflow: WorkflowResponse
    states: List[StateResponse]
    transitions: List[TransitionResponse]


class GraphReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_valid: bool
    errors: List[str]
    warnings: List[str]


class WorkflowImportResponse(BaseModel):
    workflow: WorkflowGraphResponse
    warnings: List[str]


def constraints_from(dto: Any) -> Dict[str, set]:
    pairs = {
        "classification": dto.classification_ids,
        "location": dto.location_ids,
        "department": dto.department_ids,
        "channel": dto.channels,
    }
    return {dim: set(values) for dim, values in pairs.items() if values}
