"""
Records Domain Entities
=======================

The record (incident / request / complaint / query) and the immutable
entries that hang off it.

A record's workflow position (``current_state_id``) and its concurrency
counter (``version``) are never writable through ``apply_changes``; the
state moves only through the transition engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID, uuid4

from caseflow.audit.domain import FieldChange
from caseflow.core import ForbiddenException, ValidationException

# Fields callers may change directly
UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "channel",
    "classification_id",
    "department_id",
    "location_id",
    "assignee_id",
    "priority",
    "severity",
    "custom_fields",
})

# Fields owned by the engine, the SLA monitor or the store itself
GUARDED_FIELDS = frozenset({
    "id",
    "number",
    "record_type",
    "workflow_id",
    "current_state_id",
    "version",
    "sla_due_at",
    "sla_breached",
    "resolved_at",
    "closed_at",
    "created_at",
    "updated_at",
    "source_record_id",
    "converted_record_id",
})

CUSTOM_FIELD_PREFIX = "custom_fields."


@dataclass
class Record:
    """A trackable case moving through one workflow."""

    number: str
    title: str
    record_type: str
    workflow_id: UUID
    current_state_id: UUID
    reporter_id: str
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    channel: Optional[str] = None
    classification_id: Optional[str] = None
    department_id: Optional[str] = None
    location_id: Optional[str] = None
    assignee_id: Optional[str] = None
    priority: int = 3
    severity: int = 3
    custom_fields: Dict[str, Any] = field(default_factory=dict)
    sla_due_at: Optional[datetime] = None
    sla_breached: bool = False
    version: int = 1
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    source_record_id: Optional[UUID] = None
    converted_record_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def field_value(self, name: str) -> Any:
        """Value of a named field; custom fields are looked up by bare or dotted name."""
        if name.startswith(CUSTOM_FIELD_PREFIX):
            return self.custom_fields.get(name[len(CUSTOM_FIELD_PREFIX):])
        if name in UPDATABLE_FIELDS or name in GUARDED_FIELDS:
            return getattr(self, name)
        return self.custom_fields.get(name)

    def apply_changes(self, changes: Mapping[str, Any]) -> List[FieldChange]:
        """
        Apply caller-supplied field changes and return what actually changed.

        ``custom_fields.<key>`` sets one custom field; ``custom_fields``
        replaces the whole mapping.

        Raises:
            ForbiddenException: For workflow, state, version and SLA fields
            ValidationException: For unknown fields or out-of-range values
        """
        guarded = sorted(k for k in changes if k in GUARDED_FIELDS)
        if guarded:
            raise ForbiddenException(
                "These fields cannot be changed directly; state moves only through transitions",
                {"fields": guarded}
            )

        applied: List[FieldChange] = []
        for name, value in changes.items():
            if name.startswith(CUSTOM_FIELD_PREFIX):
                key = name[len(CUSTOM_FIELD_PREFIX):]
                old = self.custom_fields.get(key)
                if old != value:
                    self.custom_fields = {**self.custom_fields, key: value}
                    applied.append(FieldChange(name, old, value))
                continue

            if name not in UPDATABLE_FIELDS:
                raise ValidationException(f"Unknown record field '{name}'", {"field": name})
            if name in ("priority", "severity"):
                value = _level(name, value)
            if name == "custom_fields":
                value = dict(value or {})
            if name == "title" and not value:
                raise ValidationException("title must not be empty", {"field": name})

            old = getattr(self, name)
            if old != value:
                setattr(self, name, value)
                applied.append(FieldChange(name, old, value))
        return applied

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "record_type": self.record_type,
            "workflow_id": self.workflow_id,
            "current_state_id": self.current_state_id,
            "version": self.version,
            "assignee_id": self.assignee_id,
            "department_id": self.department_id,
            "classification_id": self.classification_id,
            "location_id": self.location_id,
            "priority": self.priority,
            "severity": self.severity,
            "sla_due_at": self.sla_due_at,
            "sla_breached": self.sla_breached,
        }


def _level(name: str, value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise ValidationException(f"{name} must be an integer between 1 and 5", {"field": name})
    if not 1 <= level <= 5:
        raise ValidationException(f"{name} must be between 1 and 5", {"field": name, "value": level})
    return level


@dataclass(frozen=True)
class TransitionPayload:
    """What the caller submits alongside a transition request."""

    comment: str = ""
    fields: Mapping[str, Any] = field(default_factory=dict)
    attachment_ids: List[UUID] = field(default_factory=list)
    feedback_rating: Optional[int] = None
    feedback_comment: str = ""
    # manual assignment choices
    assignee_id: Optional[str] = None
    department_id: Optional[str] = None


@dataclass(frozen=True)
class TransitionHistoryEntry:
    """Immutable record of one successful transition."""

    record_id: UUID
    transition_id: UUID
    from_state_id: UUID
    to_state_id: UUID
    performed_by: str
    record_version: int
    created_at: datetime
    id: UUID = field(default_factory=uuid4)
    comment: str = ""
    attachment_ids: List[UUID] = field(default_factory=list)
    feedback_rating: Optional[int] = None
    feedback_comment: str = ""


@dataclass(frozen=True)
class Comment:
    record_id: UUID
    author_id: str
    body: str
    created_at: datetime
    id: UUID = field(default_factory=uuid4)
    is_internal: bool = False
    transition_history_id: Optional[UUID] = None


@dataclass(frozen=True)
class Attachment:
    """Attachment metadata. File bytes live in external storage."""

    record_id: UUID
    file_name: str
    uploaded_by: str
    created_at: datetime
    id: UUID = field(default_factory=uuid4)
    content_type: str = "application/octet-stream"
    size_bytes: int = 0
    storage_key: str = ""
