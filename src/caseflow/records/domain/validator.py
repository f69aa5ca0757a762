"""
Requirement Validator
=====================

Evaluates every requirement of a transition independently so that all
violations are reported together.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from caseflow.config import RequirementType
from caseflow.records.domain.entities import Record, TransitionPayload
from caseflow.workflow.domain import Requirement, Transition


@dataclass(frozen=True)
class Violation:
    requirement_id: UUID
    requirement_type: str
    message: str
    field_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requirement_id": str(self.requirement_id),
            "requirement_type": self.requirement_type,
            "field_name": self.field_name,
            "message": self.message,
        }


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return not value
    return False


class RequirementValidator:
    """Stateless; one instance can be shared."""

    def __init__(self):
        self._checks: Dict[str, Callable[[Requirement, Record, TransitionPayload], Optional[str]]] = {
            RequirementType.COMMENT: self._check_comment,
            RequirementType.FIELD: self._check_field,
            RequirementType.ATTACHMENT: self._check_attachment,
            RequirementType.MIN_ATTACHMENTS: self._check_min_attachments,
            RequirementType.FEEDBACK: self._check_feedback,
        }

    def validate(
        self,
        transition: Transition,
        record: Record,
        payload: TransitionPayload
    ) -> List[Violation]:
        violations = []
        for requirement in sorted(transition.requirements, key=lambda r: r.position):
            if not requirement.is_mandatory:
                continue
            check = self._checks.get(requirement.requirement_type)
            if check is None:
                message = f"Unsupported requirement type '{requirement.requirement_type}'"
            else:
                message = check(requirement, record, payload)
            if message is not None:
                violations.append(Violation(
                    requirement_id=requirement.id,
                    requirement_type=requirement.requirement_type,
                    message=requirement.error_message or message,
                    field_name=requirement.field_name,
                ))
        return violations

    @staticmethod
    def _check_comment(requirement, record, payload) -> Optional[str]:
        if _is_blank(payload.comment):
            return "Comment is required for this transition"
        return None

    @staticmethod
    def _check_field(requirement, record, payload) -> Optional[str]:
        name = requirement.field_name or ""
        value = payload.fields[name] if name in payload.fields else record.field_value(name)
        if _is_blank(value):
            return f"Field '{name}' is required for this transition"
        return None

    @staticmethod
    def _check_attachment(requirement, record, payload) -> Optional[str]:
        if not payload.attachment_ids:
            return "Attachment is required for this transition"
        return None

    @staticmethod
    def _check_min_attachments(requirement, record, payload) -> Optional[str]:
        needed = requirement.min_count or 1
        if len(set(payload.attachment_ids)) < needed:
            return f"At least {needed} attachment(s) are required for this transition"
        return None

    @staticmethod
    def _check_feedback(requirement, record, payload) -> Optional[str]:
        if not payload.feedback_rating:
            return "Feedback is required for this transition"
        return None
