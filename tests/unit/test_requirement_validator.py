from __future__ import annotations

from uuid import uuid4

from caseflow.records.domain import Record, RequirementValidator, TransitionPayload
from caseflow.workflow.domain import Requirement, Transition

validator = RequirementValidator()


def _record(**fields) -> Record:
    return Record(
        number="INC-000001",
        title="Printer on fire",
        record_type="incident",
        workflow_id=uuid4(),
        current_state_id=uuid4(),
        reporter_id="u-reporter",
        **fields,
    )


def _transition(*requirements: Requirement) -> Transition:
    for position, requirement in enumerate(requirements):
        requirement.position = position
    return Transition(
        workflow_id=uuid4(),
        code="resolve",
        name="Resolve",
        from_state_id=uuid4(),
        to_state_id=uuid4(),
        requirements=list(requirements),
    )


def test_all_violations_are_reported_together() -> None:
    transition = _transition(
        Requirement("comment"),
        Requirement("field", field_name="resolution_code"),
        Requirement("min_attachments", min_count=2),
        Requirement("feedback"),
    )

    violations = validator.validate(transition, _record(), TransitionPayload(comment="   "))

    assert [v.requirement_type for v in violations] == ["comment", "field", "min_attachments", "feedback"]
    assert violations[1].field_name == "resolution_code"


def test_satisfied_payload_has_no_violations() -> None:
    transition = _transition(
        Requirement("comment"),
        Requirement("field", field_name="resolution_code"),
        Requirement("attachment"),
        Requirement("feedback"),
    )
    payload = TransitionPayload(
        comment="Replaced the fuser",
        fields={"resolution_code": "hardware"},
        attachment_ids=[uuid4()],
        feedback_rating=4,
    )

    assert validator.validate(transition, _record(), payload) == []


def test_field_requirement_falls_back_to_record_value() -> None:
    transition = _transition(
        Requirement("field", field_name="assignee_id"),
        Requirement("field", field_name="root_cause"),
    )
    record = _record(assignee_id="u-agent", custom_fields={"root_cause": "toner"})

    assert validator.validate(transition, record, TransitionPayload()) == []


def test_payload_blank_overrides_record_value() -> None:
    transition = _transition(Requirement("field", field_name="root_cause"))
    record = _record(custom_fields={"root_cause": "toner"})

    violations = validator.validate(transition, record, TransitionPayload(fields={"root_cause": ""}))

    assert len(violations) == 1


def test_min_attachments_counts_distinct_ids() -> None:
    transition = _transition(Requirement("min_attachments", min_count=2))
    attachment = uuid4()

    assert validator.validate(transition, _record(), TransitionPayload(attachment_ids=[attachment, attachment]))
    assert not validator.validate(transition, _record(), TransitionPayload(attachment_ids=[attachment, uuid4()]))


def test_optional_requirements_are_skipped() -> None:
    transition = _transition(Requirement("comment", is_mandatory=False))

    assert validator.validate(transition, _record(), TransitionPayload()) == []


def test_custom_error_message_is_used() -> None:
    transition = _transition(Requirement("comment", error_message="Tell the customer what happened"))

    violations = validator.validate(transition, _record(), TransitionPayload())

    assert violations[0].message == "Tell the customer what happened"
    assert violations[0].to_dict()["requirement_type"] == "comment"
