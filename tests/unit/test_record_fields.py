from __future__ import annotations

from uuid import uuid4

import pytest

from caseflow.core import ForbiddenException, ValidationException
from caseflow.records.application import format_record_number
from caseflow.records.domain import Record


def _record() -> Record:
    return Record(
        number="INC-000007",
        title="VPN down",
        record_type="incident",
        workflow_id=uuid4(),
        current_state_id=uuid4(),
        reporter_id="u-1",
    )


@pytest.mark.parametrize("name", ["current_state_id", "workflow_id", "version", "sla_breached", "sla_due_at"])
def test_engine_owned_fields_cannot_be_changed(name: str) -> None:
    record = _record()
    with pytest.raises(ForbiddenException) as excinfo:
        record.apply_changes({name: None, "title": "still VPN"})
    assert excinfo.value.details["fields"] == [name]
    assert record.title == "VPN down"


def test_apply_changes_reports_only_real_changes() -> None:
    record = _record()

    applied = record.apply_changes({"title": "VPN down", "priority": "2", "custom_fields.site": "hq"})

    assert [(c.field, c.old, c.new) for c in applied] == [
        ("priority", 3, 2),
        ("custom_fields.site", None, "hq"),
    ]
    assert record.custom_fields == {"site": "hq"}


def test_unknown_field_and_bad_level_are_rejected() -> None:
    record = _record()
    with pytest.raises(ValidationException):
        record.apply_changes({"colour": "red"})
    with pytest.raises(ValidationException):
        record.apply_changes({"severity": 9})


def test_field_value_reads_custom_fields_by_bare_or_dotted_name() -> None:
    record = _record()
    record.custom_fields = {"asset_tag": "A-1"}

    assert record.field_value("asset_tag") == "A-1"
    assert record.field_value("custom_fields.asset_tag") == "A-1"
    assert record.field_value("title") == "VPN down"


def test_record_numbers_are_prefixed_and_padded() -> None:
    assert format_record_number("incident", 42) == "INC-000042"
    assert format_record_number("request", 1) == "REQ-000001"
    assert format_record_number("complaint", 1234567) == "CMP-1234567"
