from __future__ import annotations

from uuid import uuid4

import pytest

from caseflow.core import (
    AmbiguousMatchException,
    ApplicationException,
    ExternalServiceException,
    ForbiddenException,
    HasDependentRecordsException,
    ImmutableRecordException,
    InvalidTopologyException,
    RepositoryException,
    RequirementsNotMetException,
    ResourceNotFoundException,
    StaleVersionException,
    TerminalStateException,
    TransitionNotFoundException,
    ValidationException,
)
from caseflow.shared.api.middleware import status_code_for


@pytest.mark.parametrize(
    "exc, status",
    [
        (ResourceNotFoundException("Record", uuid4()), 404),
        (TransitionNotFoundException(uuid4()), 404),
        (ForbiddenException("no"), 403),
        (StaleVersionException(uuid4(), 1, 2), 409),
        (HasDependentRecordsException("Workflow", uuid4(), 3), 409),
        (AmbiguousMatchException("Workflow", [1, 2]), 409),
        (TerminalStateException(uuid4(), "closed"), 409),
        (InvalidTopologyException("bad edge"), 409),
        (ImmutableRecordException("append only"), 409),
        (RequirementsNotMetException([]), 422),
        (ValidationException("bad"), 422),
        (ExternalServiceException("webhook", "down"), 502),
        (ApplicationException("other"), 400),
    ],
)
def test_status_codes(exc: ApplicationException, status: int) -> None:
    assert status_code_for(exc) == status


def test_stale_version_details_name_both_versions() -> None:
    exc = StaleVersionException("rec-1", 3, 5)
    assert exc.details == {"record_id": "rec-1", "expected_version": 3, "actual_version": 5}


def test_not_found_details_keep_the_resource_alongside_caller_context() -> None:
    transition_id, record_id = uuid4(), uuid4()
    exc = TransitionNotFoundException(transition_id, {"record_id": str(record_id)})

    assert exc.details == {
        "resource_type": "Transition",
        "resource_id": str(transition_id),
        "record_id": str(record_id),
    }


def test_audit_row_violations_are_data_access_errors() -> None:
    exc = ImmutableRecordException("append only")

    assert isinstance(exc, RepositoryException)
    assert status_code_for(exc) == 409
