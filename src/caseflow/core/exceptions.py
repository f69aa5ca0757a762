"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Each carries a ``details`` dict
with enough structure for a client to render a precise message.
"""

from typing import Any, List, Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(
            message,
            {
                "resource_type": resource_type,
                "resource_id": str(resource_id) if resource_id else None,
                **(details or {}),
            }
        )


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


# ========== Workflow & Transition Errors ==========

class TransitionNotFoundException(ResourceNotFoundException):
    """Transition is missing, inactive, or belongs to another workflow."""

    def __init__(self, transition_id: Any, details: Optional[dict] = None):
        super().__init__("Transition", transition_id, details)


class InvalidTopologyException(DomainException):
    """Transition does not leave the record's current state, or the workflow graph is malformed."""


class ForbiddenException(DomainException):
    """Caller's roles do not permit the operation."""


class TerminalStateException(DomainException):
    """Record sits in a terminal state and accepts no transitions."""

    def __init__(self, record_id: Any, state_code: str):
        self.record_id = record_id
        self.state_code = state_code
        super().__init__(
            f"Record {record_id} is in terminal state '{state_code}'",
            {"record_id": str(record_id), "state": state_code}
        )


class RequirementsNotMetException(DomainException):
    """One or more transition requirements failed; carries every violation."""

    def __init__(self, violations: List[Any]):
        self.violations = list(violations)
        super().__init__(
            f"{len(self.violations)} transition requirement(s) not met",
            {"violations": [v.to_dict() for v in self.violations]}
        )


class StaleVersionException(DomainException):
    """Record changed since the caller read it; reload and retry."""

    def __init__(self, record_id: Any, expected: Optional[int], actual: Optional[int] = None):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Record {record_id} was modified concurrently (expected version {expected}, found {actual})",
            {"record_id": str(record_id), "expected_version": expected, "actual_version": actual}
        )


class HasDependentRecordsException(DomainException):
    """Deletion blocked because records still reference the target."""

    def __init__(self, resource_type: str, resource_id: Any, count: int):
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.count = count
        super().__init__(
            f"{resource_type} {resource_id} is still referenced by {count} record(s)",
            {"resource_type": resource_type, "resource_id": str(resource_id), "record_count": count}
        )


class AmbiguousMatchException(DomainException):
    """Criteria matched several equally specific candidates."""

    def __init__(self, resource_type: str, candidate_ids: List[Any]):
        self.resource_type = resource_type
        self.candidate_ids = list(candidate_ids)
        super().__init__(
            f"Criteria match {len(self.candidate_ids)} {resource_type} candidates equally",
            {"resource_type": resource_type, "candidates": [str(c) for c in self.candidate_ids]}
        )


class ImmutableRecordException(RepositoryException):
    """Attempt to update or delete an append-only audit row."""
