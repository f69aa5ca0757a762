"""
Audit Row Immutability
======================

ORM event listeners that refuse UPDATE and DELETE of revision and
transition history rows. They fire during flush, before any SQL is sent.

The retention purge removes revisions with a bulk ``DELETE`` statement,
which does not go through these mapper events.
"""

from sqlalchemy import event

from caseflow.core import ImmutableRecordException
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _refuse(entity_type: str, operation: str, target) -> None:
    logger.error(
        "Immutability violation blocked",
        extra={"entity_type": entity_type, "entity_id": str(target.id), "operation": operation}
    )
    raise ImmutableRecordException(
        f"{entity_type} rows are append-only and cannot be {operation.lower()}d",
        {"entity_type": entity_type, "entity_id": str(target.id), "operation": operation}
    )


def _check_revision_update(mapper, connection, target):
    _refuse("Revision", "UPDATE", target)


def _check_revision_delete(mapper, connection, target):
    _refuse("Revision", "DELETE", target)


def _check_history_update(mapper, connection, target):
    _refuse("TransitionHistory", "UPDATE", target)


def _check_history_delete(mapper, connection, target):
    _refuse("TransitionHistory", "DELETE", target)


def _listeners():
    from caseflow.audit.infrastructure.models import RevisionModel
    from caseflow.records.infrastructure.models import TransitionHistoryModel

    return [
        (RevisionModel, "before_update", _check_revision_update),
        (RevisionModel, "before_delete", _check_revision_delete),
        (TransitionHistoryModel, "before_update", _check_history_update),
        (TransitionHistoryModel, "before_delete", _check_history_delete),
    ]


def register_immutability_listeners() -> None:
    """Register the listeners. Safe to call more than once."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_immutability_listeners() -> None:
    for target, name, fn in _listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
