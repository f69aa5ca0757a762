"""
Unit of Work
============

Groups the repositories that share one transaction. Application services
receive a unit of work, mutate through its repositories and call
``commit()`` once their operation is complete.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from caseflow.workflow.application.services import IWorkflowRepository
    from caseflow.records.application.services import (
        IRecordRepository, ITransitionHistoryRepository, ICommentRepository
    )
    from caseflow.audit.application.services import IRevisionRepository


class IUnitOfWork(ABC):
    """Transaction boundary over all repositories."""

    workflows: "IWorkflowRepository"
    records: "IRecordRepository"
    history: "ITransitionHistoryRepository"
    comments: "ICommentRepository"
    revisions: "IRevisionRepository"

    @abstractmethod
    async def commit(self) -> None:
        """Make every pending write durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every pending write."""
