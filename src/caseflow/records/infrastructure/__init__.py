"""
Records Infrastructure Layer
============================

- ORM models for records, history, comments and attachments
- SQLAlchemy repositories
- httpx webhook adapter
"""

from caseflow.records.infrastructure.models import (
    RecordModel,
    RecordCounterModel,
    TransitionHistoryModel,
    CommentModel,
    AttachmentModel,
)
from caseflow.records.infrastructure.repositories import (
    SQLAlchemyRecordRepository,
    SQLAlchemyTransitionHistoryRepository,
    SQLAlchemyCommentRepository,
)
from caseflow.records.infrastructure.external import HttpxWebhookClient

__all__ = [
    "RecordModel",
    "RecordCounterModel",
    "TransitionHistoryModel",
    "CommentModel",
    "AttachmentModel",
    "SQLAlchemyRecordRepository",
    "SQLAlchemyTransitionHistoryRepository",
    "SQLAlchemyCommentRepository",
    "HttpxWebhookClient",
]
