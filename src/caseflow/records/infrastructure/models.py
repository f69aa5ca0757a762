"""
Records Infrastructure Models
=============================

SQLAlchemy ORM models for records, transition history, comments,
attachments and the record number sequence.

Transition history rows are insert-only; see
``caseflow.infrastructure.database.immutability``.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.infrastructure.database import Base, UTCDateTime


class RecordModel(Base):
    """Maps to the 'records' table."""
    __tablename__ = "records"
    __table_args__ = (
        Index("ix_records_sla_scan", "sla_breached", "sla_due_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    number: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    record_type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)

    # Workflow position
    workflow_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id"), index=True, nullable=False
    )
    current_state_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("workflow_states.id"), index=True, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # People and classification (external identifiers)
    reporter_id: Mapped[str] = mapped_column(String(255), nullable=False)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    channel: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    classification_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    department_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    severity: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    custom_fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # SLA
    sla_due_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    sla_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Conversion links
    source_record_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    converted_record_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class RecordCounterModel(Base):
    """Per record type number sequence. Maps to the 'record_counters' table."""
    __tablename__ = "record_counters"

    record_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TransitionHistoryModel(Base):
    """Maps to the 'transition_history' table."""
    __tablename__ = "transition_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    record_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("records.id"), index=True, nullable=False
    )
    # no foreign keys: definitions may change after the fact
    transition_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    from_state_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    to_state_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)

    performed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    record_version: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    attachment_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    feedback_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    feedback_comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class CommentModel(Base):
    """Maps to the 'record_comments' table."""
    __tablename__ = "record_comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    record_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("records.id"), index=True, nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    transition_history_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class AttachmentModel(Base):
    """Maps to the 'record_attachments' table. File bytes live elsewhere."""
    __tablename__ = "record_attachments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    record_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("records.id"), index=True, nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    uploaded_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
