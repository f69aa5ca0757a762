"""
Audit Infrastructure Models
===========================

SQLAlchemy ORM model for the revision log. Rows are insert-only; see
``caseflow.infrastructure.database.immutability``.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.infrastructure.database import Base, UTCDateTime


class RevisionModel(Base):
    """Maps to the 'record_revisions' table."""
    __tablename__ = "record_revisions"
    __table_args__ = (
        Index("ix_revisions_record_created", "record_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    record_id: Mapped[UUID] = mapped_column(Uuid, index=True, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    performed_by: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    record_version: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    changes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
