"""
Audit Application DTOs
======================
"""

from datetime import datetime
from typing import Any, Dict, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    action_type: str
    performed_by: str
    record_version: int
    created_at: datetime
    message: str
    snapshot: Dict[str, Any]
    changes: List[Dict[str, Any]]


class RevisionPageResponse(BaseModel):
    items: List[RevisionResponse]
    total: int
    page: int
    page_size: int
    pages: int


class PurgeRequest(BaseModel):
    cutoff: datetime


class PurgeResponse(BaseModel):
    removed: int = Field(..., ge=0)
