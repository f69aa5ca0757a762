"""
Audit Domain Entities
=====================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4


@dataclass(frozen=True)
class FieldChange:
    field: str
    old: Any = None
    new: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "old": self.old, "new": self.new}


@dataclass(frozen=True)
class Revision:
    """
    One immutable audit entry describing a single mutation to a record.

    ``record_version`` is the version the mutation produced, which totally
    orders the revisions of one record.
    """

    record_id: UUID
    action_type: str
    performed_by: str
    record_version: int
    created_at: datetime
    id: UUID = field(default_factory=uuid4)
    message: str = ""
    snapshot: Dict[str, Any] = field(default_factory=dict)
    changes: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RevisionQuery:
    """Filters for a revision listing. All filters are optional and combine with AND."""

    record_id: Optional[UUID] = None
    action_types: Sequence[str] = ()
    actor: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    page: int = 1
    page_size: int = 50

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class RevisionPage:
    items: List[Revision]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.pages
