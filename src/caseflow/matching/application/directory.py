"""
Directory Interface
===================

Read-only view of the organization (departments and users) owned by an
external system. The core only needs enough of it to rank candidates and
resolve notification recipients.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional


@dataclass(frozen=True)
class DepartmentProfile:
    id: str
    name: str = ""
    classification_ids: FrozenSet[str] = field(default_factory=frozenset)
    location_ids: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class UserProfile:
    id: str
    name: str = ""
    email: str = ""
    roles: FrozenSet[str] = field(default_factory=frozenset)
    classification_ids: FrozenSet[str] = field(default_factory=frozenset)
    location_ids: FrozenSet[str] = field(default_factory=frozenset)
    department_ids: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True


class IDirectory(ABC):
    """Interface for department and user lookup."""

    @abstractmethod
    async def list_departments(self) -> List[DepartmentProfile]:
        """All departments."""

    @abstractmethod
    async def list_users(self, role: Optional[str] = None) -> List[UserProfile]:
        """Active users, optionally only those holding ``role``."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """One user by id."""


class EmptyDirectory(IDirectory):
    """Directory with nobody in it. Used when no directory is configured."""

    async def list_departments(self) -> List[DepartmentProfile]:
        return []

    async def list_users(self, role: Optional[str] = None) -> List[UserProfile]:
        return []

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        return None
