"""
Static Directory
================

Directory backed by a YAML document, for deployments where the
organization tree lives elsewhere and is exported periodically.

Example document::

    departments:
      - id: it-support
        name: IT Support
        classifications: [network, hardware]
        locations: [hq]
    users:
      - id: u-1
        name: Jane Agent
        email: jane@example.com
        roles: [agent]
        departments: [it-support]
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from caseflow.core import ConfigurationException
from caseflow.matching.application.directory import DepartmentProfile, IDirectory, UserProfile
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _ids(values: Optional[Iterable[Any]]) -> frozenset:
    return frozenset(str(v) for v in (values or []))


class StaticDirectory(IDirectory):
    """In-memory directory."""

    def __init__(
        self,
        departments: Optional[Iterable[DepartmentProfile]] = None,
        users: Optional[Iterable[UserProfile]] = None
    ):
        self._departments = list(departments or [])
        self._users = {u.id: u for u in users or []}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticDirectory":
        departments = [
            DepartmentProfile(
                id=str(d["id"]),
                name=d.get("name", ""),
                classification_ids=_ids(d.get("classifications")),
                location_ids=_ids(d.get("locations")),
            )
            for d in data.get("departments") or []
        ]
        users = [
            UserProfile(
                id=str(u["id"]),
                name=u.get("name", ""),
                email=u.get("email", ""),
                roles=_ids(u.get("roles")),
                classification_ids=_ids(u.get("classifications")),
                location_ids=_ids(u.get("locations")),
                department_ids=_ids(u.get("departments")),
                is_active=u.get("is_active", True),
            )
            for u in data.get("users") or []
        ]
        return cls(departments, users)

    @classmethod
    def from_yaml(cls, path: Path) -> "StaticDirectory":
        path = Path(path)
        if not path.exists():
            raise ConfigurationException(f"Directory file not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        try:
            directory = cls.from_dict(data)
        except (KeyError, TypeError) as e:
            raise ConfigurationException(f"Invalid directory file {path}: {e}")

        logger.info(
            "Directory loaded",
            extra={"path": str(path), "departments": len(directory._departments), "users": len(directory._users)}
        )
        return directory

    async def list_departments(self) -> List[DepartmentProfile]:
        return list(self._departments)

    async def list_users(self, role: Optional[str] = None) -> List[UserProfile]:
        users = [u for u in self._users.values() if u.is_active]
        if role is not None:
            users = [u for u in users if role in u.roles]
        return users

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self._users.get(str(user_id))
