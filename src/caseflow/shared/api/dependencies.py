"""
Shared API Dependencies
=======================

Caller identity and the process-wide collaborators kept on ``app.state``.

Identity is asserted by the upstream gateway in the ``X-Actor-ID`` and
``X-Actor-Roles`` (comma separated) headers; roles are not resolved here.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from fastapi import Header, Request

from caseflow.core import Clock, ForbiddenException, SystemClock
from caseflow.matching.application import EmptyDirectory, IDirectory
from caseflow.shared.application import INotifier, NullNotifier
from caseflow.sla.application.provider import ISLAPolicyProvider, StaticPolicyProvider


@dataclass(frozen=True)
class Actor:
    id: str
    roles: FrozenSet[str]


async def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_roles: str = Header("")
) -> Actor:
    if not x_actor_id or not x_actor_id.strip():
        raise ForbiddenException("X-Actor-ID header is required")
    roles = frozenset(r.strip() for r in x_actor_roles.split(",") if r.strip())
    return Actor(id=x_actor_id.strip(), roles=roles)


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or SystemClock()


def get_directory(request: Request) -> IDirectory:
    return getattr(request.app.state, "directory", None) or EmptyDirectory()


def get_policy_provider(request: Request) -> ISLAPolicyProvider:
    return getattr(request.app.state, "policy_provider", None) or StaticPolicyProvider()


def get_notifier(request: Request) -> INotifier:
    return getattr(request.app.state, "notifier", None) or NullNotifier()


def get_webhook_client(request: Request):
    return getattr(request.app.state, "webhook_client", None)
