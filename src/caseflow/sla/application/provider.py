"""
SLA Policy Provider
===================
"""

from abc import ABC, abstractmethod
from typing import Optional

from caseflow.sla.domain import SLAPolicy


class ISLAPolicyProvider(ABC):
    """Source of the current SLA policy."""

    @property
    @abstractmethod
    def policy(self) -> SLAPolicy:
        """The policy in force right now."""


class StaticPolicyProvider(ISLAPolicyProvider):
    """Fixed policy, defaults unless one is given."""

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    @property
    def policy(self) -> SLAPolicy:
        return self._policy
