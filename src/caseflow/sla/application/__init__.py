"""
SLA Application Layer
=====================

- Provider: where the current SLA policy comes from
- Services: the SLA Monitor scan
"""

from caseflow.sla.application.provider import ISLAPolicyProvider, StaticPolicyProvider
from caseflow.sla.application.services import SLAMonitor, SLAScanResult, SLA_MONITOR_ACTOR

__all__ = [
    "ISLAPolicyProvider",
    "StaticPolicyProvider",
    "SLAMonitor",
    "SLAScanResult",
    "SLA_MONITOR_ACTOR",
]
