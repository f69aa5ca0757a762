"""
SLA Infrastructure Layer
========================

- External: YAML policy manager (watchdog) and scheduler (APScheduler)
"""

from caseflow.sla.infrastructure.external import PolicyFileHandler, SLAPolicyManager, SLAScheduler

__all__ = ["PolicyFileHandler", "SLAPolicyManager", "SLAScheduler"]
