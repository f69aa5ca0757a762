"""
SLA Domain Layer
================
"""

from caseflow.sla.domain.policy import SLAPolicy, SLACalculator

__all__ = ["SLAPolicy", "SLACalculator"]
