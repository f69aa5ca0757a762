"""
Caseflow
========

Case-management backend: workflow-driven records with guarded transitions,
criteria matching, SLA monitoring and an append-only revision log.
"""

__version__ = "1.0.0"
