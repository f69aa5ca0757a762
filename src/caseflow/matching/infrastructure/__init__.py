"""
Matching Infrastructure Layer
=============================
"""

from caseflow.matching.infrastructure.directory import StaticDirectory

__all__ = ["StaticDirectory"]
