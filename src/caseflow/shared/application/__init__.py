"""
Shared Application Contracts
=============================

Ports consumed by several bounded contexts.
"""

from caseflow.shared.application.notifier import (
    INotifier,
    NullNotifier,
    expand_record_recipients,
)

__all__ = ["INotifier", "NullNotifier", "expand_record_recipients"]
