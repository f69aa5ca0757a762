"""
Notifier Port
=============

Outbound notification contract. Delivery is external to the core; callers
hand off a request and never wait on, or fail because of, its delivery.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class INotifier(ABC):
    """Fire-and-forget notification sink."""

    @abstractmethod
    def notify(
        self,
        kind: str,
        record_id: str,
        recipients: List[str],
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Hand off a notification request.

        Must return immediately and must not raise on delivery failure.

        Args:
            kind: Notification kind (see NotificationKind)
            record_id: Record the notification concerns
            recipients: Recipient specs ("assignee", "role:<code>", ...)
            context: Optional title/message and template values
        """

    async def close(self) -> None:
        """Release transport resources."""


class NullNotifier(INotifier):
    """Notifier that drops everything. Used when no channel is configured."""

    def notify(self, kind, record_id, recipients, context=None) -> None:
        return None


def expand_record_recipients(
    recipients: List[str],
    assignee_id: Optional[str],
    reporter_id: Optional[str]
) -> List[str]:
    """
    Replace the ``assignee`` and ``reporter`` recipients with concrete
    ``user:<id>`` recipients; other recipients pass through. Duplicates are dropped.
    """
    expanded: List[str] = []
    for recipient in recipients:
        if recipient == "assignee":
            recipient = f"user:{assignee_id}" if assignee_id else None
        elif recipient == "reporter":
            recipient = f"user:{reporter_id}" if reporter_id else None
        if recipient and recipient not in expanded:
            expanded.append(recipient)
    return expanded
