"""
Records Application Layer
=========================

- Services: record creation, updates, comments, attachments, conversion
- Engine: transition execution and available transitions
- Actions: post-transition effects
- DTOs: request and response models
"""

from caseflow.records.application.services import (
    IRecordRepository,
    ITransitionHistoryRepository,
    ICommentRepository,
    RecordService,
    format_record_number,
)
from caseflow.records.application.actions import (
    ActionContext,
    ActionExecutor,
    IWebhookClient,
    render_template,
)
from caseflow.records.application.engine import (
    ActionWarning,
    TransitionEngine,
    TransitionOutcome,
)

__all__ = [
    "IRecordRepository",
    "ITransitionHistoryRepository",
    "ICommentRepository",
    "RecordService",
    "format_record_number",
    "ActionContext",
    "ActionExecutor",
    "IWebhookClient",
    "render_template",
    "ActionWarning",
    "TransitionEngine",
    "TransitionOutcome",
]
