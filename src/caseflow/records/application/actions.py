"""
Transition Actions
==================

Typed effects applied after a transition's state change has committed.

Each action runs on its own: a mutating action compare-and-swaps the record
and stages a revision, and the engine commits or rolls back per action.
Failures raise; the engine turns them into warnings.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from caseflow.audit.application.services import RevisionLog
from caseflow.audit.domain import FieldChange
from caseflow.config import ActionType, NotificationKind, RevisionAction, VALID_RECORD_TYPES
from caseflow.core import Clock, ExternalServiceException, SystemClock, ValidationException
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.matching.application import IDirectory, MatchingService
from caseflow.records.domain import Record, TransitionPayload
from caseflow.shared.application import INotifier, NullNotifier, expand_record_recipients
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.sla.application.provider import ISLAPolicyProvider, StaticPolicyProvider
from caseflow.sla.domain import SLACalculator
from caseflow.workflow.domain import Action, State, Transition

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left in place."""
    def _sub(match):
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)
    return _PLACEHOLDER.sub(_sub, template or "")


class IWebhookClient(ABC):
    """Outbound HTTP for webhook actions."""

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None
    ) -> int:
        """Send the request and return the response status code."""


@dataclass
class ActionContext:
    """Everything an action may read. ``record`` is replaced as actions mutate it."""

    uow: IUnitOfWork
    record: Record
    transition: Transition
    from_state: State
    to_state: State
    actor: str
    payload: TransitionPayload

    def template_values(self) -> Dict[str, Any]:
        record = self.record
        return {
            "record_number": record.number,
            "title": record.title,
            "from_state": self.from_state.name,
            "to_state": self.to_state.name,
            "current_state": self.to_state.name,
            "performed_by": self.actor,
            "assignee": record.assignee_id or "Unassigned",
            "record_type": record.record_type,
            "priority": record.priority,
            "severity": record.severity,
        }


class ActionExecutor:
    """Dispatches actions by type."""

    def __init__(
        self,
        directory: Optional[IDirectory] = None,
        policy_provider: Optional[ISLAPolicyProvider] = None,
        notifier: Optional[INotifier] = None,
        webhook_client: Optional[IWebhookClient] = None,
        clock: Optional[Clock] = None
    ):
        self._directory = directory
        self._policy_provider = policy_provider or StaticPolicyProvider()
        self._notifier = notifier or NullNotifier()
        self._webhook_client = webhook_client
        self._clock = clock or SystemClock()
        self._handlers: Dict[str, Callable[[Action, ActionContext], Awaitable[None]]] = {
            ActionType.ASSIGN: self._assign,
            ActionType.SET_FIELD: self._set_field,
            ActionType.RECOMPUTE_SLA: self._recompute_sla,
            ActionType.CHANGE_RECORD_TYPE: self._change_record_type,
            ActionType.NOTIFY: self._notify,
            ActionType.WEBHOOK: self._webhook,
        }

    async def execute(self, action: Action, ctx: ActionContext) -> None:
        handler = self._handlers.get(action.action_type)
        if handler is None:
            raise ValidationException(
                f"Unsupported action type '{action.action_type}'", {"action_id": str(action.id)}
            )
        await handler(action, ctx)

    # ---------- mutating actions ----------

    async def _assign(self, action: Action, ctx: ActionContext) -> None:
        config = action.config
        record = ctx.record
        matching = MatchingService(ctx.uow.workflows, self._directory)
        changes: Dict[str, Any] = {}

        if config.get("user_id"):
            changes["assignee_id"] = config["user_id"]
        if config.get("department_id"):
            changes["department_id"] = config["department_id"]

        if config.get("manual"):
            if ctx.payload.assignee_id:
                changes["assignee_id"] = ctx.payload.assignee_id
            if ctx.payload.department_id:
                changes["department_id"] = ctx.payload.department_id

        if config.get("auto_detect_department") and "department_id" not in changes:
            if ctx.payload.department_id:
                changes["department_id"] = ctx.payload.department_id
            else:
                result = await matching.match_department(record.classification_id, record.location_id)
                if result.single:
                    changes["department_id"] = result.matched_id

        if config.get("role") and "assignee_id" not in changes:
            users = await matching.match_users(
                role=config["role"],
                classification_id=record.classification_id,
                location_id=record.location_id,
                department_id=changes.get("department_id", record.department_id),
                exclude_user_id=record.assignee_id,
            )
            if not users:
                raise ValidationException(
                    f"No active user holds role '{config['role']}'",
                    {"action_id": str(action.id), "role": config["role"]}
                )
            changes["assignee_id"] = users[0].id

        if not changes:
            return
        applied = record.apply_changes(changes)
        if applied:
            await self._persist(
                ctx, RevisionAction.ASSIGNED, applied, f"Assigned to {record.assignee_id or 'nobody'}"
            )

    async def _set_field(self, action: Action, ctx: ActionContext) -> None:
        name = action.config["field"]
        value = action.config.get("value")
        if isinstance(value, str):
            value = render_template(value, ctx.template_values())
        applied = ctx.record.apply_changes({name: value})
        if applied:
            await self._persist(ctx, RevisionAction.UPDATED, applied, f"Set {name}")

    async def _recompute_sla(self, action: Action, ctx: ActionContext) -> None:
        record = ctx.record
        due = SLACalculator.due_at(
            self._policy_provider.policy,
            self._clock.now(),
            record.record_type,
            record.priority,
            ctx.to_state.sla_hours,
        )
        changes = [FieldChange("sla_due_at", record.sla_due_at, due)]
        if record.sla_breached:
            changes.append(FieldChange("sla_breached", True, False))
        record.sla_due_at = due
        record.sla_breached = False
        await self._persist(
            ctx, RevisionAction.SLA_RECOMPUTED, changes,
            f"SLA due {due.isoformat()}" if due else "No SLA applies"
        )

    async def _change_record_type(self, action: Action, ctx: ActionContext) -> None:
        target = action.config["record_type"]
        if target not in VALID_RECORD_TYPES:
            raise ValidationException(f"Unknown record type '{target}'", {"action_id": str(action.id)})
        record = ctx.record
        if record.record_type == target:
            return
        change = FieldChange("record_type", record.record_type, target)
        record.record_type = target
        await self._persist(
            ctx, RevisionAction.RECORD_TYPE_CHANGED, [change], f"Record type changed to {target}"
        )

    async def _persist(
        self,
        ctx: ActionContext,
        revision_action: str,
        changes: List[FieldChange],
        message: str
    ) -> None:
        record = ctx.record
        expected = record.version
        record.updated_at = self._clock.now()
        await ctx.uow.records.compare_and_swap(record, expected)
        await RevisionLog(ctx.uow, self._clock).append(
            record_id=record.id,
            action_type=revision_action,
            performed_by=ctx.actor,
            record_version=record.version,
            snapshot=record.to_snapshot(),
            changes=changes,
            message=message,
        )

    # ---------- side-effect actions ----------

    async def _notify(self, action: Action, ctx: ActionContext) -> None:
        record = ctx.record
        recipients = await MatchingService(ctx.uow.workflows, self._directory).expand_role_recipients(
            expand_record_recipients(
                list(action.config.get("recipients") or []), record.assignee_id, record.reporter_id
            )
        )
        if not recipients:
            logger.info(
                "Notify action has no recipients",
                extra={"record_id": str(record.id), "action_id": str(action.id)}
            )
            return

        values = ctx.template_values()
        self._notifier.notify(
            NotificationKind.TRANSITION,
            str(record.id),
            recipients,
            {
                **values,
                "title": render_template(action.config.get("subject") or "{{record_number}}: {{to_state}}", values),
                "message": render_template(
                    action.config.get("message") or "{{record_number}} moved from {{from_state}} to {{to_state}}",
                    values
                ),
            },
        )

    async def _webhook(self, action: Action, ctx: ActionContext) -> None:
        if self._webhook_client is None:
            raise ExternalServiceException("webhook", "No webhook client configured")

        values = ctx.template_values()
        method = (action.config.get("method") or "POST").upper()
        url = render_template(action.config["url"], values)
        headers = {k: render_template(str(v), values) for k, v in (action.config.get("headers") or {}).items()}
        body = action.config.get("body")
        body = render_template(body, values) if body else None

        status = await self._webhook_client.send(method, url, headers=headers, body=body)
        if status >= 400:
            raise ExternalServiceException(
                "webhook", f"{method} {url} returned HTTP {status}", {"status_code": status, "url": url}
            )
        logger.info(
            "Webhook delivered",
            extra={"record_id": str(ctx.record.id), "url": url, "status_code": status}
        )


def warning_message(action: Action, error: Exception) -> str:
    label = action.name or action.action_type
    return f"Action '{label}' failed: {error}"

