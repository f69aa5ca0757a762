"""
Matching Application Services
=============================

Applies the generic criteria matcher to workflows, departments and users.
"""

from dataclasses import dataclass
from typing import List, Optional

from caseflow.config import MatchDimension, WORKFLOW_MATCH_DIMENSIONS
from caseflow.matching.application.directory import (
    DepartmentProfile,
    EmptyDirectory,
    IDirectory,
    UserProfile,
)
from caseflow.matching.application.dto import WorkflowMatchRequest
from caseflow.matching.domain import CriteriaMatcher, MatchCandidate, MatchResult
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.workflow.application.services import IWorkflowRepository
from caseflow.workflow.domain import Workflow

logger = get_logger(__name__)

workflow_matcher = CriteriaMatcher(WORKFLOW_MATCH_DIMENSIONS + [MatchDimension.RECORD_TYPE])
department_matcher = CriteriaMatcher([MatchDimension.CLASSIFICATION, MatchDimension.LOCATION])
user_matcher = CriteriaMatcher([
    MatchDimension.CLASSIFICATION, MatchDimension.LOCATION, MatchDimension.DEPARTMENT
])


@dataclass
class WorkflowMatch:
    """Outcome of workflow resolution for a new record."""

    result: MatchResult
    workflow: Optional[Workflow] = None
    used_default: bool = False

    @property
    def is_ambiguous(self) -> bool:
        return len(self.result.matches) > 1


def workflow_candidate(workflow: Workflow) -> MatchCandidate:
    constraints = {k: frozenset(v) for k, v in workflow.match_constraints.items() if v}
    constraints[MatchDimension.RECORD_TYPE] = frozenset({workflow.record_type})
    return MatchCandidate(id=workflow.id, constraints=constraints, item=workflow)


def department_candidate(department: DepartmentProfile) -> MatchCandidate:
    return MatchCandidate.of(
        department.id,
        item=department,
        classification=department.classification_ids,
        location=department.location_ids,
    )


def user_candidate(user: UserProfile) -> MatchCandidate:
    return MatchCandidate.of(
        user.id,
        item=user,
        classification=user.classification_ids,
        location=user.location_ids,
        department=user.department_ids,
    )


class MatchingService:
    """Resolves workflows, departments and users for records."""

    def __init__(self, workflows: IWorkflowRepository, directory: Optional[IDirectory] = None):
        self._workflows = workflows
        self._directory = directory or EmptyDirectory()

    async def match_workflow(self, request: WorkflowMatchRequest) -> WorkflowMatch:
        """
        Pick the most specific active workflow for the criteria.

        The record type's default workflow is not ranked; it is the fallback
        when no other workflow survives the filter.
        """
        active = await self._workflows.list_workflows(record_type=request.record_type, active_only=True)
        ranked = [w for w in active if not w.is_default]
        result = workflow_matcher.match((workflow_candidate(w) for w in ranked), request.criteria())

        if result.single:
            return WorkflowMatch(result=result, workflow=result.matched.item)
        if result.matches:
            logger.info(
                "Ambiguous workflow match",
                extra={"record_type": request.record_type, "candidates": [str(c.id) for c in result.matches]}
            )
            return WorkflowMatch(result=result)

        default = next((w for w in active if w.is_default), None)
        return WorkflowMatch(result=result, workflow=default, used_default=default is not None)

    async def match_department(
        self,
        classification_id: Optional[str] = None,
        location_id: Optional[str] = None
    ) -> MatchResult:
        departments = await self._directory.list_departments()
        return department_matcher.match(
            (department_candidate(d) for d in departments),
            {MatchDimension.CLASSIFICATION: classification_id, MatchDimension.LOCATION: location_id},
        )

    async def match_users(
        self,
        role: str,
        classification_id: Optional[str] = None,
        location_id: Optional[str] = None,
        department_id: Optional[str] = None,
        exclude_user_id: Optional[str] = None
    ) -> List[UserProfile]:
        """
        Users holding ``role`` ranked by specificity against the record.

        Returns the top tier. When nobody matches the record's criteria the
        result falls back to every holder of the role. The current assignee
        is never returned.
        """
        holders = [
            u for u in await self._directory.list_users(role=role)
            if u.is_active and u.id != exclude_user_id
        ]
        result = user_matcher.match(
            (user_candidate(u) for u in holders),
            {
                MatchDimension.CLASSIFICATION: classification_id,
                MatchDimension.LOCATION: location_id,
                MatchDimension.DEPARTMENT: department_id,
            },
        )
        if result.matches:
            return [c.item for c in result.matches]
        return holders

    async def users_with_role(self, role: str) -> List[UserProfile]:
        return [u for u in await self._directory.list_users(role=role) if u.is_active]

    async def expand_role_recipients(self, recipients: List[str]) -> List[str]:
        """Expand ``role:<code>`` into the role holders; kept as-is when nobody is known."""
        resolved: List[str] = []
        for recipient in recipients:
            expanded = [recipient]
            if recipient.startswith("role:"):
                users = await self.users_with_role(recipient[len("role:"):])
                if users:
                    expanded = [f"user:{u.id}" for u in users]
            for item in expanded:
                if item not in resolved:
                    resolved.append(item)
        return resolved

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        return await self._directory.get_user(user_id)
