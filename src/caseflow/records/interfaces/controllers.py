"""
Record Controllers (API Routes)
===============================

FastAPI routes for records: creation, field updates, comments and
attachments, assignment, conversion and transition execution.

Controllers are thin - they delegate to application services.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from caseflow.audit.application import RevisionLog, RevisionPageResponse, RevisionResponse
from caseflow.audit.domain import RevisionQuery
from caseflow.core import Clock
from caseflow.infrastructure.database.unit_of_work import SQLAlchemyUnitOfWork, get_unit_of_work
from caseflow.matching.application import IDirectory
from caseflow.records.application import ActionExecutor, RecordService, TransitionEngine
from caseflow.records.application.dto import (
    AssignDTO,
    AttachmentCreateDTO,
    AttachmentResponse,
    AvailableTransitionResponse,
    CommentCreateDTO,
    CommentResponse,
    ConvertDTO,
    HistoryResponse,
    RecordCreateDTO,
    RecordResponse,
    RecordUpdateDTO,
    TransitionOutcomeResponse,
    TransitionRequest,
)
from caseflow.shared.api.dependencies import (
    Actor,
    get_actor,
    get_clock,
    get_directory,
    get_notifier,
    get_policy_provider,
    get_webhook_client,
)
from caseflow.shared.application import INotifier
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.sla.application.provider import ISLAPolicyProvider

logger = get_logger(__name__)
router = APIRouter(prefix="/records", tags=["Records"])


# ========== Dependencies ==========

async def get_record_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    directory: IDirectory = Depends(get_directory),
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider),
    clock: Clock = Depends(get_clock)
) -> RecordService:
    return RecordService(uow, directory=directory, policy_provider=policy_provider, clock=clock)


async def get_transition_engine(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    directory: IDirectory = Depends(get_directory),
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider),
    notifier: INotifier = Depends(get_notifier),
    webhook_client=Depends(get_webhook_client),
    clock: Clock = Depends(get_clock)
) -> TransitionEngine:
    executor = ActionExecutor(
        directory=directory,
        policy_provider=policy_provider,
        notifier=notifier,
        webhook_client=webhook_client,
        clock=clock,
    )
    return TransitionEngine(uow, executor=executor, clock=clock)


async def get_revision_log(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    clock: Clock = Depends(get_clock)
) -> RevisionLog:
    return RevisionLog(uow, clock)


# ========== Records ==========

@router.post(
    "",
    response_model=RecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a record",
    description="""
    Creates a record in the initial state of its workflow. Without an
    explicit `workflow_id` the workflow is resolved from the record's type,
    classification, location, department and channel; an ambiguous match is
    rejected with 409.
    """
)
async def create_record(
    dto: RecordCreateDTO,
    service: RecordService = Depends(get_record_service),
    actor: Actor = Depends(get_actor)
):
    return await service.create_record(dto, actor.id)


@router.get("", response_model=List[RecordResponse], summary="List records")
async def list_records(
    workflow_id: Optional[UUID] = Query(None),
    state_id: Optional[UUID] = Query(None),
    record_type: Optional[str] = Query(None),
    assignee_id: Optional[str] = Query(None),
    sla_breached: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: RecordService = Depends(get_record_service)
):
    return await service.list_records(
        workflow_id=workflow_id,
        state_id=state_id,
        record_type=record_type,
        assignee_id=assignee_id,
        sla_breached=sla_breached,
        limit=limit,
        offset=offset,
    )


@router.get("/{record_id}", response_model=RecordResponse, summary="Get a record")
async def get_record(record_id: UUID, service: RecordService = Depends(get_record_service)):
    return await service.get_record(record_id)


@router.patch(
    "/{record_id}",
    response_model=RecordResponse,
    summary="Update record fields",
    description="Direct field edits. The workflow state only changes through transitions."
)
async def update_record(
    record_id: UUID,
    dto: RecordUpdateDTO,
    service: RecordService = Depends(get_record_service),
    actor: Actor = Depends(get_actor)
):
    return await service.update_record(record_id, dto.changes(), actor.id, expected_version=dto.expected_version)


@router.post("/{record_id}/assign", response_model=RecordResponse, summary="Assign a record")
async def assign_record(
    record_id: UUID,
    dto: AssignDTO,
    service: RecordService = Depends(get_record_service),
    actor: Actor = Depends(get_actor)
):
    return await service.assign(record_id, dto, actor.id)


@router.post(
    "/{record_id}/convert",
    response_model=RecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Convert a record into a request"
)
async def convert_record(
    record_id: UUID,
    dto: ConvertDTO,
    service: RecordService = Depends(get_record_service),
    actor: Actor = Depends(get_actor)
):
    converted = await service.convert_to_request(record_id, dto, actor.id, actor.roles)
    logger.info(
        "Record converted",
        extra={"record_id": str(record_id), "request_id": str(converted.id), "actor": actor.id}
    )
    return converted


# ========== Comments and attachments ==========

@router.get("/{record_id}/comments", response_model=List[CommentResponse], summary="List comments")
async def list_comments(
    record_id: UUID,
    include_internal: bool = Query(True),
    service: RecordService = Depends(get_record_service)
):
    return await service.list_comments(record_id, include_internal=include_internal)


@router.post(
    "/{record_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment"
)
async def add_comment(
    record_id: UUID,
    dto: CommentCreateDTO,
    service: RecordService = Depends(get_record_service),
    actor: Actor = Depends(get_actor)
):
    return await service.add_comment(record_id, dto, actor.id)


@router.get("/{record_id}/attachments", response_model=List[AttachmentResponse], summary="List attachments")
async def list_attachments(record_id: UUID, service: RecordService = Depends(get_record_service)):
    return await service.list_attachments(record_id)


@router.post(
    "/{record_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an attachment"
)
async def add_attachment(
    record_id: UUID,
    dto: AttachmentCreateDTO,
    service: RecordService = Depends(get_record_service),
    actor: Actor = Depends(get_actor)
):
    return await service.add_attachment(record_id, dto, actor.id)


# ========== Transitions ==========

@router.get(
    "/{record_id}/transitions",
    response_model=List[AvailableTransitionResponse],
    summary="Transitions available to the caller"
)
async def available_transitions(
    record_id: UUID,
    engine: TransitionEngine = Depends(get_transition_engine),
    actor: Actor = Depends(get_actor)
):
    return await engine.available_transitions(record_id, actor.roles)


@router.post(
    "/{record_id}/transitions",
    response_model=TransitionOutcomeResponse,
    summary="Execute a transition",
    description="""
    Moves the record along one transition of its workflow.

    All unmet requirements are reported together with 422. A stale
    `expected_version` is rejected with 409. Actions run after the state
    change has committed; an action that fails is reported in `warnings`
    and does not undo the transition.
    """
)
async def execute_transition(
    record_id: UUID,
    request: TransitionRequest,
    engine: TransitionEngine = Depends(get_transition_engine),
    actor: Actor = Depends(get_actor)
):
    outcome = await engine.execute_transition(
        record_id=record_id,
        transition_id=request.transition_id,
        actor=actor.id,
        role_set=actor.roles,
        payload=request.to_payload(),
        expected_version=request.expected_version,
    )
    return TransitionOutcomeResponse.model_validate(outcome, from_attributes=True)


@router.get("/{record_id}/history", response_model=List[HistoryResponse], summary="Transition history")
async def transition_history(record_id: UUID, service: RecordService = Depends(get_record_service)):
    return await service.transition_history(record_id)


@router.get("/{record_id}/revisions", response_model=RevisionPageResponse, summary="Revisions of a record")
async def record_revisions(
    record_id: UUID,
    action_type: Optional[List[str]] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    service: RecordService = Depends(get_record_service),
    revisions: RevisionLog = Depends(get_revision_log)
):
    await service.get_record(record_id)
    result = await revisions.query(RevisionQuery(
        record_id=record_id,
        action_types=tuple(action_type or ()),
        page=page,
        page_size=page_size,
    ))
    return RevisionPageResponse(
        items=[RevisionResponse.model_validate(r) for r in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


# Export router for inclusion in main app
records_router = router
