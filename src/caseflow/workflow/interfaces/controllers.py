"""
Workflow Controllers (API Routes)
=================================

FastAPI routes for the workflow definition store and workflow matching.

Controllers are thin - they delegate to application services.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from caseflow.core import Clock
from caseflow.infrastructure.database.unit_of_work import SQLAlchemyUnitOfWork, get_unit_of_work
from caseflow.matching.application import (
    DepartmentMatchRequest,
    DepartmentMatchResponse,
    IDirectory,
    MatchingService,
    WorkflowMatchRequest,
    WorkflowMatchResponse,
)
from caseflow.shared.api.dependencies import Actor, get_actor, get_clock, get_directory
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.workflow.application import (
    DuplicateWorkflowDTO,
    GraphReportResponse,
    StateCreateDTO,
    StateResponse,
    StateUpdateDTO,
    TransitionCreateDTO,
    TransitionResponse,
    TransitionUpdateDTO,
    WorkflowCreateDTO,
    WorkflowExport,
    WorkflowGraphResponse,
    WorkflowImportResponse,
    WorkflowPortability,
    WorkflowResponse,
    WorkflowService,
    WorkflowUpdateDTO,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/workflows", tags=["Workflows"])


# ========== Dependencies ==========

async def get_workflow_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    clock: Clock = Depends(get_clock)
) -> WorkflowService:
    return WorkflowService(uow, clock)


async def get_portability(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    clock: Clock = Depends(get_clock)
) -> WorkflowPortability:
    return WorkflowPortability(uow, clock)


async def get_matching_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    directory: IDirectory = Depends(get_directory)
) -> MatchingService:
    return MatchingService(uow.workflows, directory)


# ========== Static routes (declared before /{workflow_id}) ==========

@router.get("/deleted", response_model=List[WorkflowResponse], summary="List soft-deleted workflows")
async def list_deleted_workflows(service: WorkflowService = Depends(get_workflow_service)):
    return await service.list_deleted()


@router.post(
    "/match",
    response_model=WorkflowMatchResponse,
    summary="Resolve the workflow for record criteria",
    description="""
    Ranks active workflows of the record type by how many of their declared
    constraints the criteria satisfy. The record type's default workflow is
    returned only when nothing else matches.
    """
)
async def match_workflow(
    request: WorkflowMatchRequest,
    matching: MatchingService = Depends(get_matching_service)
):
    match = await matching.match_workflow(request)
    if match.used_default:
        return WorkflowMatchResponse(
            matches=[match.workflow.id], single=True, matched_id=match.workflow.id, used_default=True
        )
    return WorkflowMatchResponse(
        matches=[c.id for c in match.result.matches],
        single=match.result.single,
        matched_id=match.result.matched_id,
    )


@router.post("/match/department", response_model=DepartmentMatchResponse, summary="Resolve a department")
async def match_department(
    request: DepartmentMatchRequest,
    matching: MatchingService = Depends(get_matching_service)
):
    result = await matching.match_department(request.classification_id, request.location_id)
    return DepartmentMatchResponse(
        matches=[c.id for c in result.matches],
        single=result.single,
        matched_id=result.matched_id,
    )


@router.post(
    "/import",
    response_model=WorkflowImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import a workflow document",
    description="""
    Creates a new, inactive workflow from an export document. A clashing
    code is renamed with an `_imported_<timestamp>` suffix and reported in
    `warnings`.
    """
)
async def import_workflow(
    document: WorkflowExport,
    portability: WorkflowPortability = Depends(get_portability),
    actor: Actor = Depends(get_actor)
):
    result = await portability.import_workflow(document)
    logger.info(
        "Workflow imported",
        extra={"workflow_id": str(result.graph.workflow.id), "actor": actor.id, "warnings": len(result.warnings)}
    )
    return WorkflowImportResponse(
        workflow=WorkflowGraphResponse.model_validate(result.graph),
        warnings=result.warnings,
    )


@router.patch("/states/{state_id}", response_model=StateResponse, summary="Update a state")
async def update_state(
    state_id: UUID,
    dto: StateUpdateDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.update_state(state_id, dto)


@router.delete("/states/{state_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a state")
async def remove_state(
    state_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    await service.remove_state(state_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/states/{state_id}/transitions",
    response_model=List[TransitionResponse],
    summary="Transitions leaving a state"
)
async def transitions_from_state(state_id: UUID, service: WorkflowService = Depends(get_workflow_service)):
    return await service.transitions_from(state_id)


@router.patch("/transitions/{transition_id}", response_model=TransitionResponse, summary="Update a transition")
async def update_transition(
    transition_id: UUID,
    dto: TransitionUpdateDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.update_transition(transition_id, dto)


@router.delete(
    "/transitions/{transition_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a transition"
)
async def remove_transition(
    transition_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    await service.remove_transition(transition_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Workflows ==========

@router.post(
    "",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow"
)
async def create_workflow(
    dto: WorkflowCreateDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.create_workflow(dto)


@router.get("", response_model=List[WorkflowResponse], summary="List workflows")
async def list_workflows(
    record_type: Optional[str] = Query(None),
    active_only: bool = Query(False),
    service: WorkflowService = Depends(get_workflow_service)
):
    return await service.list_workflows(record_type=record_type, active_only=active_only)


@router.get("/{workflow_id}", response_model=WorkflowResponse, summary="Get a workflow")
async def get_workflow(workflow_id: UUID, service: WorkflowService = Depends(get_workflow_service)):
    return await service.get_workflow(workflow_id)


@router.patch("/{workflow_id}", response_model=WorkflowResponse, summary="Update a workflow")
async def update_workflow(
    workflow_id: UUID,
    dto: WorkflowUpdateDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.update_workflow(workflow_id, dto)


@router.delete(
    "/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a workflow",
    description="""
    Soft delete by default. With `permanent=true` the workflow and its graph
    are purged; this fails with 409 while records still reference it.
    """
)
async def delete_workflow(
    workflow_id: UUID,
    permanent: bool = Query(False),
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    await service.delete_workflow(workflow_id, permanent=permanent)
    logger.info(
        "Workflow delete requested",
        extra={"workflow_id": str(workflow_id), "permanent": permanent, "actor": actor.id}
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{workflow_id}/restore", response_model=WorkflowResponse, summary="Restore a soft-deleted workflow")
async def restore_workflow(
    workflow_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.restore_workflow(workflow_id)


@router.post("/{workflow_id}/default", response_model=WorkflowResponse, summary="Make the record type's default")
async def set_default_workflow(
    workflow_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.set_default(workflow_id)


@router.post(
    "/{workflow_id}/duplicate",
    response_model=WorkflowGraphResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Deep-copy a workflow"
)
async def duplicate_workflow(
    workflow_id: UUID,
    dto: DuplicateWorkflowDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    graph = await service.duplicate_workflow(workflow_id, code=dto.code, name=dto.name)
    return WorkflowGraphResponse.model_validate(graph)


@router.get("/{workflow_id}/graph", response_model=WorkflowGraphResponse, summary="Workflow with states and transitions")
async def get_workflow_graph(workflow_id: UUID, service: WorkflowService = Depends(get_workflow_service)):
    return WorkflowGraphResponse.model_validate(await service.get_graph(workflow_id))


@router.get("/{workflow_id}/validate", response_model=GraphReportResponse, summary="Check the workflow graph")
async def validate_workflow(workflow_id: UUID, service: WorkflowService = Depends(get_workflow_service)):
    return GraphReportResponse.model_validate(await service.validate_workflow(workflow_id))


@router.get("/{workflow_id}/initial-state", response_model=StateResponse, summary="The workflow's initial state")
async def initial_state(workflow_id: UUID, service: WorkflowService = Depends(get_workflow_service)):
    return await service.initial_state_of(workflow_id)


@router.get("/{workflow_id}/export", response_model=WorkflowExport, summary="Export a workflow document")
async def export_workflow(workflow_id: UUID, portability: WorkflowPortability = Depends(get_portability)):
    return await portability.export_workflow(workflow_id)


# ========== States and transitions ==========

@router.post(
    "/{workflow_id}/states",
    response_model=StateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a state"
)
async def add_state(
    workflow_id: UUID,
    dto: StateCreateDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.add_state(workflow_id, dto)


@router.get("/{workflow_id}/transitions", response_model=List[TransitionResponse], summary="All transitions")
async def list_transitions(workflow_id: UUID, service: WorkflowService = Depends(get_workflow_service)):
    return await service.transitions_of(workflow_id)


@router.post(
    "/{workflow_id}/transitions",
    response_model=TransitionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a transition"
)
async def add_transition(
    workflow_id: UUID,
    dto: TransitionCreateDTO,
    service: WorkflowService = Depends(get_workflow_service),
    actor: Actor = Depends(get_actor)
):
    return await service.add_transition(workflow_id, dto)


# Export router for inclusion in main app
workflow_router = router
