import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from learning_core.dependencies.auth import require
from learning_core.dependencies.services import get_hierarchy_service, get_reorder_service
from learning_core.model.enums import HierarchyKind
from learning_core.schemas.generic import ApiResponse
from learning_core.schemas.hierarchy import (
    ReorderRequest,
    ReorderResult,
    SprintCreateRequest,
    SprintUpdateRequest,
    SprintSnapshot,
)
from learning_core.services.access_service import Capability
from learning_core.services.auth_service import Identity
from learning_core.services.hierarchy_service import HierarchyService
from learning_core.services.reorder_service import ReorderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sprints", tags=["Sprints"])


@router.get(
    "/course/{course_id}",
    response_model=ApiResponse[List[SprintSnapshot]],
    summary="List Sprints of a Course",
)
async def list_sprints(
        course_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[List[SprintSnapshot]]:
    sprints = await hierarchy_service.list_sprints(course_id)
    return ApiResponse[List[SprintSnapshot]].success(data=sprints)


@router.post("", response_model=ApiResponse[SprintSnapshot], status_code=201, summary="Create Sprint")
async def create_sprint(
        request: SprintCreateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[SprintSnapshot]:
    """
    Append a sprint to a course.

    - **start_date / end_date**: both required; swapped when given reversed

    Raises:
        - 404 Not Found: Course does not exist
        - 409 Conflict: Another change to the course's sprints is in progress
    """
    sprint = await hierarchy_service.create_sprint(request)
    return ApiResponse[SprintSnapshot].success(data=sprint, message="Sprint created successfully")


@router.put(
    "/reorder",
    response_model=ApiResponse[ReorderResult],
    summary="Reorder Sprints",
    description="Apply a complete proposed order of a course's sprints.",
)
async def reorder_sprints(
        request: ReorderRequest,
        reorder_service: ReorderService = Depends(get_reorder_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[ReorderResult]:
    result = await reorder_service.reorder(HierarchyKind.SPRINTS, request.parent_id, request.ordered_ids)
    return ApiResponse[ReorderResult].success(data=result, message="Sprints reordered successfully")


@router.get("/{sprint_id}", response_model=ApiResponse[SprintSnapshot], summary="Get Sprint")
async def get_sprint(
        sprint_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[SprintSnapshot]:
    return ApiResponse[SprintSnapshot].success(data=await hierarchy_service.get_sprint(sprint_id))


@router.patch("/{sprint_id}", response_model=ApiResponse[SprintSnapshot], summary="Update Sprint")
async def update_sprint(
        sprint_id: UUID,
        request: SprintUpdateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[SprintSnapshot]:
    sprint = await hierarchy_service.update_sprint(sprint_id, request)
    return ApiResponse[SprintSnapshot].success(data=sprint, message="Sprint updated successfully")


@router.delete("/{sprint_id}", response_model=ApiResponse[None], summary="Delete Sprint")
async def delete_sprint(
        sprint_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[None]:
    logger.info(f"User {identity.user_id} deleting sprint {sprint_id}")
    await hierarchy_service.delete_sprint(sprint_id)
    return ApiResponse[None].success(message="Sprint deleted successfully")
