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
    SessionCreateRequest,
    SessionUpdateRequest,
    SessionSnapshot,
)
from learning_core.services.access_service import Capability
from learning_core.services.auth_service import Identity
from learning_core.services.hierarchy_service import HierarchyService
from learning_core.services.reorder_service import ReorderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get(
    "/sprint/{sprint_id}",
    response_model=ApiResponse[List[SessionSnapshot]],
    summary="List Sessions of a Sprint",
)
async def list_sessions(
        sprint_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[List[SessionSnapshot]]:
    sessions = await hierarchy_service.list_sessions(sprint_id)
    return ApiResponse[List[SessionSnapshot]].success(data=sessions)


@router.post("", response_model=ApiResponse[SessionSnapshot], status_code=201, summary="Create Session")
async def create_session(
        request: SessionCreateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[SessionSnapshot]:
    session = await hierarchy_service.create_session(request)
    return ApiResponse[SessionSnapshot].success(data=session, message="Session created successfully")


@router.put("/reorder", response_model=ApiResponse[ReorderResult], summary="Reorder Sessions")
async def reorder_sessions(
        request: ReorderRequest,
        reorder_service: ReorderService = Depends(get_reorder_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[ReorderResult]:
    result = await reorder_service.reorder(HierarchyKind.SESSIONS, request.parent_id, request.ordered_ids)
    return ApiResponse[ReorderResult].success(data=result, message="Sessions reordered successfully")


@router.get("/{session_id}", response_model=ApiResponse[SessionSnapshot], summary="Get Session")
async def get_session(
        session_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[SessionSnapshot]:
    return ApiResponse[SessionSnapshot].success(data=await hierarchy_service.get_session(session_id))


@router.patch("/{session_id}", response_model=ApiResponse[SessionSnapshot], summary="Update Session")
async def update_session(
        session_id: UUID,
        request: SessionUpdateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[SessionSnapshot]:
    session = await hierarchy_service.update_session(session_id, request)
    return ApiResponse[SessionSnapshot].success(data=session, message="Session updated successfully")


@router.delete("/{session_id}", response_model=ApiResponse[None], summary="Delete Session")
async def delete_session(
        session_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[None]:
    logger.info(f"User {identity.user_id} deleting session {session_id}")
    await hierarchy_service.delete_session(session_id)
    return ApiResponse[None].success(message="Session deleted successfully")
