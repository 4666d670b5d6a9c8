import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from learning_core.dependencies.auth import require
from learning_core.dependencies.services import get_hierarchy_service
from learning_core.schemas.generic import ApiResponse
from learning_core.schemas.hierarchy import (
    CourseCreateRequest,
    CourseUpdateRequest,
    CourseSnapshot,
)
from learning_core.services.access_service import Capability, is_staff
from learning_core.services.auth_service import Identity
from learning_core.services.hierarchy_service import HierarchyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["Courses"])


def _learner_view(tree: CourseSnapshot) -> CourseSnapshot:
    """Strip answer data from every task of a tree."""
    return tree.model_copy(
        update={
            "sprints": tuple(
                sprint.model_copy(
                    update={
                        "sessions": tuple(
                            session.model_copy(
                                update={"tasks": tuple(task.redacted() for task in session.tasks)}
                            )
                            for session in sprint.sessions
                        )
                    }
                )
                for sprint in tree.sprints
            )
        }
    )


@router.get(
    "",
    response_model=ApiResponse[List[CourseSnapshot]],
    summary="List Courses",
    description="Staff see every course; learners see the published catalog.",
)
async def list_courses(
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.ENROLL)),
) -> ApiResponse[List[CourseSnapshot]]:
    courses = await hierarchy_service.list_courses(published_only=not is_staff(identity))
    return ApiResponse[List[CourseSnapshot]].success(data=courses)


@router.post(
    "",
    response_model=ApiResponse[CourseSnapshot],
    status_code=201,
    summary="Create Course",
)
async def create_course(
        request: CourseCreateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[CourseSnapshot]:
    logger.info(f"User {identity.user_id} creating course: {request.title[:50]}")
    course = await hierarchy_service.create_course(request)
    return ApiResponse[CourseSnapshot].success(data=course, message="Course created successfully")


@router.get("/{course_id}", response_model=ApiResponse[CourseSnapshot], summary="Get Course")
async def get_course(
        course_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[CourseSnapshot]:
    return ApiResponse[CourseSnapshot].success(data=await hierarchy_service.get_course(course_id))


@router.get(
    "/{course_id}/tree",
    response_model=ApiResponse[CourseSnapshot],
    summary="Get Course Tree",
    description="Immutable snapshot of sprints, sessions, tasks and questions in rank order.",
)
async def get_course_tree(
        course_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[CourseSnapshot]:
    """
    Staff get the full tree including inactive content and answer data.
    Learners get active content only, with correct answers removed.
    """
    if is_staff(identity):
        tree = await hierarchy_service.get_course_tree(course_id)
    else:
        tree = _learner_view(await hierarchy_service.get_course_tree(course_id, include_inactive=False))
    return ApiResponse[CourseSnapshot].success(data=tree)


@router.patch("/{course_id}", response_model=ApiResponse[CourseSnapshot], summary="Update Course")
async def update_course(
        course_id: UUID,
        request: CourseUpdateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[CourseSnapshot]:
    course = await hierarchy_service.update_course(course_id, request)
    return ApiResponse[CourseSnapshot].success(data=course, message="Course updated successfully")


@router.delete("/{course_id}", response_model=ApiResponse[None], summary="Delete Course")
async def delete_course(
        course_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[None]:
    logger.info(f"User {identity.user_id} deleting course {course_id}")
    await hierarchy_service.delete_course(course_id)
    return ApiResponse[None].success(message="Course deleted successfully")
