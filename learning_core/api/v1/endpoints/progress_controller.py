"""
Progress Controller - enrollments, lesson completion, progress and certificates
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from learning_core.dependencies.auth import require
from learning_core.dependencies.services import get_progress_aggregator
from learning_core.schemas.generic import ApiResponse
from learning_core.schemas.progress import (
    CertificateResponse,
    CourseProgressResponse,
    EnrollRequest,
    EnrollmentResponse,
)
from learning_core.services.access_service import Capability
from learning_core.services.auth_service import Identity
from learning_core.services.progress_service import ProgressAggregator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Progress"])


@router.post(
    "/enrollments",
    response_model=ApiResponse[EnrollmentResponse],
    status_code=201,
    summary="Enroll in Course",
)
async def enroll(
        request: EnrollRequest,
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
        identity: Identity = Depends(require(Capability.ENROLL)),
) -> ApiResponse[EnrollmentResponse]:
    enrollment = await progress_aggregator.enroll(identity.user_id, request.course_id)
    return ApiResponse[EnrollmentResponse].success(data=enrollment, message="Enrolled successfully")


@router.delete(
    "/enrollments/{course_id}",
    response_model=ApiResponse[None],
    summary="Withdraw from Course",
    description="Removes the enrollment and lesson marks; submissions are kept.",
)
async def withdraw(
        course_id: UUID,
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
        identity: Identity = Depends(require(Capability.ENROLL)),
) -> ApiResponse[None]:
    await progress_aggregator.withdraw(identity.user_id, course_id)
    return ApiResponse[None].success(message="Withdrawn successfully")


@router.get(
    "/enrollments/me",
    response_model=ApiResponse[List[EnrollmentResponse]],
    summary="List My Enrollments",
)
async def list_my_enrollments(
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
        identity: Identity = Depends(require(Capability.READ_PROGRESS)),
) -> ApiResponse[List[EnrollmentResponse]]:
    enrollments = await progress_aggregator.list_enrollments(identity.user_id)
    return ApiResponse[List[EnrollmentResponse]].success(data=enrollments)


@router.get(
    "/courses/{course_id}/progress",
    response_model=ApiResponse[CourseProgressResponse],
    summary="Get Course Progress",
    description="Stored enrollment plus per-sprint and per-session breakdown with unlock state.",
)
async def get_course_progress(
        course_id: UUID,
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
        identity: Identity = Depends(require(Capability.READ_PROGRESS)),
) -> ApiResponse[CourseProgressResponse]:
    progress = await progress_aggregator.get_course_progress(identity.user_id, course_id)
    return ApiResponse[CourseProgressResponse].success(data=progress)


@router.post(
    "/courses/{course_id}/lessons/{session_id}/complete",
    response_model=ApiResponse[EnrollmentResponse],
    summary="Mark Lesson Complete",
)
async def complete_lesson(
        course_id: UUID,
        session_id: UUID,
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[EnrollmentResponse]:
    enrollment = await progress_aggregator.mark_lesson_complete(identity.user_id, course_id, session_id)
    return ApiResponse[EnrollmentResponse].success(data=enrollment, message="Lesson completed")


@router.post(
    "/courses/{course_id}/certificate",
    response_model=ApiResponse[CertificateResponse],
    summary="Issue Certificate",
    description="Issue (or return the already issued) certificate of a completed course.",
)
async def issue_certificate(
        course_id: UUID,
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
        identity: Identity = Depends(require(Capability.ISSUE_CERTIFICATE)),
) -> ApiResponse[CertificateResponse]:
    """
    Raises:
        - 400 Bad Request: Course not completed yet
        - 404 Not Found: Not enrolled in the course
    """
    certificate = await progress_aggregator.issue_certificate(identity.user_id, course_id)
    return ApiResponse[CertificateResponse].success(data=certificate)
