import logging

from fastapi import Depends

from learning_core.clients.redis_client import RedisClient
from learning_core.config import get_settings
from learning_core.dependencies.repositories import (
    get_course_repository,
    get_sprint_repository,
    get_session_repository,
    get_task_repository,
    get_question_repository,
    get_submission_repository,
    get_enrollment_repository,
    get_lesson_completion_repository,
)
from learning_core.repositories import (
    CourseRepository,
    SprintRepository,
    SessionRepository,
    TaskRepository,
    QuestionRepository,
    SubmissionRepository,
    EnrollmentRepository,
    LessonCompletionRepository,
)
from learning_core.services.hierarchy_service import HierarchyService
from learning_core.services.progress_service import ProgressAggregator
from learning_core.services.reorder_service import ReorderService
from learning_core.services.submission_service import SubmissionRecorder

logger = logging.getLogger(__name__)

# =============================
#   Redis Client (Singleton)
# =============================
_redis_client_instance = None


async def get_redis_client() -> RedisClient:
    """
    Get singleton RedisClient instance.
    Connection is established on first call and reused.
    """
    global _redis_client_instance

    if _redis_client_instance is None:
        settings = get_settings()
        _redis_client_instance = RedisClient(settings)
        await _redis_client_instance.connect()
        logger.info("RedisClient singleton created")

    return _redis_client_instance


# =============================
#   Hierarchy Services (Per-Request)
# =============================
async def get_hierarchy_service(
        course_repository: CourseRepository = Depends(get_course_repository),
        sprint_repository: SprintRepository = Depends(get_sprint_repository),
        session_repository: SessionRepository = Depends(get_session_repository),
        task_repository: TaskRepository = Depends(get_task_repository),
        question_repository: QuestionRepository = Depends(get_question_repository),
        redis_client: RedisClient = Depends(get_redis_client),
) -> HierarchyService:
    """
    Get HierarchyService with repositories sharing the request's database session.
    """
    return HierarchyService(
        course_repository=course_repository,
        sprint_repository=sprint_repository,
        session_repository=session_repository,
        task_repository=task_repository,
        question_repository=question_repository,
        settings=get_settings(),
        redis_client=redis_client,
    )


async def get_reorder_service(
        course_repository: CourseRepository = Depends(get_course_repository),
        sprint_repository: SprintRepository = Depends(get_sprint_repository),
        session_repository: SessionRepository = Depends(get_session_repository),
        task_repository: TaskRepository = Depends(get_task_repository),
        question_repository: QuestionRepository = Depends(get_question_repository),
        redis_client: RedisClient = Depends(get_redis_client),
) -> ReorderService:
    return ReorderService(
        course_repository=course_repository,
        sprint_repository=sprint_repository,
        session_repository=session_repository,
        task_repository=task_repository,
        question_repository=question_repository,
        settings=get_settings(),
        redis_client=redis_client,
    )


# =============================
#   Progress & Submission Services (Per-Request)
# =============================
async def get_progress_aggregator(
        course_repository: CourseRepository = Depends(get_course_repository),
        enrollment_repository: EnrollmentRepository = Depends(get_enrollment_repository),
        lesson_completion_repository: LessonCompletionRepository = Depends(get_lesson_completion_repository),
        submission_repository: SubmissionRepository = Depends(get_submission_repository),
        redis_client: RedisClient = Depends(get_redis_client),
) -> ProgressAggregator:
    return ProgressAggregator(
        course_repository=course_repository,
        enrollment_repository=enrollment_repository,
        lesson_completion_repository=lesson_completion_repository,
        submission_repository=submission_repository,
        settings=get_settings(),
        redis_client=redis_client,
    )


async def get_submission_recorder(
        task_repository: TaskRepository = Depends(get_task_repository),
        submission_repository: SubmissionRepository = Depends(get_submission_repository),
        progress_aggregator: ProgressAggregator = Depends(get_progress_aggregator),
) -> SubmissionRecorder:
    """
    Get SubmissionRecorder; recompute runs through the injected ProgressAggregator.

    Note: FastAPI caches get_database per request, so every repository here
    shares one AsyncSession.
    """
    return SubmissionRecorder(
        task_repository=task_repository,
        submission_repository=submission_repository,
        progress_aggregator=progress_aggregator,
        settings=get_settings(),
    )
