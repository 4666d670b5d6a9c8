"""
Repository dependency injection
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learning_core.dependencies.db import get_database
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


async def get_course_repository(session: AsyncSession = Depends(get_database)) -> CourseRepository:
    return CourseRepository(session)


async def get_sprint_repository(session: AsyncSession = Depends(get_database)) -> SprintRepository:
    return SprintRepository(session)


async def get_session_repository(session: AsyncSession = Depends(get_database)) -> SessionRepository:
    return SessionRepository(session)


async def get_task_repository(session: AsyncSession = Depends(get_database)) -> TaskRepository:
    return TaskRepository(session)


async def get_question_repository(session: AsyncSession = Depends(get_database)) -> QuestionRepository:
    return QuestionRepository(session)


async def get_submission_repository(session: AsyncSession = Depends(get_database)) -> SubmissionRepository:
    return SubmissionRepository(session)


async def get_enrollment_repository(session: AsyncSession = Depends(get_database)) -> EnrollmentRepository:
    return EnrollmentRepository(session)


async def get_lesson_completion_repository(
        session: AsyncSession = Depends(get_database),
) -> LessonCompletionRepository:
    return LessonCompletionRepository(session)
