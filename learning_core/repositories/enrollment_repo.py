"""
Enrollment Repository - enrollments and lesson completion marks
"""
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from learning_core.model.enums import CompletionStatus
from learning_core.model.progress_models import Enrollment, LessonCompletion
from learning_core.repositories.base_repo import BaseRepository


class EnrollmentRepository(BaseRepository[Enrollment]):
    """
    Repository for Enrollment entity.

    Progress and certificate writes are conditional UPDATEs so that
    concurrent recomputes can only move the record forward.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Enrollment, session)

    async def get_enrollment(self, learner_id: str, course_id: UUID) -> Optional[Enrollment]:
        query = (
            select(Enrollment)
            .where(Enrollment.learner_id == learner_id, Enrollment.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_learner(self, learner_id: str) -> Sequence[Enrollment]:
        return await self.get_by_filters(
            {"learner_id": learner_id}, order_by="created_date", order_desc=True
        )

    async def advance_progress(
        self,
        enrollment_id: UUID,
        progress: int,
        status: CompletionStatus,
        completed_task_ids: list[str],
        completed_lesson_ids: list[str],
        recomputed_at: datetime,
    ) -> bool:
        """
        Store a recomputed progress value unless a higher one is already stored.

        Returns:
            True when the row was written
        """
        stmt = (
            update(Enrollment)
            .where(Enrollment.id == enrollment_id, Enrollment.progress <= progress)
            .values(
                progress=progress,
                completion_status=status,
                completed_task_ids=completed_task_ids,
                completed_lesson_ids=completed_lesson_ids,
                last_recomputed_at=recomputed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_completed(self, enrollment_id: UUID, completed_at: datetime) -> bool:
        """
        Stamp the first completion time; later calls are no-ops.
        """
        stmt = (
            update(Enrollment)
            .where(
                Enrollment.id == enrollment_id,
                Enrollment.completion_status == CompletionStatus.COMPLETED,
                Enrollment.completed_at.is_(None),
            )
            .values(completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_certificate_issued(
        self,
        enrollment_id: UUID,
        certificate_id: str,
        issued_at: datetime
    ) -> bool:
        """
        One-way false -> true transition of the certificate flag.

        Returns:
            True only for the caller that performed the transition
        """
        stmt = (
            update(Enrollment)
            .where(
                Enrollment.id == enrollment_id,
                Enrollment.certificate_issued.is_(False),
                Enrollment.completion_status == CompletionStatus.COMPLETED,
            )
            .values(certificate_issued=True, certificate_id=certificate_id, issued_at=issued_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def delete_enrollment(self, enrollment: Enrollment) -> None:
        await self.session.delete(enrollment)
        await self.flush()


class LessonCompletionRepository(BaseRepository[LessonCompletion]):
    """
    Repository for LessonCompletion entity
    """

    def __init__(self, session: AsyncSession):
        super().__init__(LessonCompletion, session)

    async def get_completion(self, learner_id: str, session_id: UUID) -> Optional[LessonCompletion]:
        query = select(LessonCompletion).where(
            LessonCompletion.learner_id == learner_id,
            LessonCompletion.session_id == session_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_completed_session_ids(self, learner_id: str, course_id: UUID) -> set[UUID]:
        query = select(LessonCompletion.session_id).where(
            LessonCompletion.learner_id == learner_id,
            LessonCompletion.course_id == course_id,
        )
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def delete_for_course(self, learner_id: str, course_id: UUID) -> int:
        stmt = delete(LessonCompletion).where(
            LessonCompletion.learner_id == learner_id,
            LessonCompletion.course_id == course_id,
        )
        result = await self.session.execute(stmt)
        await self.flush()
        return result.rowcount
