"""
Submission Repository - append-only access to learner attempts
"""
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from learning_core.model.progress_models import Submission
from learning_core.repositories.base_repo import BaseRepository


class SubmissionRepository(BaseRepository[Submission]):
    """
    Repository for Submission entity.

    Submissions are never updated; the highest attempt per (task, learner)
    is the authoritative one.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Submission, session)

    async def get_by_request_token(
        self,
        learner_id: str,
        request_token: str
    ) -> Optional[Submission]:
        query = select(Submission).where(
            Submission.learner_id == learner_id,
            Submission.request_token == request_token,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_latest(self, task_id: UUID, learner_id: str) -> Optional[Submission]:
        """
        Get the authoritative (highest attempt) submission of a learner for a task.
        """
        query = (
            select(Submission)
            .where(Submission.task_id == task_id, Submission.learner_id == learner_id)
            .order_by(Submission.attempt.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_attempts(self, task_id: UUID, learner_id: str) -> Sequence[Submission]:
        """
        Get every attempt of a learner for a task, newest first.
        """
        return await self.get_by_filters(
            {"task_id": task_id, "learner_id": learner_id},
            order_by="attempt",
            order_desc=True,
        )

    async def get_latest_by_tasks(
        self,
        learner_id: str,
        task_ids: Sequence[UUID]
    ) -> dict[UUID, Submission]:
        """
        Get the authoritative submission per task for a learner.

        Args:
            learner_id: Learner identifier
            task_ids: Tasks to look up

        Returns:
            Mapping task_id -> latest Submission (tasks never attempted are absent)
        """
        if not task_ids:
            return {}

        latest_attempts = (
            select(
                Submission.task_id.label("task_id"),
                func.max(Submission.attempt).label("attempt"),
            )
            .where(Submission.learner_id == learner_id, Submission.task_id.in_(task_ids))
            .group_by(Submission.task_id)
            .subquery()
        )
        query = (
            select(Submission)
            .join(
                latest_attempts,
                (Submission.task_id == latest_attempts.c.task_id)
                & (Submission.attempt == latest_attempts.c.attempt),
            )
            .where(Submission.learner_id == learner_id)
        )
        result = await self.session.execute(query)
        return {submission.task_id: submission for submission in result.scalars().all()}
