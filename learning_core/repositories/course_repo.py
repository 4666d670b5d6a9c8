"""
Course Repository - Data access layer for courses and the full content tree
"""

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from learning_core.model.course_models import Course, Sprint, Session
from learning_core.model.task_models import Task, Question
from learning_core.repositories.base_repo import BaseRepository


class CourseRepository(BaseRepository[Course]):
    """
    Repository for Course entity
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Course, session)

    async def list_courses(self, published_only: bool = False) -> Sequence[Course]:
        """
        Get live courses, newest first.

        Args:
            published_only: Restrict to published courses

        Returns:
            List of Course instances
        """
        query = self._live(select(Course)).order_by(Course.created_date.desc())
        if published_only:
            query = query.where(Course.is_published.is_(True))

        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_course_tree(self, course_id: UUID) -> Optional[Course]:
        """
        Get a course with sprints, sessions, tasks, questions and options loaded.

        Deleted descendants are loaded too; readers filter on ``is_deleted``.

        Args:
            course_id: UUID of the course

        Returns:
            Course instance with the whole tree eagerly loaded, or None
        """
        query = self._live(
            select(Course)
            .options(
                selectinload(Course.sprints)
                .selectinload(Sprint.sessions)
                .selectinload(Session.tasks)
                .selectinload(Task.questions)
                .selectinload(Question.options)
            )
            .where(Course.id == course_id)
        ).execution_options(populate_existing=True)

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def cascade_soft_delete(self, course_id: UUID) -> None:
        """
        Mark a course and every descendant deleted.
        """
        sprint_ids = select(Sprint.id).where(Sprint.course_id == course_id)
        session_ids = select(Session.id).where(Session.sprint_id.in_(sprint_ids))
        task_ids = select(Task.id).where(Task.session_id.in_(session_ids))

        await self.session.execute(
            update(Question).where(Question.task_id.in_(task_ids)).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Task).where(Task.session_id.in_(session_ids)).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Session).where(Session.sprint_id.in_(sprint_ids)).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Sprint).where(Sprint.course_id == course_id).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Course).where(Course.id == course_id).values(is_deleted=True)
        )
        await self.flush()
