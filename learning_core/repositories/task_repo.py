"""
Task Repository - Data access layer for tasks, questions and options
"""
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from learning_core.model.course_models import Session, Sprint
from learning_core.model.task_models import Task, Question
from learning_core.repositories.ordered_repo import OrderedRepository


class TaskRepository(OrderedRepository[Task]):
    """
    Repository for Task entity, ranked per session.
    """
    parent_field = "session_id"

    def __init__(self, session: AsyncSession):
        super().__init__(Task, session)

    async def get_task_with_questions(
        self,
        task_id: UUID,
        include_deleted: bool = False
    ) -> Optional[Task]:
        """
        Get a task with questions and their options loaded.

        Args:
            task_id: UUID of the task
            include_deleted: Whether to include a soft-deleted task

        Returns:
            Task instance with questions/options loaded, or None
        """
        query = self._live(
            select(Task)
            .options(
                selectinload(Task.questions).selectinload(Question.options)
            )
            .where(Task.id == task_id),
            include_deleted,
        ).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_tasks_with_questions(self, session_id: UUID) -> Sequence[Task]:
        """
        Get the live tasks of a session in rank order, questions loaded.
        """
        query = self._live(
            select(Task)
            .options(
                selectinload(Task.questions).selectinload(Question.options)
            )
            .where(Task.session_id == session_id)
            .order_by(Task.order_index)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_course_id(self, task_id: UUID) -> Optional[UUID]:
        """
        Resolve the course owning a task (task -> session -> sprint -> course).
        """
        query = (
            select(Sprint.course_id)
            .select_from(Task)
            .join(Session, Session.id == Task.session_id)
            .join(Sprint, Sprint.id == Session.sprint_id)
            .where(Task.id == task_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def cascade_soft_delete_children(self, task_id: UUID) -> None:
        """
        Mark every question of a task deleted.
        """
        await self.session.execute(
            update(Question).where(Question.task_id == task_id).values(is_deleted=True, order_index=None)
        )
        await self.flush()


class QuestionRepository(OrderedRepository[Question]):
    """
    Repository for Question entity, ranked per task.
    """
    parent_field = "task_id"

    def __init__(self, session: AsyncSession):
        super().__init__(Question, session)

    async def get_question_with_options(
        self,
        question_id: UUID,
        include_deleted: bool = False
    ) -> Optional[Question]:
        """
        Get a question with its options loaded.
        """
        query = self._live(
            select(Question)
            .options(selectinload(Question.options))
            .where(Question.id == question_id),
            include_deleted,
        ).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
