"""
Sprint & Session Repositories - ordered children of courses and sprints
"""
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from learning_core.model.course_models import Sprint, Session
from learning_core.model.task_models import Task, Question
from learning_core.repositories.ordered_repo import OrderedRepository


class SprintRepository(OrderedRepository[Sprint]):
    """
    Repository for Sprint entity, ranked per course
    """
    parent_field = "course_id"

    def __init__(self, session: AsyncSession):
        super().__init__(Sprint, session)

    async def cascade_soft_delete_children(self, sprint_id: UUID) -> None:
        """
        Mark every session, task and question below a sprint deleted.
        """
        session_ids = select(Session.id).where(Session.sprint_id == sprint_id)
        task_ids = select(Task.id).where(Task.session_id.in_(session_ids))

        await self.session.execute(
            update(Question).where(Question.task_id.in_(task_ids)).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Task).where(Task.session_id.in_(session_ids)).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Session).where(Session.sprint_id == sprint_id).values(is_deleted=True, order_index=None)
        )
        await self.flush()


class SessionRepository(OrderedRepository[Session]):
    """
    Repository for Session entity, ranked per sprint
    """
    parent_field = "sprint_id"

    def __init__(self, session: AsyncSession):
        super().__init__(Session, session)

    async def cascade_soft_delete_children(self, session_id: UUID) -> None:
        """
        Mark every task and question below a session deleted.
        """
        task_ids = select(Task.id).where(Task.session_id == session_id)

        await self.session.execute(
            update(Question).where(Question.task_id.in_(task_ids)).values(is_deleted=True, order_index=None)
        )
        await self.session.execute(
            update(Task).where(Task.session_id == session_id).values(is_deleted=True, order_index=None)
        )
        await self.flush()
