"""
Ordered Repository - shared rank handling for siblings under one parent
"""
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, func

from learning_core.repositories.base_repo import BaseRepository, ModelType


class OrderedRepository(BaseRepository[ModelType]):
    """
    Repository for hierarchy rows carrying a dense ``order_index`` per parent.

    Subclasses set ``parent_field`` to the foreign-key column naming the parent.
    Live siblings always hold the ranks 1..N; soft-deleted rows hold NULL.
    """
    parent_field: str

    @property
    def _parent_column(self):
        return getattr(self.model, self.parent_field)

    async def list_children(self, parent_id: UUID) -> Sequence[ModelType]:
        """
        Get the live children of a parent in rank order.
        """
        query = self._live(
            select(self.model)
            .where(self._parent_column == parent_id)
            .order_by(self.model.order_index)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def next_order(self, parent_id: UUID) -> int:
        """
        Rank for a new last child.
        """
        query = self._live(
            select(func.max(self.model.order_index)).where(self._parent_column == parent_id)
        )
        result = await self.session.execute(query)
        return (result.scalar() or 0) + 1

    async def apply_ranks(self, ordered_children: Sequence[ModelType]) -> None:
        """
        Assign ranks 1..N following the given sequence.

        Ranks pass through negative placeholders first so that no intermediate
        statement collides with the (parent, order_index) unique constraint.
        Nothing is committed here; the caller's transaction makes it atomic.
        """
        if not ordered_children:
            return

        for index, child in enumerate(ordered_children):
            child.order_index = -(index + 1)
        await self.flush()

        for index, child in enumerate(ordered_children):
            child.order_index = index + 1
        await self.flush()

    async def densify(self, parent_id: UUID) -> None:
        """
        Close gaps left by a removed sibling.
        """
        children = await self.list_children(parent_id)
        if any(child.order_index != index + 1 for index, child in enumerate(children)):
            await self.apply_ranks(children)

    async def soft_delete(self, db_obj: ModelType) -> None:
        """
        Mark a row deleted; it leaves the rank sequence.
        """
        db_obj.is_deleted = True
        db_obj.order_index = None
        await self.flush()
