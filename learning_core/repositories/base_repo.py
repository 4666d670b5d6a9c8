import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TypeVar, Generic, Type, Optional, Any, Sequence
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError, OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession

from learning_core.model.base import Base
from learning_core.utils.exceptions import ConflictException, TransientException

logger = logging.getLogger(__name__)

# Generic type for SQLAlchemy models
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class with common CRUD operations.

    Writes only flush; the owning service decides when the unit of work
    commits, so multi-row changes stay in one transaction.

    Usage:
        class SprintRepository(BaseRepository[Sprint]):
            def __init__(self, session: AsyncSession):
                super().__init__(Sprint, session)
    """
    model: Type[ModelType]

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository with model class and database session.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    def _live(self, query, include_deleted: bool = False):
        if not include_deleted and hasattr(self.model, 'is_deleted'):
            query = query.where(self.model.is_deleted.is_(False))
        return query

    # ==================== CREATE ====================

    async def create(self, obj_in: dict | ModelType) -> ModelType:
        """
        Add a new record to the current transaction.

        Args:
            obj_in: Dictionary or model instance with data to create

        Returns:
            Pending model instance (flushed, not committed)
        """
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = obj_in

        self.session.add(db_obj)
        await self.flush()
        return db_obj

    # ==================== READ ====================

    async def get_by_id(
        self, id: UUID, include_deleted: bool = False, for_update: bool = False
    ) -> Optional[ModelType]:
        """
        Get a single record by ID.

        Args:
            id: Primary key
            include_deleted: Whether to include soft-deleted records
            for_update: Lock the row until the transaction ends (no-op on SQLite)

        Returns:
            Model instance or None if not found
        """
        query = self._live(select(self.model).where(self.model.id == id), include_deleted)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_filters(
        self,
        filters: dict[str, Any],
        include_deleted: bool = False,
        order_by: Optional[str] = None,
        order_desc: bool = False
    ) -> Sequence[ModelType]:
        """
        Get records matching multiple filter conditions.

        Args:
            filters: Dictionary of field-value pairs to filter by
            include_deleted: Whether to include soft-deleted records
            order_by: Field name to order by
            order_desc: Whether to order descending

        Returns:
            List of model instances
        """
        conditions = [getattr(self.model, field) == value for field, value in filters.items()]
        query = self._live(select(self.model).where(and_(*conditions)), include_deleted)

        if order_by:
            order_column = getattr(self.model, order_by)
            query = query.order_by(order_column.desc() if order_desc else order_column)

        result = await self.session.execute(query)
        return result.scalars().all()

    # ==================== UPDATE ====================

    async def update(self, db_obj: ModelType, obj_in: dict) -> ModelType:
        """
        Apply field changes to a loaded record.

        Args:
            db_obj: Model instance to update
            obj_in: Dictionary with fields to update

        Returns:
            Updated model instance
        """
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await self.flush()
        return db_obj

    # ==================== TRANSACTION ====================

    @asynccontextmanager
    async def _storage_errors(self, action: str):
        """Roll back and map driver errors onto Conflict (409) or Transient (503)."""
        try:
            yield
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Integrity conflict on {action} of {self.model.__name__}: {e.orig}")
            raise ConflictException(
                "The record was changed concurrently. Refresh and retry."
            ) from e
        except (OperationalError, InterfaceError, asyncio.TimeoutError) as e:
            await self.session.rollback()
            logger.error(f"Storage failure on {action} of {self.model.__name__}: {e}")
            raise TransientException("Storage temporarily unavailable") from e

    async def flush(self):
        async with self._storage_errors("flush"):
            await self.session.flush()

    async def commit(self):
        async with self._storage_errors("commit"):
            await self.session.commit()
