import uuid

from sqlalchemy import Column, DateTime, Boolean, Uuid, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# --- Mixin ---
class TimestampMixin:
    """Adds created_date and updated_date columns."""

    created_date = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    updated_date = Column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now(), nullable=False
    )


class SoftDeleteMixin:
    """Adds the is_deleted flag used for logical removal."""

    is_deleted = Column(Boolean, default=False, nullable=False)


# --- Base class for every model ---
class BaseMixin(TimestampMixin):
    """UUID primary key plus timestamps."""

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"
