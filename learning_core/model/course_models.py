"""
Curriculum models: Course -> Sprint -> Session
"""

from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    Text,
    Numeric,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from learning_core.model.base import Base, BaseMixin, SoftDeleteMixin


class Course(Base, BaseMixin, SoftDeleteMixin):
    """
    Course owning an ordered list of sprints
    """

    __tablename__ = "courses"

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_published = Column(Boolean, default=False, nullable=False)
    is_free = Column(Boolean, default=False, nullable=False)
    price = Column(Numeric(precision=10, scale=2), default=Decimal("0.00"))

    # Relationships
    sprints = relationship(
        "Sprint",
        back_populates="course",
        order_by="Sprint.order_index",
    )

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title})>"


class Sprint(Base, BaseMixin, SoftDeleteMixin):
    """
    Time-boxed block of sessions inside a course
    """

    __tablename__ = "sprints"
    __table_args__ = (
        UniqueConstraint("course_id", "order_index", name="uq_sprints_course_order"),
    )

    course_id = Column(
        Uuid,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    goal = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # NULL once soft-deleted so the row leaves the dense sequence
    order_index = Column(Integer, nullable=True)

    # Relationships
    course = relationship("Course", back_populates="sprints")
    sessions = relationship(
        "Session",
        back_populates="sprint",
        order_by="Session.order_index",
    )

    def __repr__(self):
        return f"<Sprint(id={self.id}, name={self.name}, order={self.order_index})>"


class Session(Base, BaseMixin, SoftDeleteMixin):
    """
    A single learning session (video/reading) inside a sprint
    """

    __tablename__ = "sessions"
    __table_args__ = (
        UniqueConstraint("sprint_id", "order_index", name="uq_sessions_sprint_order"),
    )

    sprint_id = Column(
        Uuid,
        ForeignKey("sprints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, default=60, nullable=False)  # minutes
    content = Column(Text, nullable=True)
    video_url = Column(String(1024), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    order_index = Column(Integer, nullable=True)

    # Relationships
    sprint = relationship("Sprint", back_populates="sessions")
    tasks = relationship(
        "Task",
        back_populates="session",
        order_by="Task.order_index",
    )

    def __repr__(self):
        return f"<Session(id={self.id}, name={self.name}, order={self.order_index})>"
