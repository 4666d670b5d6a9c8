"""
Assessment models: Task -> Question -> Option
"""

from sqlalchemy import (
    Column, Text, Float, Integer, Boolean, ForeignKey, String, Uuid, UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from learning_core.model.base import Base, BaseMixin, SoftDeleteMixin
from learning_core.model.enums import QuestionType


class Task(Base, BaseMixin, SoftDeleteMixin):
    """
    Gradable assessment unit attached to a session.
    """
    __tablename__ = 'tasks'
    __table_args__ = (
        UniqueConstraint("session_id", "order_index", name="uq_tasks_session_order"),
    )

    session_id = Column(
        Uuid,
        ForeignKey('sessions.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=True)

    # Relationships
    session = relationship("Session", back_populates="tasks")
    questions = relationship(
        "Question",
        back_populates="task",
        order_by="Question.order_index",
    )

    def __repr__(self):
        return f"<Task(id={self.id}, title={self.title})>"


class Question(Base, BaseMixin, SoftDeleteMixin):
    """
    Question of a task; choice-like types carry options, free-text types a reference answer.
    """
    __tablename__ = 'questions'
    __table_args__ = (
        UniqueConstraint("task_id", "order_index", name="uq_questions_task_order"),
    )

    task_id = Column(
        Uuid,
        ForeignKey('tasks.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )

    question_text = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    point = Column(Float, default=1.0, nullable=False)
    question_type = Column(
        SQLEnum(
            QuestionType,
            name="question_type",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=QuestionType.MULTIPLE_CHOICE,
        nullable=False
    )
    correct_answer = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=True)

    # Relationships
    task = relationship("Task", back_populates="questions")
    options = relationship(
        "Option",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Option.position",
    )

    def __repr__(self):
        return f"<Question(id={self.id}, type={self.question_type})>"


class Option(Base, BaseMixin):
    """
    Answer option of a choice-like question.
    """
    __tablename__ = 'options'

    question_id = Column(
        Uuid,
        ForeignKey('questions.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )

    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    # Relationships
    question = relationship("Question", back_populates="options")

    def __repr__(self):
        return f"<Option(id={self.id}, is_correct={self.is_correct})>"
