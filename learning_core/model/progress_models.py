"""
Learner-side records: submissions, enrollments, lesson completions
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, Uuid, JSON, UniqueConstraint,
    Enum as SQLEnum,
)

from learning_core.model.base import Base, BaseMixin
from learning_core.model.enums import CompletionStatus

SUBMISSION_SCHEMA_VERSION = 1


class Submission(Base, BaseMixin):
    """
    Immutable record of one learner attempt at a task.

    The answer key the attempt was scored against is stored next to the answers,
    so the score stays reproducible after the task's questions are edited.
    """
    __tablename__ = 'submissions'
    __table_args__ = (
        UniqueConstraint("task_id", "learner_id", "attempt", name="uq_submissions_attempt"),
        UniqueConstraint("learner_id", "request_token", name="uq_submissions_request_token"),
    )

    task_id = Column(Uuid, ForeignKey('tasks.id'), nullable=False, index=True)
    learner_id = Column(String(36), nullable=False, index=True)
    attempt = Column(Integer, nullable=False)
    answers = Column(JSON, nullable=False)
    answer_key = Column(JSON, nullable=False)
    score = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    correct_count = Column(Integer, nullable=False)
    question_count = Column(Integer, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    request_token = Column(String(128), nullable=True)
    schema_version = Column(Integer, default=SUBMISSION_SCHEMA_VERSION, nullable=False)

    def __repr__(self):
        return f"<Submission(id={self.id}, task_id={self.task_id}, attempt={self.attempt}, score={self.score})>"


class Enrollment(Base, BaseMixin):
    """
    A learner's enrollment in a course with its recomputed progress.
    """
    __tablename__ = 'enrollments'
    __table_args__ = (
        UniqueConstraint("learner_id", "course_id", name="uq_enrollments_learner_course"),
    )

    learner_id = Column(String(36), nullable=False, index=True)
    course_id = Column(Uuid, ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True)
    progress = Column(Integer, default=0, nullable=False)
    completion_status = Column(
        SQLEnum(
            CompletionStatus,
            name="completion_status",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=CompletionStatus.NOT_STARTED,
        nullable=False,
    )
    completed_task_ids = Column(JSON, default=list, nullable=False)
    completed_lesson_ids = Column(JSON, default=list, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    certificate_issued = Column(Boolean, default=False, nullable=False)
    certificate_id = Column(String(64), nullable=True, unique=True)
    issued_at = Column(DateTime(timezone=True), nullable=True)
    last_recomputed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Enrollment(learner_id={self.learner_id}, course_id={self.course_id}, progress={self.progress})>"


class LessonCompletion(Base, BaseMixin):
    """
    Completion mark for a non-graded session.
    """
    __tablename__ = 'lesson_completions'
    __table_args__ = (
        UniqueConstraint("learner_id", "session_id", name="uq_lesson_completions_learner_session"),
    )

    learner_id = Column(String(36), nullable=False, index=True)
    course_id = Column(Uuid, ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True)
    session_id = Column(Uuid, ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<LessonCompletion(learner_id={self.learner_id}, session_id={self.session_id})>"
