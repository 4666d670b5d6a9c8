"""
Model package - Database models and enums
"""
from learning_core.model.base import Base, BaseMixin, TimestampMixin, SoftDeleteMixin
from learning_core.model.enums import (
    QuestionType,
    CompletionStatus,
    HierarchyKind,
    UserRole,
    AccountState,
)
from learning_core.model.course_models import Course, Sprint, Session
from learning_core.model.task_models import Task, Question, Option
from learning_core.model.progress_models import Submission, Enrollment, LessonCompletion

__all__ = [
    # Base classes
    'Base',
    'BaseMixin',
    'TimestampMixin',
    'SoftDeleteMixin',
    # Enums
    'QuestionType',
    'CompletionStatus',
    'HierarchyKind',
    'UserRole',
    'AccountState',
    # Curriculum models
    'Course',
    'Sprint',
    'Session',
    # Assessment models
    'Task',
    'Question',
    'Option',
    # Learner records
    'Submission',
    'Enrollment',
    'LessonCompletion',
]
