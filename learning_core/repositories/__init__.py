"""
Repository package - Data access layer
"""

from learning_core.repositories.base_repo import BaseRepository
from learning_core.repositories.ordered_repo import OrderedRepository
from learning_core.repositories.course_repo import CourseRepository
from learning_core.repositories.sprint_repo import SprintRepository, SessionRepository
from learning_core.repositories.task_repo import TaskRepository, QuestionRepository
from learning_core.repositories.submission_repo import SubmissionRepository
from learning_core.repositories.enrollment_repo import (
    EnrollmentRepository,
    LessonCompletionRepository,
)

__all__ = [
    "BaseRepository",
    "OrderedRepository",
    "CourseRepository",
    "SprintRepository",
    "SessionRepository",
    "TaskRepository",
    "QuestionRepository",
    "SubmissionRepository",
    "EnrollmentRepository",
    "LessonCompletionRepository",
]
