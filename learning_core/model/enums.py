"""
Enums shared by models, schemas and services
"""
from enum import Enum


class QuestionType(str, Enum):
    """Type of task question"""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"
    MATCHING = "matching"
    FILL_IN_BLANK = "fill_in_blank"

    def is_choice(self) -> bool:
        """Scored against options flagged correct"""
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.MATCHING, QuestionType.TRUE_FALSE)

    def is_free_text(self) -> bool:
        """Scored against a reference answer"""
        return self in (QuestionType.SHORT_ANSWER, QuestionType.ESSAY, QuestionType.FILL_IN_BLANK)

    def is_true_false(self) -> bool:
        return self == QuestionType.TRUE_FALSE


class CompletionStatus(str, Enum):
    """Enrollment completion state derived from progress"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_progress(cls, progress: int) -> "CompletionStatus":
        if progress <= 0:
            return cls.NOT_STARTED
        if progress >= 100:
            return cls.COMPLETED
        return cls.IN_PROGRESS


class HierarchyKind(str, Enum):
    """Orderable levels of the content tree"""
    SPRINTS = "sprints"
    SESSIONS = "sessions"
    TASKS = "tasks"
    QUESTIONS = "questions"


class UserRole(str, Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class AccountState(str, Enum):
    """Identity states evaluated before any core operation"""
    UNAUTHENTICATED = "unauthenticated"
    PENDING_APPROVAL = "pending_approval"
    SUSPENDED = "suspended"
    ACTIVE_UNAPPROVED = "active_unapproved"
    ACTIVE_APPROVED = "active_approved"
