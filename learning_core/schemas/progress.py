from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from learning_core.model.enums import CompletionStatus


class EnrollRequest(BaseModel):
    course_id: UUID = Field(..., validation_alias=AliasChoices("course_id", "courseId"))


class TaskProgress(BaseModel):
    task_id: UUID
    title: str
    completed: bool
    unlocked: bool
    latest_score: Optional[int] = None


class SessionProgress(BaseModel):
    session_id: UUID
    name: str
    is_lesson: bool = Field(..., description="Non-graded session completed by explicit mark")
    completed: bool
    unlocked: bool
    progress: int = Field(..., ge=0, le=100)
    tasks: List[TaskProgress] = Field(default_factory=list)


class SprintProgress(BaseModel):
    sprint_id: UUID
    name: str
    status: CompletionStatus
    progress: int = Field(..., ge=0, le=100)
    completed_units: int
    total_units: int
    sessions: List[SessionProgress] = Field(default_factory=list)


class EnrollmentResponse(BaseModel):
    """Stored enrollment state"""

    enrollment_id: UUID
    learner_id: str
    course_id: UUID
    progress: int = Field(..., ge=0, le=100)
    completion_status: CompletionStatus
    completed_task_ids: List[str] = Field(default_factory=list)
    completed_lesson_ids: List[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    certificate_issued: bool
    certificate_id: Optional[str] = None
    issued_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, enrollment) -> "EnrollmentResponse":
        return cls(
            enrollment_id=enrollment.id,
            learner_id=enrollment.learner_id,
            course_id=enrollment.course_id,
            progress=enrollment.progress,
            completion_status=enrollment.completion_status,
            completed_task_ids=list(enrollment.completed_task_ids or []),
            completed_lesson_ids=list(enrollment.completed_lesson_ids or []),
            completed_at=enrollment.completed_at,
            certificate_issued=enrollment.certificate_issued,
            certificate_id=enrollment.certificate_id,
            issued_at=enrollment.issued_at,
        )


class CourseProgressResponse(BaseModel):
    """Stored enrollment plus the live per-sprint breakdown"""

    enrollment: EnrollmentResponse
    completed_units: int
    total_units: int
    sprints: List[SprintProgress] = Field(default_factory=list)


class CertificateResponse(BaseModel):
    certificate_id: str
    issued_at: datetime
    newly_issued: bool = Field(
        default=False, description="False when the certificate had already been issued"
    )
