from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from learning_core.model.enums import HierarchyKind, QuestionType


# =============================
#   Request Schemas
# =============================
class CourseCreateRequest(BaseModel):
    """Request schema for creating a course"""

    title: str = Field(..., description="Course title")
    description: Optional[str] = Field(None, description="Course description")
    is_published: bool = Field(default=False, description="Visible in the public catalog")
    is_free: bool = Field(default=False, description="Free or priced course")
    price: Decimal = Field(default=Decimal("0.00"), ge=0, description="Price when not free")


class CourseUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    is_published: Optional[bool] = None
    is_free: Optional[bool] = None
    price: Optional[Decimal] = Field(None, ge=0)


class SprintCreateRequest(BaseModel):
    """Request schema for creating a sprint inside a course"""

    course_id: UUID = Field(..., description="Owning course")
    name: str = Field(..., description="Sprint name")
    description: Optional[str] = None
    goal: Optional[str] = Field(None, description="Main goal of the sprint")
    start_date: datetime = Field(..., description="Sprint start")
    end_date: datetime = Field(..., description="Sprint end (swapped with start when reversed)")
    is_active: bool = True


class SprintUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    goal: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class SessionCreateRequest(BaseModel):
    """Request schema for creating a session inside a sprint"""

    sprint_id: UUID = Field(..., description="Owning sprint")
    name: str = Field(..., description="Session name")
    description: Optional[str] = None
    duration: int = Field(default=60, description="Duration in minutes")
    content: Optional[str] = None
    video_url: Optional[str] = Field(None, description="Reference to the session video")
    is_active: bool = True


class SessionUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    is_active: Optional[bool] = None


class OptionPayload(BaseModel):
    """A single answer option"""

    text: str = Field(..., description="Option text")
    is_correct: bool = Field(
        default=False, validation_alias=AliasChoices("is_correct", "isCorrect")
    )


class QuestionPayload(BaseModel):
    """Question as submitted by content staff"""

    question_text: str = Field(..., validation_alias=AliasChoices("question_text", "text"))
    question_type: QuestionType = Field(
        default=QuestionType.MULTIPLE_CHOICE,
        validation_alias=AliasChoices("question_type", "questionType"),
    )
    point: float = Field(default=1.0, validation_alias=AliasChoices("point", "points"))
    options: List[OptionPayload] = Field(default_factory=list)
    correct_answer: Optional[str] = Field(
        None, validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )
    explanation: Optional[str] = None


class QuestionUpdateRequest(BaseModel):
    question_text: Optional[str] = None
    question_type: Optional[QuestionType] = None
    point: Optional[float] = None
    options: Optional[List[OptionPayload]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class TaskCreateRequest(BaseModel):
    """Request schema for creating a task, optionally with its questions"""

    session_id: UUID = Field(..., description="Owning session")
    title: str = Field(..., description="Task title")
    description: Optional[str] = None
    questions: List[QuestionPayload] = Field(default_factory=list)


class TaskUpdateRequest(BaseModel):
    """When questions are given they replace the current question list."""

    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[QuestionPayload]] = None


class ReorderRequest(BaseModel):
    """Proposed sibling ordering after a drag-reorder"""

    parent_id: UUID = Field(..., validation_alias=AliasChoices("parent_id", "parentId"))
    ordered_ids: List[UUID] = Field(..., validation_alias=AliasChoices("ordered_ids", "orderedIds"))


# =============================
#   Snapshot Schemas
# =============================
class OptionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    is_correct: Optional[bool] = None
    position: int = 0


class QuestionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    task_id: UUID
    question_text: str
    question_type: QuestionType
    point: float
    order: Optional[int]
    options: tuple[OptionSnapshot, ...] = ()
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None

    @classmethod
    def from_model(cls, question) -> "QuestionSnapshot":
        return cls(
            id=question.id,
            task_id=question.task_id,
            question_text=question.question_text,
            question_type=question.question_type,
            point=question.point,
            order=question.order_index,
            options=tuple(
                OptionSnapshot(text=o.text, is_correct=o.is_correct, position=o.position)
                for o in sorted(question.options, key=lambda o: o.position)
            ),
            correct_answer=question.correct_answer,
            explanation=question.explanation,
        )

    def redacted(self) -> "QuestionSnapshot":
        """Learner view: no correctness flags, reference answer or explanation."""
        return self.model_copy(
            update={
                "options": tuple(o.model_copy(update={"is_correct": None}) for o in self.options),
                "correct_answer": None,
                "explanation": None,
            }
        )


class TaskSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    session_id: UUID
    title: str
    description: Optional[str] = None
    order: Optional[int]
    total_points: float = 0.0
    questions: tuple[QuestionSnapshot, ...] = ()

    @classmethod
    def from_model(cls, task, include_questions: bool = True) -> "TaskSnapshot":
        questions = ()
        if include_questions:
            questions = tuple(
                QuestionSnapshot.from_model(q)
                for q in sorted(task.questions, key=lambda q: q.order_index or 0)
                if not q.is_deleted
            )
        return cls(
            id=task.id,
            session_id=task.session_id,
            title=task.title,
            description=task.description,
            order=task.order_index,
            total_points=sum(q.point for q in questions),
            questions=questions,
        )

    def redacted(self) -> "TaskSnapshot":
        return self.model_copy(update={"questions": tuple(q.redacted() for q in self.questions)})


class SessionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    sprint_id: UUID
    name: str
    description: Optional[str] = None
    duration: int
    content: Optional[str] = None
    video_url: Optional[str] = None
    is_active: bool
    order: Optional[int]
    tasks: tuple[TaskSnapshot, ...] = ()

    @classmethod
    def from_model(cls, session, tasks: tuple[TaskSnapshot, ...] = ()) -> "SessionSnapshot":
        return cls(
            id=session.id,
            sprint_id=session.sprint_id,
            name=session.name,
            description=session.description,
            duration=session.duration,
            content=session.content,
            video_url=session.video_url,
            is_active=session.is_active,
            order=session.order_index,
            tasks=tasks,
        )


class SprintSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    course_id: UUID
    name: str
    description: Optional[str] = None
    goal: Optional[str] = None
    start_date: datetime
    end_date: datetime
    is_active: bool
    order: Optional[int]
    sessions: tuple[SessionSnapshot, ...] = ()

    @classmethod
    def from_model(cls, sprint, sessions: tuple[SessionSnapshot, ...] = ()) -> "SprintSnapshot":
        return cls(
            id=sprint.id,
            course_id=sprint.course_id,
            name=sprint.name,
            description=sprint.description,
            goal=sprint.goal,
            start_date=sprint.start_date,
            end_date=sprint.end_date,
            is_active=sprint.is_active,
            order=sprint.order_index,
            sessions=sessions,
        )


class CourseSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    title: str
    description: Optional[str] = None
    is_published: bool
    is_free: bool
    price: Decimal
    sprints: tuple[SprintSnapshot, ...] = ()

    @classmethod
    def from_model(cls, course, sprints: tuple[SprintSnapshot, ...] = ()) -> "CourseSnapshot":
        return cls(
            id=course.id,
            title=course.title,
            description=course.description,
            is_published=course.is_published,
            is_free=course.is_free,
            price=course.price if course.price is not None else Decimal("0.00"),
            sprints=sprints,
        )


class ReorderResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: HierarchyKind
    parent_id: UUID
    orders: dict[UUID, int]
