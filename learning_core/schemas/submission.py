from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from learning_core.model.enums import QuestionType


# =============================
#   Request Schemas
# =============================
class SubmitTaskRequest(BaseModel):
    """Learner answers for one task attempt"""

    session_id: Optional[UUID] = Field(
        None,
        validation_alias=AliasChoices("session_id", "sessionId"),
        description="Session the task was taken in; must own the task when given",
    )
    answers: Union[Dict[str, Any], List[Any]] = Field(
        default_factory=dict,
        description="Question index -> selected option text(s) or free text, or a list in question order",
    )
    time_spent_seconds: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("time_spent_seconds", "timeSpentSeconds", "timeSpent"),
    )
    request_token: Optional[str] = Field(
        None,
        max_length=128,
        validation_alias=AliasChoices("request_token", "requestToken"),
        description="Idempotency token; retries with the same token return the first result",
    )


# =============================
#   Response Schemas
# =============================
class QuestionResultResponse(BaseModel):
    index: int
    question_id: Optional[str] = None
    question_type: QuestionType
    correct: bool
    answered: bool
    points_awarded: float
    points_possible: float
    correct_answer: Union[List[str], str, None] = Field(
        None, description="Correct option texts, or the reference answer of a free-text question"
    )
    explanation: Optional[str] = None


class SubmissionResponse(BaseModel):
    """Outcome of a recorded (or replayed) submission"""

    submission_id: UUID
    task_id: UUID
    attempt: int
    score: int = Field(..., ge=0, le=100)
    passed: bool
    correct_count: int
    question_count: int
    submitted_at: datetime
    time_spent_seconds: int
    duplicate: bool = Field(
        default=False, description="True when an earlier identical submission was returned"
    )
    per_question: List[QuestionResultResponse] = Field(default_factory=list)


class SubmissionSummary(BaseModel):
    submission_id: UUID
    attempt: int
    score: int
    passed: bool
    submitted_at: datetime
    time_spent_seconds: int
    authoritative: bool
