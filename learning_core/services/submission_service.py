"""
Submission Service - scores and records learner attempts.

Flow of record_submission:
    1. Resolve the task (questions loaded) and validate the request
    2. Replay: same request token, or identical answers inside the dedup window
    3. Score against a fresh answer-key snapshot (pure, no I/O)
    4. Insert attempt = previous + 1 and commit
    5. Recompute the learner's course progress (failures are only logged)
"""

import logging
from datetime import timedelta
from typing import Any, List, Optional
from uuid import UUID

from learning_core.config import Settings
from learning_core.model.progress_models import Submission, SUBMISSION_SCHEMA_VERSION
from learning_core.model.task_models import Task
from learning_core.repositories.submission_repo import SubmissionRepository
from learning_core.repositories.task_repo import TaskRepository
from learning_core.schemas.submission import (
    QuestionResultResponse,
    SubmissionResponse,
    SubmissionSummary,
)
from learning_core.services.progress_service import ProgressAggregator
from learning_core.services.scoring import AnswerKey, ScoreResult, normalize_answers, rescore, score
from learning_core.utils.exceptions import (
    ConflictException,
    LearningCoreException,
    ResourceNotFoundException,
    ValidationException,
)
from learning_core.utils.service_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


def _stored_answers(answers: Any) -> dict[str, Any]:
    """Answers as persisted: question index (as string) -> raw answer."""
    return {str(index): value for index, value in sorted(normalize_answers(answers).items())}


class SubmissionRecorder:
    """
    Service recording immutable task submissions.

    The highest attempt per (task, learner) is authoritative; earlier
    attempts stay for audit and are never updated.
    """

    def __init__(
            self,
            task_repository: TaskRepository,
            submission_repository: SubmissionRepository,
            progress_aggregator: ProgressAggregator,
            settings: Settings,
    ):
        self._task_repository = task_repository
        self._submission_repository = submission_repository
        self._progress_aggregator = progress_aggregator
        self._dedup_window = timedelta(seconds=settings.submission_dedup_window_seconds)

    async def _get_task(self, task_id: UUID) -> Task:
        task = await self._task_repository.get_task_with_questions(task_id)
        if not task:
            raise ResourceNotFoundException(f"Task not found with ID: {task_id}")
        return task

    async def record_submission(
            self,
            task_id: UUID,
            learner_id: str,
            answers: Any,
            time_spent_seconds: int = 0,
            session_id: Optional[UUID] = None,
            request_token: Optional[str] = None,
    ) -> SubmissionResponse:
        """
        Score and record one attempt at a task.

        Args:
            task_id: UUID of the task
            learner_id: Learner identifier
            answers: Question index -> selected option text(s) or free text
            time_spent_seconds: Time spent on the attempt
            session_id: Session the task was taken in (must own the task)
            request_token: Idempotency token of the client request

        Returns:
            SubmissionResponse; ``duplicate`` is set when an earlier record was replayed

        Raises:
            ResourceNotFoundException: Task does not exist
            ValidationException: Bad session or negative time spent
            ConflictException: Token already used for another task
        """
        if time_spent_seconds is None or time_spent_seconds < 0:
            raise ValidationException("time_spent_seconds must be zero or more")

        task = await self._get_task(task_id)
        if session_id is not None and task.session_id != session_id:
            raise ValidationException(f"Task {task_id} does not belong to session {session_id}")

        stored_answers = _stored_answers(answers)
        replay = await self._find_replay(task_id, learner_id, stored_answers, request_token)
        if replay is not None:
            logger.info(
                f"Replayed submission {replay.id} (attempt {replay.attempt}) "
                f"of {learner_id} for task {task_id}"
            )
            response = self._to_response(replay, duplicate=True)
            await self._trigger_recompute(task_id, learner_id)
            return response

        answer_key = AnswerKey.from_task(task)
        result = score(answer_key, stored_answers)
        latest = await self._submission_repository.get_latest(task_id, learner_id)
        attempt = (latest.attempt if latest else 0) + 1

        try:
            submission = await self._submission_repository.create(
                {
                    "task_id": task_id,
                    "learner_id": learner_id,
                    "attempt": attempt,
                    "answers": stored_answers,
                    "answer_key": answer_key.to_dict(),
                    "score": result.percent,
                    "passed": result.passed,
                    "correct_count": result.correct_count,
                    "question_count": result.total_count,
                    "submitted_at": utcnow(),
                    "time_spent_seconds": time_spent_seconds,
                    "request_token": request_token,
                    "schema_version": SUBMISSION_SCHEMA_VERSION,
                }
            )
            await self._submission_repository.commit()
        except ConflictException:
            # A concurrent submit claimed this attempt number or token
            replay = await self._find_replay(task_id, learner_id, stored_answers, request_token)
            if replay is None:
                raise
            logger.info(f"Concurrent duplicate submission of {learner_id} for task {task_id} collapsed")
            response = self._to_response(replay, duplicate=True)
            await self._trigger_recompute(task_id, learner_id)
            return response

        logger.info(
            f"Recorded attempt {attempt} of {learner_id} for task {task_id}: "
            f"{result.percent}% ({'passed' if result.passed else 'failed'})"
        )
        response = self._to_response(submission, result=result)
        await self._trigger_recompute(task_id, learner_id)
        return response

    async def _find_replay(
            self,
            task_id: UUID,
            learner_id: str,
            stored_answers: dict[str, Any],
            request_token: Optional[str],
    ) -> Optional[Submission]:
        """Earlier submission this request repeats, if any."""
        if request_token:
            existing = await self._submission_repository.get_by_request_token(learner_id, request_token)
            if existing and existing.task_id != task_id:
                raise ConflictException(f"Request token {request_token} was already used for another task")
            return existing

        latest = await self._submission_repository.get_latest(task_id, learner_id)
        if latest is None or latest.answers != stored_answers:
            return None
        if utcnow() - as_utc(latest.submitted_at) > self._dedup_window:
            return None
        return latest

    async def _trigger_recompute(self, task_id: UUID, learner_id: str) -> None:
        course_id = await self._task_repository.get_course_id(task_id)
        if course_id is None:
            return
        try:
            await self._progress_aggregator.recompute_enrollment_progress(learner_id, course_id)
        except ResourceNotFoundException:
            logger.debug(f"{learner_id} is not enrolled in course {course_id}, no progress to update")
        except LearningCoreException as e:
            logger.error(f"Progress recompute for {learner_id} in course {course_id} failed: {e.message}")
        except Exception as e:
            logger.exception(f"Unexpected error recomputing progress for {learner_id} in course {course_id}: {e}")

    @staticmethod
    def _to_response(
            submission: Submission,
            result: Optional[ScoreResult] = None,
            duplicate: bool = False,
    ) -> SubmissionResponse:
        if result is None:
            result = rescore(submission.answer_key, submission.answers)
        return SubmissionResponse(
            submission_id=submission.id,
            task_id=submission.task_id,
            attempt=submission.attempt,
            score=submission.score,
            passed=submission.passed,
            correct_count=submission.correct_count,
            question_count=submission.question_count,
            submitted_at=as_utc(submission.submitted_at),
            time_spent_seconds=submission.time_spent_seconds,
            duplicate=duplicate,
            per_question=[
                QuestionResultResponse(
                    index=q.index,
                    question_id=q.question_id,
                    question_type=q.question_type,
                    correct=q.correct,
                    answered=q.answered,
                    points_awarded=q.points_awarded,
                    points_possible=q.points_possible,
                    correct_answer=q.correct_answer,
                    explanation=q.explanation,
                )
                for q in result.per_question
            ],
        )

    # =============================
    #   Queries
    # =============================
    async def list_submissions(self, task_id: UUID, learner_id: str) -> List[SubmissionSummary]:
        """Every attempt of a learner at a task, newest (authoritative) first."""
        await self._get_task(task_id)
        attempts = await self._submission_repository.list_attempts(task_id, learner_id)
        return [
            SubmissionSummary(
                submission_id=submission.id,
                attempt=submission.attempt,
                score=submission.score,
                passed=submission.passed,
                submitted_at=as_utc(submission.submitted_at),
                time_spent_seconds=submission.time_spent_seconds,
                authoritative=index == 0,
            )
            for index, submission in enumerate(attempts)
        ]

    async def get_authoritative_submission(self, task_id: UUID, learner_id: str) -> SubmissionResponse:
        submission = await self._submission_repository.get_latest(task_id, learner_id)
        if not submission:
            raise ResourceNotFoundException(f"No submission of {learner_id} for task {task_id}")
        return self._to_response(submission)
