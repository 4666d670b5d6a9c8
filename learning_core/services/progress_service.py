"""
Progress Service - rolls learner results up into enrollment progress.

Architecture:
    - CourseRepository: loads the content tree the units are counted from
    - SubmissionRepository: authoritative (latest) attempt per task
    - LessonCompletionRepository: explicit marks for task-less sessions
    - EnrollmentRepository: monotonic progress and one-way certificate writes
    - ProgressAggregator: recompute, enrollment lifecycle and breakdown views

A unit is a Task of an active sprint/session, or an active Session without
Tasks (a lesson). progress = floor(100 * completed units / all units) and a
course without units stays at 0, never completed.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from learning_core.clients.redis_client import RedisClient
from learning_core.config import Settings
from learning_core.model.enums import CompletionStatus
from learning_core.model.progress_models import Enrollment
from learning_core.repositories.course_repo import CourseRepository
from learning_core.repositories.enrollment_repo import EnrollmentRepository, LessonCompletionRepository
from learning_core.repositories.submission_repo import SubmissionRepository
from learning_core.schemas.hierarchy import CourseSnapshot
from learning_core.schemas.progress import (
    CertificateResponse,
    CourseProgressResponse,
    EnrollmentResponse,
    SessionProgress,
    SprintProgress,
    TaskProgress,
)
from learning_core.services.hierarchy_service import build_course_snapshot
from learning_core.utils.exceptions import (
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from learning_core.utils.service_utils import progress_lock, utcnow

logger = logging.getLogger(__name__)


def progress_percent(done: int, total: int) -> int:
    """floor(100 * done / total); an empty course is 0."""
    if total <= 0:
        return 0
    return min(100, (100 * done) // total)


@dataclass(frozen=True)
class CourseUnits:
    """Gradable units of a course tree."""
    task_ids: tuple[UUID, ...]
    lesson_ids: tuple[UUID, ...]

    @classmethod
    def from_snapshot(cls, tree: CourseSnapshot) -> "CourseUnits":
        task_ids, lesson_ids = [], []
        for sprint in tree.sprints:
            for session in sprint.sessions:
                if session.tasks:
                    task_ids.extend(task.id for task in session.tasks)
                else:
                    lesson_ids.append(session.id)
        return cls(task_ids=tuple(task_ids), lesson_ids=tuple(lesson_ids))

    @property
    def total(self) -> int:
        return len(self.task_ids) + len(self.lesson_ids)


class ProgressAggregator:
    """
    Service for enrollment progress and certificates.

    Recompute is a deterministic function of stored submissions and lesson
    marks; the stored value only moves forward, so concurrent recomputes are safe.
    """

    def __init__(
            self,
            course_repository: CourseRepository,
            enrollment_repository: EnrollmentRepository,
            lesson_completion_repository: LessonCompletionRepository,
            submission_repository: SubmissionRepository,
            settings: Settings,
            redis_client: Optional[RedisClient] = None,
    ):
        self._course_repository = course_repository
        self._enrollment_repository = enrollment_repository
        self._lesson_completion_repository = lesson_completion_repository
        self._submission_repository = submission_repository
        self._settings = settings
        self._redis_client = redis_client

    async def _get_enrollment(self, learner_id: str, course_id: UUID) -> Enrollment:
        enrollment = await self._enrollment_repository.get_enrollment(learner_id, course_id)
        if not enrollment:
            raise ResourceNotFoundException(f"Learner {learner_id} is not enrolled in course {course_id}")
        return enrollment

    async def _load_tree(self, course_id: UUID) -> CourseSnapshot:
        course = await self._course_repository.get_course_tree(course_id)
        if not course:
            raise ResourceNotFoundException(f"Course not found with ID: {course_id}")
        return build_course_snapshot(course, include_inactive=False)

    # =============================
    #   Recompute
    # =============================
    async def recompute_enrollment_progress(self, learner_id: str, course_id: UUID) -> EnrollmentResponse:
        """
        Recompute and store a learner's progress in a course.

        Args:
            learner_id: Learner identifier
            course_id: UUID of the course

        Returns:
            The stored enrollment after the recompute

        Raises:
            ResourceNotFoundException: Learner not enrolled or course missing
            TransientException: Storage or lock service unavailable
        """
        async with progress_lock(
                self._redis_client,
                learner_id,
                course_id,
                timeout=self._settings.progress_lock_ttl,
                wait=self._settings.progress_lock_wait,
        ):
            enrollment = await self._get_enrollment(learner_id, course_id)
            units = CourseUnits.from_snapshot(await self._load_tree(course_id))

            latest = await self._submission_repository.get_latest_by_tasks(learner_id, units.task_ids)
            passed_tasks = {task_id for task_id in units.task_ids if task_id in latest and latest[task_id].passed}
            marked = await self._lesson_completion_repository.list_completed_session_ids(learner_id, course_id)
            done_lessons = {session_id for session_id in units.lesson_ids if session_id in marked}

            computed = progress_percent(len(passed_tasks) + len(done_lessons), units.total)
            progress = max(computed, enrollment.progress or 0)
            status = CompletionStatus.from_progress(progress)

            completed_task_ids = sorted(set(enrollment.completed_task_ids or []) | {str(t) for t in passed_tasks})
            completed_lesson_ids = sorted(
                set(enrollment.completed_lesson_ids or []) | {str(s) for s in done_lessons}
            )

            now = utcnow()
            written = await self._enrollment_repository.advance_progress(
                enrollment.id,
                progress=progress,
                status=status,
                completed_task_ids=completed_task_ids,
                completed_lesson_ids=completed_lesson_ids,
                recomputed_at=now,
            )
            if status == CompletionStatus.COMPLETED:
                await self._enrollment_repository.mark_completed(enrollment.id, now)
            await self._enrollment_repository.commit()

        if not written:
            logger.info(f"Kept higher stored progress for {learner_id} in course {course_id}")
        logger.debug(
            f"Recomputed progress for {learner_id} in course {course_id}: "
            f"{progress}% ({len(passed_tasks)} tasks, {len(done_lessons)} lessons of {units.total} units)"
        )
        return EnrollmentResponse.from_model(await self._get_enrollment(learner_id, course_id))

    # =============================
    #   Certificates
    # =============================
    async def issue_certificate(self, learner_id: str, course_id: UUID) -> CertificateResponse:
        """
        Issue the course certificate once the enrollment is completed.

        Concurrent calls issue exactly one certificate; later calls return it.

        Raises:
            ResourceNotFoundException: Learner not enrolled
            ValidationException: Course not completed yet
        """
        enrollment = await self._get_enrollment(learner_id, course_id)
        if enrollment.certificate_issued:
            return CertificateResponse(
                certificate_id=enrollment.certificate_id,
                issued_at=enrollment.issued_at,
                newly_issued=False,
            )
        if enrollment.completion_status != CompletionStatus.COMPLETED:
            raise ValidationException(
                f"Course {course_id} is not completed yet ({enrollment.progress}% done)"
            )

        certificate_id = f"CERT-{secrets.token_hex(8).upper()}"
        issued = await self._enrollment_repository.mark_certificate_issued(
            enrollment.id, certificate_id, utcnow()
        )
        await self._enrollment_repository.commit()

        enrollment = await self._get_enrollment(learner_id, course_id)
        if issued:
            logger.info(f"Issued certificate {certificate_id} to {learner_id} for course {course_id}")
        return CertificateResponse(
            certificate_id=enrollment.certificate_id,
            issued_at=enrollment.issued_at,
            newly_issued=issued,
        )

    # =============================
    #   Enrollment lifecycle
    # =============================
    async def enroll(self, learner_id: str, course_id: UUID) -> EnrollmentResponse:
        """
        Enroll a learner in a published course; enrolling twice returns the existing record.
        """
        course = await self._course_repository.get_by_id(course_id)
        if not course:
            raise ResourceNotFoundException(f"Course not found with ID: {course_id}")
        if not course.is_published:
            raise ValidationException(f"Course {course_id} is not open for enrollment")

        existing = await self._enrollment_repository.get_enrollment(learner_id, course_id)
        if existing:
            return EnrollmentResponse.from_model(existing)

        try:
            await self._enrollment_repository.create(
                {
                    "learner_id": learner_id,
                    "course_id": course_id,
                    "progress": 0,
                    "completion_status": CompletionStatus.NOT_STARTED,
                    "completed_task_ids": [],
                    "completed_lesson_ids": [],
                }
            )
            await self._enrollment_repository.commit()
            logger.info(f"Enrolled {learner_id} in course {course_id}")
        except ConflictException:
            # A concurrent enroll won the race
            return EnrollmentResponse.from_model(await self._get_enrollment(learner_id, course_id))

        # Submissions from an earlier enrollment still count
        return await self.recompute_enrollment_progress(learner_id, course_id)

    async def withdraw(self, learner_id: str, course_id: UUID) -> None:
        """
        Remove an enrollment with its lesson marks; submissions are kept for audit.
        """
        enrollment = await self._get_enrollment(learner_id, course_id)
        await self._lesson_completion_repository.delete_for_course(learner_id, course_id)
        await self._enrollment_repository.delete_enrollment(enrollment)
        await self._enrollment_repository.commit()
        logger.info(f"Withdrew {learner_id} from course {course_id}")

    async def list_enrollments(self, learner_id: str) -> List[EnrollmentResponse]:
        enrollments = await self._enrollment_repository.list_by_learner(learner_id)
        return [EnrollmentResponse.from_model(enrollment) for enrollment in enrollments]

    async def mark_lesson_complete(self, learner_id: str, course_id: UUID, session_id: UUID) -> EnrollmentResponse:
        """
        Mark a task-less session done and recompute progress. Idempotent.

        Raises:
            ResourceNotFoundException: Not enrolled, or session not an active part of the course
            ValidationException: Session has tasks (those complete through submissions)
        """
        await self._get_enrollment(learner_id, course_id)
        tree = await self._load_tree(course_id)
        units = CourseUnits.from_snapshot(tree)
        graded_sessions = {s.id for sprint in tree.sprints for s in sprint.sessions if s.tasks}
        if session_id in graded_sessions:
            raise ValidationException(
                f"Session {session_id} has tasks; it completes when its tasks are passed"
            )
        if session_id not in units.lesson_ids:
            raise ResourceNotFoundException(f"Session {session_id} not found in course {course_id}")

        if not await self._lesson_completion_repository.get_completion(learner_id, session_id):
            try:
                await self._lesson_completion_repository.create(
                    {
                        "learner_id": learner_id,
                        "course_id": course_id,
                        "session_id": session_id,
                        "completed_at": utcnow(),
                    }
                )
                await self._lesson_completion_repository.commit()
                logger.info(f"{learner_id} completed lesson {session_id} of course {course_id}")
            except ConflictException:
                logger.debug(f"Lesson {session_id} already marked for {learner_id}")

        return await self.recompute_enrollment_progress(learner_id, course_id)

    # =============================
    #   Breakdown
    # =============================
    async def get_course_progress(self, learner_id: str, course_id: UUID) -> CourseProgressResponse:
        """
        Stored enrollment plus a live per-sprint/per-session breakdown.

        Within a sprint the first task of the first session is open, each later
        task opens once the previous one is complete, and a session opens once
        the previous session is complete.
        """
        enrollment = await self._get_enrollment(learner_id, course_id)
        tree = await self._load_tree(course_id)
        units = CourseUnits.from_snapshot(tree)

        latest = await self._submission_repository.get_latest_by_tasks(learner_id, units.task_ids)
        marked = await self._lesson_completion_repository.list_completed_session_ids(learner_id, course_id)

        sprints = []
        course_done = 0
        for sprint in tree.sprints:
            sessions = []
            sprint_done = sprint_total = 0
            previous_complete = True
            for session in sprint.sessions:
                session_unlocked = previous_complete
                if session.tasks:
                    tasks = []
                    previous_task_complete = session_unlocked
                    for task in session.tasks:
                        submission = latest.get(task.id)
                        completed = bool(submission and submission.passed)
                        tasks.append(
                            TaskProgress(
                                task_id=task.id,
                                title=task.title,
                                completed=completed,
                                unlocked=previous_task_complete,
                                latest_score=submission.score if submission else None,
                            )
                        )
                        previous_task_complete = completed
                    done = sum(1 for t in tasks if t.completed)
                    total = len(tasks)
                    session_complete = done == total
                else:
                    tasks = []
                    done = 1 if session.id in marked else 0
                    total = 1
                    session_complete = bool(done)

                sessions.append(
                    SessionProgress(
                        session_id=session.id,
                        name=session.name,
                        is_lesson=not session.tasks,
                        completed=session_complete,
                        unlocked=session_unlocked,
                        progress=progress_percent(done, total),
                        tasks=tasks,
                    )
                )
                sprint_done += done
                sprint_total += total
                previous_complete = session_complete

            sprint_progress = progress_percent(sprint_done, sprint_total)
            sprints.append(
                SprintProgress(
                    sprint_id=sprint.id,
                    name=sprint.name,
                    status=CompletionStatus.from_progress(sprint_progress) if sprint_total else CompletionStatus.NOT_STARTED,
                    progress=sprint_progress,
                    completed_units=sprint_done,
                    total_units=sprint_total,
                    sessions=sessions,
                )
            )
            course_done += sprint_done

        return CourseProgressResponse(
            enrollment=EnrollmentResponse.from_model(enrollment),
            completed_units=course_done,
            total_units=units.total,
            sprints=sprints,
        )
