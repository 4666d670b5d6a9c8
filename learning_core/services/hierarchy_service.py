"""
Hierarchy Service - commands and snapshot queries over the content tree.

Architecture:
    - CourseRepository / SprintRepository / SessionRepository /
      TaskRepository / QuestionRepository: ranked storage per parent
    - RedisClient (optional): per-parent lock around create/delete
    - HierarchyService: validation, dense ranking, cascade deletes and
      immutable snapshots for readers
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from learning_core.clients.redis_client import RedisClient
from learning_core.config import Settings
from learning_core.model.course_models import Course, Sprint, Session
from learning_core.model.enums import HierarchyKind, QuestionType
from learning_core.model.task_models import Task, Question, Option
from learning_core.repositories.course_repo import CourseRepository
from learning_core.repositories.sprint_repo import SprintRepository, SessionRepository
from learning_core.repositories.task_repo import TaskRepository, QuestionRepository
from learning_core.schemas.hierarchy import (
    CourseCreateRequest,
    CourseUpdateRequest,
    CourseSnapshot,
    SprintCreateRequest,
    SprintUpdateRequest,
    SprintSnapshot,
    SessionCreateRequest,
    SessionUpdateRequest,
    SessionSnapshot,
    TaskCreateRequest,
    TaskUpdateRequest,
    TaskSnapshot,
    QuestionPayload,
    QuestionUpdateRequest,
    QuestionSnapshot,
    OptionPayload,
)
from learning_core.utils.exceptions import ValidationException, ResourceNotFoundException
from learning_core.utils.service_utils import parent_lock, as_utc

logger = logging.getLogger(__name__)

TRUE_FALSE_OPTIONS = ("True", "False")

# Columns a PATCH may change but never clear
COURSE_NOT_NULL = ("title", "is_published", "is_free", "price")
SPRINT_NOT_NULL = ("name", "start_date", "end_date", "is_active")
SESSION_NOT_NULL = ("name", "duration", "is_active")
TASK_NOT_NULL = ("title",)
QUESTION_NOT_NULL = ("question_text", "question_type", "point")


def _reject_nulls(changes: dict, fields: Sequence[str], label: str) -> dict:
    nulled = [field for field in fields if field in changes and changes[field] is None]
    if nulled:
        raise ValidationException(f"{label} fields cannot be null: {', '.join(nulled)}")
    return changes


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationException(f"{field} is required")
    return value.strip()


def _ordered_dates(start: Optional[datetime], end: Optional[datetime]) -> tuple[datetime, datetime]:
    """Sprint dates, swapped when submitted reversed."""
    if start is None or end is None:
        raise ValidationException("Sprint start_date and end_date are required")
    start, end = as_utc(start), as_utc(end)
    if start > end:
        logger.info("Sprint dates submitted reversed, swapping start and end")
        start, end = end, start
    return start, end


def _validated_options(
        question_type: QuestionType,
        options: Sequence[OptionPayload],
        correct_answer: Optional[str],
) -> List[OptionPayload]:
    """
    Normalize and validate the options of a choice-like question.

    true_false always gets the two fixed options; the correct one comes from
    the flagged option or from correct_answer.
    """
    if question_type.is_true_false():
        flagged = {o.text.strip().casefold() for o in options if o.is_correct}
        if not flagged and correct_answer:
            flagged = {correct_answer.strip().casefold()}
        correct = [text for text in TRUE_FALSE_OPTIONS if text.casefold() in flagged]
        if len(correct) != 1 or len(flagged) != 1:
            raise ValidationException("A true_false question needs exactly one correct value: True or False")
        return [OptionPayload(text=text, is_correct=text == correct[0]) for text in TRUE_FALSE_OPTIONS]

    if not options:
        raise ValidationException(f"A {question_type.value} question needs at least one option")
    cleaned = []
    seen = set()
    for option in options:
        text = _require_text(option.text, "Option text")
        if text in seen:
            raise ValidationException(f"Duplicate option text: {text}")
        seen.add(text)
        cleaned.append(OptionPayload(text=text, is_correct=option.is_correct))
    if not any(option.is_correct for option in cleaned):
        raise ValidationException(f"A {question_type.value} question needs at least one correct option")
    return cleaned


class HierarchyService:
    """
    Service owning Course/Sprint/Session/Task/Question records and their ordering.

    Every mutation commits its own transaction; every read returns frozen
    snapshots, never live ORM rows.
    """

    def __init__(
            self,
            course_repository: CourseRepository,
            sprint_repository: SprintRepository,
            session_repository: SessionRepository,
            task_repository: TaskRepository,
            question_repository: QuestionRepository,
            settings: Settings,
            redis_client: Optional[RedisClient] = None,
    ):
        self._course_repository = course_repository
        self._sprint_repository = sprint_repository
        self._session_repository = session_repository
        self._task_repository = task_repository
        self._question_repository = question_repository
        self._settings = settings
        self._redis_client = redis_client

    def _lock(self, kind: HierarchyKind, parent_id: UUID):
        return parent_lock(self._redis_client, kind.value, parent_id, self._settings.hierarchy_lock_ttl)

    # =============================
    #   Loaders
    # =============================
    async def _get_course(self, course_id: UUID, for_update: bool = False) -> Course:
        course = await self._course_repository.get_by_id(course_id, for_update=for_update)
        if not course:
            raise ResourceNotFoundException(f"Course not found with ID: {course_id}")
        return course

    async def _get_sprint(self, sprint_id: UUID, for_update: bool = False) -> Sprint:
        sprint = await self._sprint_repository.get_by_id(sprint_id, for_update=for_update)
        if not sprint:
            raise ResourceNotFoundException(f"Sprint not found with ID: {sprint_id}")
        return sprint

    async def _get_session(self, session_id: UUID, for_update: bool = False) -> Session:
        session = await self._session_repository.get_by_id(session_id, for_update=for_update)
        if not session:
            raise ResourceNotFoundException(f"Session not found with ID: {session_id}")
        return session

    async def _get_task(self, task_id: UUID) -> Task:
        task = await self._task_repository.get_task_with_questions(task_id)
        if not task:
            raise ResourceNotFoundException(f"Task not found with ID: {task_id}")
        return task

    async def _get_question(self, question_id: UUID) -> Question:
        question = await self._question_repository.get_question_with_options(question_id)
        if not question:
            raise ResourceNotFoundException(f"Question not found with ID: {question_id}")
        return question

    # =============================
    #   Courses
    # =============================
    async def create_course(self, request: CourseCreateRequest) -> CourseSnapshot:
        course = await self._course_repository.create(
            {
                "title": _require_text(request.title, "Course title"),
                "description": request.description,
                "is_published": request.is_published,
                "is_free": request.is_free,
                "price": request.price,
            }
        )
        await self._course_repository.commit()
        logger.info(f"Created course {course.id} ({course.title})")
        return CourseSnapshot.from_model(course)

    async def update_course(self, course_id: UUID, request: CourseUpdateRequest) -> CourseSnapshot:
        course = await self._get_course(course_id)
        changes = _reject_nulls(request.model_dump(exclude_unset=True), COURSE_NOT_NULL, "Course")
        if "title" in changes:
            changes["title"] = _require_text(changes["title"], "Course title")
        await self._course_repository.update(course, changes)
        await self._course_repository.commit()
        return CourseSnapshot.from_model(course)

    async def delete_course(self, course_id: UUID) -> None:
        await self._get_course(course_id)
        await self._course_repository.cascade_soft_delete(course_id)
        await self._course_repository.commit()
        logger.info(f"Deleted course {course_id} with all of its content")

    async def get_course(self, course_id: UUID) -> CourseSnapshot:
        return CourseSnapshot.from_model(await self._get_course(course_id))

    async def list_courses(self, published_only: bool = False) -> List[CourseSnapshot]:
        courses = await self._course_repository.list_courses(published_only=published_only)
        return [CourseSnapshot.from_model(course) for course in courses]

    async def get_course_tree(self, course_id: UUID, include_inactive: bool = True) -> CourseSnapshot:
        """
        Immutable snapshot of the whole course tree in rank order.

        Args:
            course_id: UUID of the course
            include_inactive: Keep inactive sprints/sessions (staff view)
        """
        course = await self._course_repository.get_course_tree(course_id)
        if not course:
            raise ResourceNotFoundException(f"Course not found with ID: {course_id}")
        return build_course_snapshot(course, include_inactive=include_inactive)

    # =============================
    #   Sprints
    # =============================
    async def create_sprint(self, request: SprintCreateRequest) -> SprintSnapshot:
        name = _require_text(request.name, "Sprint name")
        start_date, end_date = _ordered_dates(request.start_date, request.end_date)

        async with self._lock(HierarchyKind.SPRINTS, request.course_id):
            await self._get_course(request.course_id, for_update=True)
            order = await self._sprint_repository.next_order(request.course_id)
            sprint = await self._sprint_repository.create(
                {
                    "course_id": request.course_id,
                    "name": name,
                    "description": request.description,
                    "goal": request.goal,
                    "start_date": start_date,
                    "end_date": end_date,
                    "is_active": request.is_active,
                    "order_index": order,
                }
            )
            await self._sprint_repository.commit()

        logger.info(f"Created sprint {sprint.id} at position {order} of course {request.course_id}")
        return SprintSnapshot.from_model(sprint)

    async def update_sprint(self, sprint_id: UUID, request: SprintUpdateRequest) -> SprintSnapshot:
        sprint = await self._get_sprint(sprint_id)
        changes = _reject_nulls(request.model_dump(exclude_unset=True), SPRINT_NOT_NULL, "Sprint")
        if "name" in changes:
            changes["name"] = _require_text(changes["name"], "Sprint name")
        if "start_date" in changes or "end_date" in changes:
            changes["start_date"], changes["end_date"] = _ordered_dates(
                changes.get("start_date", sprint.start_date),
                changes.get("end_date", sprint.end_date),
            )
        await self._sprint_repository.update(sprint, changes)
        await self._sprint_repository.commit()
        return SprintSnapshot.from_model(sprint)

    async def delete_sprint(self, sprint_id: UUID) -> None:
        sprint = await self._get_sprint(sprint_id)
        course_id = sprint.course_id
        async with self._lock(HierarchyKind.SPRINTS, course_id):
            await self._get_course(course_id, for_update=True)
            await self._sprint_repository.soft_delete(sprint)
            await self._sprint_repository.cascade_soft_delete_children(sprint_id)
            await self._sprint_repository.densify(course_id)
            await self._sprint_repository.commit()
        logger.info(f"Deleted sprint {sprint_id} from course {course_id}")

    async def get_sprint(self, sprint_id: UUID) -> SprintSnapshot:
        return SprintSnapshot.from_model(await self._get_sprint(sprint_id))

    async def list_sprints(self, course_id: UUID) -> List[SprintSnapshot]:
        await self._get_course(course_id)
        sprints = await self._sprint_repository.list_children(course_id)
        return [SprintSnapshot.from_model(sprint) for sprint in sprints]

    # =============================
    #   Sessions
    # =============================
    @staticmethod
    def _validated_duration(duration: Optional[int]) -> int:
        if duration is None or duration < 0:
            raise ValidationException("Session duration must be a non-negative number of minutes")
        return duration

    async def create_session(self, request: SessionCreateRequest) -> SessionSnapshot:
        name = _require_text(request.name, "Session name")
        duration = self._validated_duration(request.duration)

        async with self._lock(HierarchyKind.SESSIONS, request.sprint_id):
            await self._get_sprint(request.sprint_id, for_update=True)
            order = await self._session_repository.next_order(request.sprint_id)
            session = await self._session_repository.create(
                {
                    "sprint_id": request.sprint_id,
                    "name": name,
                    "description": request.description,
                    "duration": duration,
                    "content": request.content,
                    "video_url": request.video_url,
                    "is_active": request.is_active,
                    "order_index": order,
                }
            )
            await self._session_repository.commit()

        logger.info(f"Created session {session.id} at position {order} of sprint {request.sprint_id}")
        return SessionSnapshot.from_model(session)

    async def update_session(self, session_id: UUID, request: SessionUpdateRequest) -> SessionSnapshot:
        session = await self._get_session(session_id)
        changes = _reject_nulls(request.model_dump(exclude_unset=True), SESSION_NOT_NULL, "Session")
        if "name" in changes:
            changes["name"] = _require_text(changes["name"], "Session name")
        if "duration" in changes:
            changes["duration"] = self._validated_duration(changes["duration"])
        await self._session_repository.update(session, changes)
        await self._session_repository.commit()
        return SessionSnapshot.from_model(session)

    async def delete_session(self, session_id: UUID) -> None:
        session = await self._get_session(session_id)
        sprint_id = session.sprint_id
        async with self._lock(HierarchyKind.SESSIONS, sprint_id):
            await self._get_sprint(sprint_id, for_update=True)
            await self._session_repository.soft_delete(session)
            await self._session_repository.cascade_soft_delete_children(session_id)
            await self._session_repository.densify(sprint_id)
            await self._session_repository.commit()
        logger.info(f"Deleted session {session_id} from sprint {sprint_id}")

    async def get_session(self, session_id: UUID) -> SessionSnapshot:
        return SessionSnapshot.from_model(await self._get_session(session_id))

    async def list_sessions(self, sprint_id: UUID) -> List[SessionSnapshot]:
        await self._get_sprint(sprint_id)
        sessions = await self._session_repository.list_children(sprint_id)
        return [SessionSnapshot.from_model(session) for session in sessions]

    # =============================
    #   Tasks
    # =============================
    @staticmethod
    def _build_question(payload: QuestionPayload, task_id: UUID, order: int) -> Question:
        """Validate a question payload and turn it into an unsaved Question row."""
        text = _require_text(payload.question_text, "Question text")
        if payload.point is None or payload.point < 0:
            raise ValidationException("Question points must be zero or more")

        question = Question(
            task_id=task_id,
            question_text=text,
            question_type=payload.question_type,
            point=payload.point,
            explanation=payload.explanation,
            order_index=order,
        )
        if payload.question_type.is_choice():
            options = _validated_options(payload.question_type, payload.options, payload.correct_answer)
            question.correct_answer = None
            question.options = [
                Option(text=o.text, is_correct=o.is_correct, position=index)
                for index, o in enumerate(options)
            ]
        else:
            question.correct_answer = _require_text(
                payload.correct_answer, f"Reference answer of a {payload.question_type.value} question"
            )
            question.options = []
        return question

    async def _add_questions(self, task: Task, payloads: Sequence[QuestionPayload], first_order: int):
        for offset, payload in enumerate(payloads):
            question = self._build_question(payload, task.id, first_order + offset)
            await self._question_repository.create(question)

    async def create_task(self, request: TaskCreateRequest) -> TaskSnapshot:
        title = _require_text(request.title, "Task title")
        # Validate every question before anything is written
        for payload in request.questions:
            self._build_question(payload, request.session_id, 0)

        async with self._lock(HierarchyKind.TASKS, request.session_id):
            await self._get_session(request.session_id, for_update=True)
            order = await self._task_repository.next_order(request.session_id)
            task = await self._task_repository.create(
                {
                    "session_id": request.session_id,
                    "title": title,
                    "description": request.description,
                    "order_index": order,
                }
            )
            await self._add_questions(task, request.questions, 1)
            await self._task_repository.commit()

        logger.info(
            f"Created task {task.id} with {len(request.questions)} questions "
            f"at position {order} of session {request.session_id}"
        )
        return TaskSnapshot.from_model(await self._get_task(task.id))

    async def update_task(self, task_id: UUID, request: TaskUpdateRequest) -> TaskSnapshot:
        task = await self._get_task(task_id)
        changes = _reject_nulls(
            request.model_dump(exclude_unset=True, exclude={"questions"}), TASK_NOT_NULL, "Task"
        )
        if "title" in changes:
            changes["title"] = _require_text(changes["title"], "Task title")

        if request.questions is not None:
            for payload in request.questions:
                self._build_question(payload, task_id, 0)
            async with self._lock(HierarchyKind.QUESTIONS, task_id):
                await self._task_repository.update(task, changes)
                for question in [q for q in task.questions if not q.is_deleted]:
                    await self._question_repository.soft_delete(question)
                await self._add_questions(task, request.questions, 1)
                await self._task_repository.commit()
            logger.info(f"Replaced questions of task {task_id} ({len(request.questions)} questions)")
        else:
            await self._task_repository.update(task, changes)
            await self._task_repository.commit()

        return TaskSnapshot.from_model(await self._get_task(task_id))

    async def delete_task(self, task_id: UUID) -> None:
        task = await self._get_task(task_id)
        session_id = task.session_id
        async with self._lock(HierarchyKind.TASKS, session_id):
            await self._get_session(session_id, for_update=True)
            await self._task_repository.soft_delete(task)
            await self._task_repository.cascade_soft_delete_children(task_id)
            await self._task_repository.densify(session_id)
            await self._task_repository.commit()
        logger.info(f"Deleted task {task_id} from session {session_id}")

    async def get_task(self, task_id: UUID) -> TaskSnapshot:
        return TaskSnapshot.from_model(await self._get_task(task_id))

    async def list_tasks(self, session_id: UUID) -> List[TaskSnapshot]:
        await self._get_session(session_id)
        tasks = await self._task_repository.list_tasks_with_questions(session_id)
        return [TaskSnapshot.from_model(task) for task in tasks]

    # =============================
    #   Questions
    # =============================
    async def create_question(self, task_id: UUID, payload: QuestionPayload) -> QuestionSnapshot:
        self._build_question(payload, task_id, 0)
        async with self._lock(HierarchyKind.QUESTIONS, task_id):
            await self._get_task(task_id)
            order = await self._question_repository.next_order(task_id)
            question = await self._question_repository.create(self._build_question(payload, task_id, order))
            await self._question_repository.commit()
        logger.info(f"Added question {question.id} at position {order} of task {task_id}")
        return QuestionSnapshot.from_model(await self._get_question(question.id))

    async def update_question(self, question_id: UUID, request: QuestionUpdateRequest) -> QuestionSnapshot:
        question = await self._get_question(question_id)
        changes = _reject_nulls(request.model_dump(exclude_unset=True), QUESTION_NOT_NULL, "Question")

        merged = QuestionPayload(
            question_text=changes.get("question_text", question.question_text),
            question_type=changes.get("question_type", question.question_type),
            point=changes.get("point", question.point),
            options=request.options if request.options is not None else [
                OptionPayload(text=o.text, is_correct=o.is_correct) for o in question.options
            ],
            correct_answer=changes.get("correct_answer", question.correct_answer),
            explanation=changes.get("explanation", question.explanation),
        )
        rebuilt = self._build_question(merged, question.task_id, question.order_index)

        question.question_text = rebuilt.question_text
        question.question_type = rebuilt.question_type
        question.point = rebuilt.point
        question.explanation = rebuilt.explanation
        question.correct_answer = rebuilt.correct_answer
        question.options = [
            Option(text=o.text, is_correct=o.is_correct, position=o.position) for o in rebuilt.options
        ]
        await self._question_repository.flush()
        await self._question_repository.commit()
        return QuestionSnapshot.from_model(await self._get_question(question_id))

    async def delete_question(self, question_id: UUID) -> None:
        question = await self._get_question(question_id)
        task_id = question.task_id
        async with self._lock(HierarchyKind.QUESTIONS, task_id):
            await self._question_repository.soft_delete(question)
            await self._question_repository.densify(task_id)
            await self._question_repository.commit()
        logger.info(f"Deleted question {question_id} from task {task_id}")


def build_course_snapshot(course: Course, include_inactive: bool = True) -> CourseSnapshot:
    """Freeze a fully loaded course tree, dropping deleted (and optionally inactive) nodes."""

    def visible(node) -> bool:
        if node.is_deleted:
            return False
        return include_inactive or getattr(node, "is_active", True)

    def by_order(nodes):
        return sorted((n for n in nodes if visible(n)), key=lambda n: n.order_index or 0)

    sprints = []
    for sprint in by_order(course.sprints):
        sessions = []
        for session in by_order(sprint.sessions):
            tasks = tuple(TaskSnapshot.from_model(task) for task in by_order(session.tasks))
            sessions.append(SessionSnapshot.from_model(session, tasks=tasks))
        sprints.append(SprintSnapshot.from_model(sprint, sessions=tuple(sessions)))
    return CourseSnapshot.from_model(course, sprints=tuple(sprints))
