import os

# Settings are cached on first import; point them at SQLite before anything loads them.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "INFO"
os.environ.pop("REDIS_URL", None)

from datetime import datetime, timezone
from types import SimpleNamespace

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from learning_core.config import Settings
from learning_core.model import Base, QuestionType
from learning_core.repositories import (
    CourseRepository,
    SprintRepository,
    SessionRepository,
    TaskRepository,
    QuestionRepository,
    SubmissionRepository,
    EnrollmentRepository,
    LessonCompletionRepository,
)
from learning_core.schemas.hierarchy import (
    CourseCreateRequest,
    OptionPayload,
    QuestionPayload,
    SessionCreateRequest,
    SprintCreateRequest,
    TaskCreateRequest,
)
from learning_core.services.hierarchy_service import HierarchyService
from learning_core.services.progress_service import ProgressAggregator
from learning_core.services.reorder_service import ReorderService
from learning_core.services.submission_service import SubmissionRecorder

TEST_DATABASE_URL = "sqlite+aiosqlite://"
JWT_SECRET = "test-secret"

# Answers passing every task of the course_tree fixture
QUIZ_ANSWERS = {"0": ["int", "float"], "1": "True"}
SHORT_ANSWERS = {"0": "  paris "}


# =============================
#   Database
# =============================
@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=TEST_DATABASE_URL, redis_url=None, submission_dedup_window_seconds=10)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# =============================
#   Services
# =============================
@pytest.fixture
def hierarchy_service(db_session, settings) -> HierarchyService:
    return HierarchyService(
        course_repository=CourseRepository(db_session),
        sprint_repository=SprintRepository(db_session),
        session_repository=SessionRepository(db_session),
        task_repository=TaskRepository(db_session),
        question_repository=QuestionRepository(db_session),
        settings=settings,
    )


@pytest.fixture
def reorder_service(db_session, settings) -> ReorderService:
    return ReorderService(
        course_repository=CourseRepository(db_session),
        sprint_repository=SprintRepository(db_session),
        session_repository=SessionRepository(db_session),
        task_repository=TaskRepository(db_session),
        question_repository=QuestionRepository(db_session),
        settings=settings,
    )


@pytest.fixture
def progress_aggregator(db_session, settings) -> ProgressAggregator:
    return ProgressAggregator(
        course_repository=CourseRepository(db_session),
        enrollment_repository=EnrollmentRepository(db_session),
        lesson_completion_repository=LessonCompletionRepository(db_session),
        submission_repository=SubmissionRepository(db_session),
        settings=settings,
    )


@pytest.fixture
def submission_recorder(db_session, settings, progress_aggregator) -> SubmissionRecorder:
    return SubmissionRecorder(
        task_repository=TaskRepository(db_session),
        submission_repository=SubmissionRepository(db_session),
        progress_aggregator=progress_aggregator,
        settings=settings,
    )


# =============================
#   Content
# =============================
def sprint_request(course_id, name="Sprint 1", **overrides) -> SprintCreateRequest:
    fields = {
        "course_id": course_id,
        "name": name,
        "start_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "end_date": datetime(2024, 1, 14, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return SprintCreateRequest(**fields)


def multiple_choice(text="Which are numeric types?", options=("int", "str", "float"), correct=("int", "float")):
    return QuestionPayload(
        question_text=text,
        question_type=QuestionType.MULTIPLE_CHOICE,
        options=[OptionPayload(text=o, is_correct=o in correct) for o in options],
    )


def true_false(text="Python is dynamically typed", correct="True"):
    return QuestionPayload(question_text=text, question_type=QuestionType.TRUE_FALSE, correct_answer=correct)


def short_answer(text="Capital of France?", reference="Paris"):
    return QuestionPayload(question_text=text, question_type=QuestionType.SHORT_ANSWER, correct_answer=reference)


@pytest_asyncio.fixture
async def course_tree(hierarchy_service):
    """
    Published course with one sprint:
        Variables (graded): Quiz [multiple_choice, true_false], Short answer [short_answer]
        Reading (lesson, no tasks)
    """
    course = await hierarchy_service.create_course(
        CourseCreateRequest(title="Python Foundations", is_published=True)
    )
    sprint = await hierarchy_service.create_sprint(sprint_request(course.id))
    graded = await hierarchy_service.create_session(SessionCreateRequest(sprint_id=sprint.id, name="Variables"))
    lesson = await hierarchy_service.create_session(SessionCreateRequest(sprint_id=sprint.id, name="Reading"))
    quiz = await hierarchy_service.create_task(
        TaskCreateRequest(session_id=graded.id, title="Quiz", questions=[multiple_choice(), true_false()])
    )
    short = await hierarchy_service.create_task(
        TaskCreateRequest(session_id=graded.id, title="Short answer", questions=[short_answer()])
    )
    return SimpleNamespace(course=course, sprint=sprint, graded=graded, lesson=lesson, quiz=quiz, short=short)


# =============================
#   HTTP
# =============================
def make_token(user_id="learner-1", role="student", approved=True, active=True, status=None) -> str:
    claims = {"userId": user_id, "role": role, "isActive": active, "isApproved": approved}
    if status is not None:
        claims["accountStatus"] = status
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_headers(**claims) -> dict:
    return {"Authorization": f"Bearer {make_token(**claims)}"}


@pytest_asyncio.fixture
async def client(session_factory):
    from learning_core.dependencies.db import get_database
    from learning_core.main import app

    async def override_get_database():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_database] = override_get_database
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
        yield async_client
    app.dependency_overrides.clear()
