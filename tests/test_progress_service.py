import asyncio

import pytest

from conftest import QUIZ_ANSWERS, SHORT_ANSWERS, short_answer, sprint_request
from learning_core.model.enums import CompletionStatus
from learning_core.repositories import (
    CourseRepository,
    EnrollmentRepository,
    LessonCompletionRepository,
    SubmissionRepository,
)
from learning_core.schemas.hierarchy import (
    CourseCreateRequest,
    CourseUpdateRequest,
    SessionCreateRequest,
    TaskCreateRequest,
)
from learning_core.services.progress_service import ProgressAggregator, progress_percent
from learning_core.utils.exceptions import ResourceNotFoundException, ValidationException
from learning_core.utils.service_utils import utcnow

LEARNER = "learner-1"


async def _complete_course(submission_recorder, progress_aggregator, tree):
    await submission_recorder.record_submission(tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    await submission_recorder.record_submission(tree.short.id, LEARNER, SHORT_ANSWERS)
    return await progress_aggregator.mark_lesson_complete(LEARNER, tree.course.id, tree.lesson.id)


def test_progress_is_floored_and_empty_is_zero():
    assert progress_percent(1, 3) == 33
    assert progress_percent(2, 3) == 66
    assert progress_percent(3, 3) == 100
    assert progress_percent(0, 0) == 0


async def test_course_without_units_stays_not_started(hierarchy_service, progress_aggregator):
    course = await hierarchy_service.create_course(CourseCreateRequest(title="Empty", is_published=True))

    enrollment = await progress_aggregator.enroll(LEARNER, course.id)
    recomputed = await progress_aggregator.recompute_enrollment_progress(LEARNER, course.id)

    assert enrollment.progress == recomputed.progress == 0
    assert recomputed.completion_status == CompletionStatus.NOT_STARTED


async def test_enroll_is_idempotent_and_needs_published_course(hierarchy_service, progress_aggregator, course_tree):
    first = await progress_aggregator.enroll(LEARNER, course_tree.course.id)
    second = await progress_aggregator.enroll(LEARNER, course_tree.course.id)
    assert first.enrollment_id == second.enrollment_id

    draft = await hierarchy_service.create_course(CourseCreateRequest(title="Draft"))
    with pytest.raises(ValidationException):
        await progress_aggregator.enroll(LEARNER, draft.id)


async def test_full_completion_and_single_certificate(submission_recorder, progress_aggregator, course_tree):
    course_id = course_tree.course.id
    await progress_aggregator.enroll(LEARNER, course_id)

    completed = await _complete_course(submission_recorder, progress_aggregator, course_tree)
    assert completed.progress == 100
    assert completed.completion_status == CompletionStatus.COMPLETED
    assert completed.completed_at is not None
    assert completed.certificate_issued is False

    again = await progress_aggregator.recompute_enrollment_progress(LEARNER, course_id)
    assert again.completed_at == completed.completed_at

    first = await progress_aggregator.issue_certificate(LEARNER, course_id)
    second = await progress_aggregator.issue_certificate(LEARNER, course_id)

    assert first.newly_issued is True
    assert second.newly_issued is False
    assert second.certificate_id == first.certificate_id
    assert second.issued_at == first.issued_at


async def test_certificate_transition_is_one_way(db_session, submission_recorder, progress_aggregator, course_tree):
    await progress_aggregator.enroll(LEARNER, course_tree.course.id)
    await _complete_course(submission_recorder, progress_aggregator, course_tree)
    repository = EnrollmentRepository(db_session)
    enrollment = await repository.get_enrollment(LEARNER, course_tree.course.id)

    # Two racing issuers: only the first conditional update matches
    assert await repository.mark_certificate_issued(enrollment.id, "CERT-A", utcnow()) is True
    assert await repository.mark_certificate_issued(enrollment.id, "CERT-B", utcnow()) is False
    await repository.commit()

    stored = await repository.get_enrollment(LEARNER, course_tree.course.id)
    assert stored.certificate_id == "CERT-A"


def _aggregator(session, settings) -> ProgressAggregator:
    return ProgressAggregator(
        course_repository=CourseRepository(session),
        enrollment_repository=EnrollmentRepository(session),
        lesson_completion_repository=LessonCompletionRepository(session),
        submission_repository=SubmissionRepository(session),
        settings=settings,
    )


async def test_concurrent_issuers_produce_one_certificate(
        session_factory, settings, db_session, submission_recorder, progress_aggregator, course_tree
):
    course_id = course_tree.course.id
    await progress_aggregator.enroll(LEARNER, course_id)
    await _complete_course(submission_recorder, progress_aggregator, course_tree)

    async with session_factory() as first_session, session_factory() as second_session:
        first, second = _aggregator(first_session, settings), _aggregator(second_session, settings)

        recomputed = await asyncio.gather(
            first.recompute_enrollment_progress(LEARNER, course_id),
            second.recompute_enrollment_progress(LEARNER, course_id),
        )
        issued = await asyncio.gather(
            first.issue_certificate(LEARNER, course_id),
            second.issue_certificate(LEARNER, course_id),
        )

    assert all(e.completion_status == CompletionStatus.COMPLETED for e in recomputed)
    assert sorted(c.newly_issued for c in issued) == [False, True]
    assert issued[0].certificate_id == issued[1].certificate_id

    stored = await EnrollmentRepository(db_session).get_enrollment(LEARNER, course_id)
    assert stored.certificate_issued is True
    assert stored.certificate_id == issued[0].certificate_id


async def test_certificate_needs_completion(progress_aggregator, course_tree):
    with pytest.raises(ResourceNotFoundException):
        await progress_aggregator.issue_certificate(LEARNER, course_tree.course.id)

    await progress_aggregator.enroll(LEARNER, course_tree.course.id)
    with pytest.raises(ValidationException):
        await progress_aggregator.issue_certificate(LEARNER, course_tree.course.id)


async def test_progress_never_regresses(submission_recorder, progress_aggregator, hierarchy_service, course_tree):
    course_id = course_tree.course.id
    await progress_aggregator.enroll(LEARNER, course_id)
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    before = await progress_aggregator.recompute_enrollment_progress(LEARNER, course_id)
    assert before.progress == 33

    # A failing later attempt becomes authoritative
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, {"0": ["str"]})
    # New content grows the denominator
    await hierarchy_service.create_task(
        TaskCreateRequest(session_id=course_tree.graded.id, title="Extra", questions=[short_answer()])
    )

    after = await progress_aggregator.recompute_enrollment_progress(LEARNER, course_id)
    assert after.progress == 33
    assert after.completion_status == CompletionStatus.IN_PROGRESS
    assert after.completed_task_ids == [str(course_tree.quiz.id)]


async def test_duplicate_submission_counts_once(submission_recorder, progress_aggregator, course_tree):
    await progress_aggregator.enroll(LEARNER, course_tree.course.id)

    for _ in range(2):
        await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, request_token="t1")

    progress = await progress_aggregator.get_course_progress(LEARNER, course_tree.course.id)
    assert progress.completed_units == 1
    assert progress.enrollment.progress == 33


async def test_lesson_marks(progress_aggregator, course_tree):
    course_id = course_tree.course.id

    with pytest.raises(ResourceNotFoundException):
        await progress_aggregator.mark_lesson_complete(LEARNER, course_id, course_tree.lesson.id)

    await progress_aggregator.enroll(LEARNER, course_id)
    with pytest.raises(ValidationException):
        await progress_aggregator.mark_lesson_complete(LEARNER, course_id, course_tree.graded.id)

    first = await progress_aggregator.mark_lesson_complete(LEARNER, course_id, course_tree.lesson.id)
    second = await progress_aggregator.mark_lesson_complete(LEARNER, course_id, course_tree.lesson.id)

    assert first.progress == second.progress == 33
    assert second.completed_lesson_ids == [str(course_tree.lesson.id)]


async def test_inactive_content_is_not_counted(hierarchy_service, progress_aggregator, course_tree):
    course_id = course_tree.course.id
    inactive = await hierarchy_service.create_session(
        SessionCreateRequest(sprint_id=course_tree.sprint.id, name="Hidden", is_active=False)
    )
    await progress_aggregator.enroll(LEARNER, course_id)

    with pytest.raises(ResourceNotFoundException):
        await progress_aggregator.mark_lesson_complete(LEARNER, course_id, inactive.id)

    progress = await progress_aggregator.get_course_progress(LEARNER, course_id)
    assert progress.total_units == 3


async def test_breakdown_unlocks_sequentially(submission_recorder, progress_aggregator, course_tree):
    course_id = course_tree.course.id
    await progress_aggregator.enroll(LEARNER, course_id)

    progress = await progress_aggregator.get_course_progress(LEARNER, course_id)
    graded, lesson = progress.sprints[0].sessions
    assert [t.unlocked for t in graded.tasks] == [True, False]
    assert graded.unlocked is True
    assert lesson.is_lesson is True
    assert lesson.unlocked is False

    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    await submission_recorder.record_submission(course_tree.short.id, LEARNER, SHORT_ANSWERS)

    progress = await progress_aggregator.get_course_progress(LEARNER, course_id)
    sprint = progress.sprints[0]
    graded, lesson = sprint.sessions
    assert graded.completed is True
    assert graded.progress == 100
    assert [t.latest_score for t in graded.tasks] == [100, 100]
    assert lesson.unlocked is True
    assert lesson.completed is False
    assert (sprint.completed_units, sprint.total_units) == (2, 3)
    assert sprint.status == CompletionStatus.IN_PROGRESS


async def test_second_sprint_starts_unlocked(hierarchy_service, progress_aggregator, course_tree):
    sprint = await hierarchy_service.create_sprint(sprint_request(course_tree.course.id, "Sprint 2"))
    await hierarchy_service.create_session(SessionCreateRequest(sprint_id=sprint.id, name="Intro"))
    await progress_aggregator.enroll(LEARNER, course_tree.course.id)

    progress = await progress_aggregator.get_course_progress(LEARNER, course_tree.course.id)

    assert progress.sprints[1].sessions[0].unlocked is True
    assert progress.total_units == 4


async def test_withdraw_keeps_submissions(submission_recorder, progress_aggregator, course_tree):
    course_id = course_tree.course.id
    await progress_aggregator.enroll(LEARNER, course_id)
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    await progress_aggregator.mark_lesson_complete(LEARNER, course_id, course_tree.lesson.id)

    await progress_aggregator.withdraw(LEARNER, course_id)
    assert await progress_aggregator.list_enrollments(LEARNER) == []
    with pytest.raises(ResourceNotFoundException):
        await progress_aggregator.get_course_progress(LEARNER, course_id)

    # The passed quiz still counts, the lesson mark does not
    enrollment = await progress_aggregator.enroll(LEARNER, course_id)
    assert enrollment.progress == 33
    assert enrollment.completed_lesson_ids == []


async def test_unpublishing_does_not_touch_existing_enrollments(hierarchy_service, progress_aggregator, course_tree):
    await progress_aggregator.enroll(LEARNER, course_tree.course.id)
    await hierarchy_service.update_course(course_tree.course.id, CourseUpdateRequest(is_published=False))

    enrollments = await progress_aggregator.list_enrollments(LEARNER)

    assert [e.course_id for e in enrollments] == [course_tree.course.id]
