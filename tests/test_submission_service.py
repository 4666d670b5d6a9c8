from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from conftest import QUIZ_ANSWERS, SHORT_ANSWERS
from learning_core.model.progress_models import Submission
from learning_core.schemas.hierarchy import QuestionUpdateRequest
from learning_core.utils.exceptions import (
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from learning_core.utils.service_utils import utcnow

LEARNER = "learner-1"


async def _count_submissions(db_session, task_id) -> int:
    result = await db_session.execute(select(func.count(Submission.id)).where(Submission.task_id == task_id))
    return result.scalar()


async def test_records_scored_attempt(submission_recorder, course_tree):
    result = await submission_recorder.record_submission(
        course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, time_spent_seconds=42, session_id=course_tree.graded.id
    )

    assert result.attempt == 1
    assert result.score == 100
    assert result.passed is True
    assert result.duplicate is False
    assert result.question_count == 2
    assert result.time_spent_seconds == 42
    assert [q.correct for q in result.per_question] == [True, True]


async def test_failed_attempt_reports_per_question(submission_recorder, course_tree):
    result = await submission_recorder.record_submission(
        course_tree.quiz.id, LEARNER, {"0": ["int"], "1": "True"}
    )

    assert result.score == 50
    assert result.passed is False
    assert [q.correct for q in result.per_question] == [False, True]


async def test_same_token_is_replayed_not_recorded(submission_recorder, db_session, course_tree):
    first = await submission_recorder.record_submission(
        course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, request_token="req-1"
    )
    retry = await submission_recorder.record_submission(
        course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, request_token="req-1"
    )

    assert retry.duplicate is True
    assert retry.submission_id == first.submission_id
    assert retry.attempt == 1
    assert await _count_submissions(db_session, course_tree.quiz.id) == 1


async def test_identical_answers_inside_window_are_deduplicated(submission_recorder, db_session, course_tree):
    first = await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    again = await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, dict(QUIZ_ANSWERS))

    assert again.duplicate is True
    assert again.submission_id == first.submission_id
    assert await _count_submissions(db_session, course_tree.quiz.id) == 1


async def test_identical_answers_after_window_are_a_new_attempt(submission_recorder, db_session, course_tree):
    first = await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    await db_session.execute(
        update(Submission)
        .where(Submission.id == first.submission_id)
        .values(submitted_at=utcnow() - timedelta(minutes=5))
    )
    await db_session.commit()

    second = await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)

    assert second.duplicate is False
    assert second.attempt == 2


async def test_latest_attempt_is_authoritative(submission_recorder, course_tree):
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, {"0": ["str"]})

    latest = await submission_recorder.get_authoritative_submission(course_tree.quiz.id, LEARNER)
    attempts = await submission_recorder.list_submissions(course_tree.quiz.id, LEARNER)

    assert latest.attempt == 2
    assert latest.passed is False
    assert [(a.attempt, a.authoritative) for a in attempts] == [(2, True), (1, False)]


async def test_learners_are_numbered_independently(submission_recorder, course_tree):
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)
    other = await submission_recorder.record_submission(course_tree.quiz.id, "learner-2", QUIZ_ANSWERS)

    assert other.attempt == 1
    assert other.duplicate is False


async def test_token_reuse_on_another_task_conflicts(submission_recorder, course_tree):
    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, request_token="tok")

    with pytest.raises(ConflictException):
        await submission_recorder.record_submission(
            course_tree.short.id, LEARNER, SHORT_ANSWERS, request_token="tok"
        )


async def test_request_validation(submission_recorder, course_tree):
    with pytest.raises(ResourceNotFoundException):
        await submission_recorder.record_submission(uuid4(), LEARNER, {})
    with pytest.raises(ValidationException):
        await submission_recorder.record_submission(
            course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, session_id=course_tree.lesson.id
        )
    with pytest.raises(ValidationException):
        await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS, time_spent_seconds=-1)
    with pytest.raises(ResourceNotFoundException):
        await submission_recorder.get_authoritative_submission(course_tree.quiz.id, LEARNER)


async def test_score_survives_later_question_edits(submission_recorder, hierarchy_service, course_tree):
    original = await submission_recorder.record_submission(course_tree.short.id, LEARNER, SHORT_ANSWERS)
    question_id = course_tree.short.questions[0].id

    await hierarchy_service.update_question(question_id, QuestionUpdateRequest(correct_answer="Lyon"))
    replayed = await submission_recorder.get_authoritative_submission(course_tree.short.id, LEARNER)

    assert original.passed is True
    assert replayed.score == 100
    assert replayed.per_question[0].correct is True

    # New attempts are scored against the edited question
    new_attempt = await submission_recorder.record_submission(course_tree.short.id, LEARNER, {"0": "Paris!"})
    assert new_attempt.score == 0


async def test_submission_updates_enrolled_progress(submission_recorder, progress_aggregator, course_tree):
    await progress_aggregator.enroll(LEARNER, course_tree.course.id)

    await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, QUIZ_ANSWERS)

    progress = await progress_aggregator.get_course_progress(LEARNER, course_tree.course.id)
    # 3 units: two tasks and one lesson
    assert progress.enrollment.progress == 33
    assert progress.enrollment.completed_task_ids == [str(course_tree.quiz.id)]


async def test_unenrolled_learner_can_still_submit(submission_recorder, course_tree):
    result = await submission_recorder.record_submission(course_tree.quiz.id, "visitor", QUIZ_ANSWERS)

    assert result.passed is True


async def test_result_carries_answers_and_explanations_for_review(
        submission_recorder, hierarchy_service, course_tree
):
    mc_id, tf_id = [q.id for q in course_tree.quiz.questions]
    await hierarchy_service.update_question(mc_id, QuestionUpdateRequest(explanation="str is text"))
    await hierarchy_service.update_question(tf_id, QuestionUpdateRequest(explanation="Types are checked at runtime"))

    result = await submission_recorder.record_submission(course_tree.quiz.id, LEARNER, {"0": ["int"], "1": "True"})

    assert [q.correct_answer for q in result.per_question] == [["float", "int"], ["True"]]
    assert [q.explanation for q in result.per_question] == ["str is text", "Types are checked at runtime"]


async def test_review_comes_from_the_snapshot_taken_at_submit(submission_recorder, hierarchy_service, course_tree):
    question_id = course_tree.short.questions[0].id
    await hierarchy_service.update_question(question_id, QuestionUpdateRequest(explanation="Paris since 508"))
    await submission_recorder.record_submission(course_tree.short.id, LEARNER, {"0": "Lyon"})

    await hierarchy_service.update_question(
        question_id, QuestionUpdateRequest(correct_answer="Lyon", explanation="Edited later")
    )
    replayed = await submission_recorder.get_authoritative_submission(course_tree.short.id, LEARNER)

    assert replayed.per_question[0].correct is False
    assert replayed.per_question[0].correct_answer == "Paris"
    assert replayed.per_question[0].explanation == "Paris since 508"
