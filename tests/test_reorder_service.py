from uuid import uuid4

import pytest

from conftest import multiple_choice, sprint_request
from learning_core.model.enums import HierarchyKind
from learning_core.schemas.hierarchy import CourseCreateRequest
from learning_core.services.reorder_service import ProposedOrdering
from learning_core.utils.exceptions import (
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)


@pytest.fixture
async def three_sprints(hierarchy_service):
    course = await hierarchy_service.create_course(CourseCreateRequest(title="Course"))
    a, b, c = [await hierarchy_service.create_sprint(sprint_request(course.id, name)) for name in "ABC"]
    return course, a, b, c


async def _names_in_order(hierarchy_service, course_id):
    return [(s.name, s.order) for s in await hierarchy_service.list_sprints(course_id)]


async def test_reorder_assigns_index_plus_one(reorder_service, hierarchy_service, three_sprints):
    course, a, b, c = three_sprints

    result = await reorder_service.reorder(HierarchyKind.SPRINTS, course.id, [c.id, a.id, b.id])

    assert result.orders == {c.id: 1, a.id: 2, b.id: 3}
    assert await _names_in_order(hierarchy_service, course.id) == [("C", 1), ("A", 2), ("B", 3)]


@pytest.mark.parametrize("proposal", ["missing", "extra"])
async def test_stale_proposal_is_rejected_and_order_kept(reorder_service, hierarchy_service, three_sprints, proposal):
    course, a, b, c = three_sprints
    ordered = [c.id, a.id] if proposal == "missing" else [c.id, a.id, b.id, uuid4()]

    with pytest.raises(ConflictException):
        await reorder_service.reorder(HierarchyKind.SPRINTS, course.id, ordered)

    assert await _names_in_order(hierarchy_service, course.id) == [("A", 1), ("B", 2), ("C", 3)]


async def test_deleted_child_makes_old_snapshot_stale(reorder_service, hierarchy_service, three_sprints):
    course, a, b, c = three_sprints
    await hierarchy_service.delete_sprint(b.id)

    with pytest.raises(ConflictException):
        await reorder_service.reorder(HierarchyKind.SPRINTS, course.id, [c.id, b.id, a.id])

    result = await reorder_service.reorder(HierarchyKind.SPRINTS, course.id, [c.id, a.id])
    assert result.orders == {c.id: 1, a.id: 2}


async def test_duplicate_ids_are_a_validation_error(reorder_service, three_sprints):
    course, a, b, c = three_sprints

    with pytest.raises(ValidationException):
        await reorder_service.reorder(HierarchyKind.SPRINTS, course.id, [a.id, a.id, b.id, c.id])


async def test_unknown_parent_is_not_found(reorder_service):
    with pytest.raises(ResourceNotFoundException):
        await reorder_service.reorder(HierarchyKind.SESSIONS, uuid4(), [])


async def test_reorder_tasks_and_questions(reorder_service, hierarchy_service, course_tree):
    quiz, short = course_tree.quiz, course_tree.short

    await reorder_service.reorder(HierarchyKind.TASKS, course_tree.graded.id, [short.id, quiz.id])
    tasks = await hierarchy_service.list_tasks(course_tree.graded.id)
    assert [t.title for t in tasks] == ["Short answer", "Quiz"]

    await hierarchy_service.create_question(quiz.id, multiple_choice("Third?"))
    task = await hierarchy_service.get_task(quiz.id)
    first, second, third = [q.id for q in task.questions]

    result = await reorder_service.reorder(HierarchyKind.QUESTIONS, quiz.id, [third, first, second])

    assert result.orders == {third: 1, first: 2, second: 3}
    task = await hierarchy_service.get_task(quiz.id)
    assert [q.question_text for q in task.questions][0] == "Third?"


def test_proposed_ordering_is_a_value_object():
    parent = uuid4()
    ids = [uuid4(), uuid4()]

    ordering = ProposedOrdering.of("sessions", parent, ids)

    assert ordering.kind == HierarchyKind.SESSIONS
    assert ordering.ordered_ids == tuple(ids)
    assert ordering == ProposedOrdering.of(HierarchyKind.SESSIONS, parent, ids)
