"""
Task Controller - REST API endpoints for tasks, their questions and submissions
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header

from learning_core.dependencies.auth import require
from learning_core.dependencies.services import (
    get_hierarchy_service,
    get_reorder_service,
    get_submission_recorder,
)
from learning_core.model.enums import HierarchyKind
from learning_core.schemas.generic import ApiResponse
from learning_core.schemas.hierarchy import (
    QuestionPayload,
    QuestionSnapshot,
    QuestionUpdateRequest,
    ReorderRequest,
    ReorderResult,
    TaskCreateRequest,
    TaskSnapshot,
    TaskUpdateRequest,
)
from learning_core.schemas.submission import SubmitTaskRequest, SubmissionResponse, SubmissionSummary
from learning_core.services.access_service import Capability, is_staff
from learning_core.services.auth_service import Identity
from learning_core.services.hierarchy_service import HierarchyService
from learning_core.services.reorder_service import ReorderService
from learning_core.services.submission_service import SubmissionRecorder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


# =============================
#   Tasks
# =============================
@router.get(
    "/session/{session_id}",
    response_model=ApiResponse[List[TaskSnapshot]],
    summary="List Tasks of a Session",
    description="Learners receive questions without correct answers.",
)
async def list_tasks(
        session_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[List[TaskSnapshot]]:
    tasks = await hierarchy_service.list_tasks(session_id)
    if not is_staff(identity):
        tasks = [task.redacted() for task in tasks]
    return ApiResponse[List[TaskSnapshot]].success(data=tasks)


@router.post("", response_model=ApiResponse[TaskSnapshot], status_code=201, summary="Create Task")
async def create_task(
        request: TaskCreateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[TaskSnapshot]:
    """
    Append a task to a session, optionally with its questions.

    - **questions**: validated all together; nothing is written if one is invalid
    """
    task = await hierarchy_service.create_task(request)
    return ApiResponse[TaskSnapshot].success(data=task, message="Task created successfully")


@router.put("/reorder", response_model=ApiResponse[ReorderResult], summary="Reorder Tasks")
async def reorder_tasks(
        request: ReorderRequest,
        reorder_service: ReorderService = Depends(get_reorder_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[ReorderResult]:
    result = await reorder_service.reorder(HierarchyKind.TASKS, request.parent_id, request.ordered_ids)
    return ApiResponse[ReorderResult].success(data=result, message="Tasks reordered successfully")


@router.get("/{task_id}", response_model=ApiResponse[TaskSnapshot], summary="Get Task")
async def get_task(
        task_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.READ_CONTENT)),
) -> ApiResponse[TaskSnapshot]:
    task = await hierarchy_service.get_task(task_id)
    if not is_staff(identity):
        task = task.redacted()
    return ApiResponse[TaskSnapshot].success(data=task)


@router.put("/{task_id}", response_model=ApiResponse[TaskSnapshot], summary="Update Task")
async def update_task(
        task_id: UUID,
        request: TaskUpdateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[TaskSnapshot]:
    task = await hierarchy_service.update_task(task_id, request)
    return ApiResponse[TaskSnapshot].success(data=task, message="Task updated successfully")


@router.delete("/{task_id}", response_model=ApiResponse[None], summary="Delete Task")
async def delete_task(
        task_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[None]:
    logger.info(f"User {identity.user_id} deleting task {task_id}")
    await hierarchy_service.delete_task(task_id)
    return ApiResponse[None].success(message="Task deleted successfully")


# =============================
#   Questions
# =============================
@router.post(
    "/{task_id}/questions",
    response_model=ApiResponse[QuestionSnapshot],
    status_code=201,
    summary="Add Question",
)
async def create_question(
        task_id: UUID,
        request: QuestionPayload,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[QuestionSnapshot]:
    question = await hierarchy_service.create_question(task_id, request)
    return ApiResponse[QuestionSnapshot].success(data=question, message="Question added successfully")


@router.put("/questions/reorder", response_model=ApiResponse[ReorderResult], summary="Reorder Questions")
async def reorder_questions(
        request: ReorderRequest,
        reorder_service: ReorderService = Depends(get_reorder_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[ReorderResult]:
    result = await reorder_service.reorder(HierarchyKind.QUESTIONS, request.parent_id, request.ordered_ids)
    return ApiResponse[ReorderResult].success(data=result, message="Questions reordered successfully")


@router.patch("/questions/{question_id}", response_model=ApiResponse[QuestionSnapshot], summary="Update Question")
async def update_question(
        question_id: UUID,
        request: QuestionUpdateRequest,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[QuestionSnapshot]:
    question = await hierarchy_service.update_question(question_id, request)
    return ApiResponse[QuestionSnapshot].success(data=question, message="Question updated successfully")


@router.delete("/questions/{question_id}", response_model=ApiResponse[None], summary="Delete Question")
async def delete_question(
        question_id: UUID,
        hierarchy_service: HierarchyService = Depends(get_hierarchy_service),
        identity: Identity = Depends(require(Capability.MANAGE_CONTENT)),
) -> ApiResponse[None]:
    await hierarchy_service.delete_question(question_id)
    return ApiResponse[None].success(message="Question deleted successfully")


# =============================
#   Submissions
# =============================
@router.post(
    "/{task_id}/submit",
    response_model=ApiResponse[SubmissionResponse],
    summary="Submit Task Answers",
    description="Score and record an attempt. Retries with the same token return the first result.",
)
async def submit_task(
        task_id: UUID,
        request: SubmitTaskRequest,
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=128),
        submission_recorder: SubmissionRecorder = Depends(get_submission_recorder),
        identity: Identity = Depends(require(Capability.SUBMIT_TASK)),
) -> ApiResponse[SubmissionResponse]:
    """
    Submit answers for a task.

    - **answers**: question index -> selected option text(s) or free text, or a list in question order
    - **time_spent_seconds**: time spent on the attempt
    - **request_token** (or `Idempotency-Key` header): makes retries safe

    Raises:
        - 400 Bad Request: Session does not own the task
        - 404 Not Found: Task does not exist
    """
    logger.info(f"User {identity.user_id} submitting task {task_id}")
    result = await submission_recorder.record_submission(
        task_id=task_id,
        learner_id=identity.user_id,
        answers=request.answers,
        time_spent_seconds=request.time_spent_seconds,
        session_id=request.session_id,
        request_token=request.request_token or idempotency_key,
    )
    message = "Submission already recorded" if result.duplicate else "Submission recorded successfully"
    return ApiResponse[SubmissionResponse].success(data=result, message=message)


@router.get(
    "/{task_id}/submissions",
    response_model=ApiResponse[List[SubmissionSummary]],
    summary="List My Attempts",
)
async def list_submissions(
        task_id: UUID,
        submission_recorder: SubmissionRecorder = Depends(get_submission_recorder),
        identity: Identity = Depends(require(Capability.READ_PROGRESS)),
) -> ApiResponse[List[SubmissionSummary]]:
    attempts = await submission_recorder.list_submissions(task_id, identity.user_id)
    return ApiResponse[List[SubmissionSummary]].success(data=attempts)


@router.get(
    "/{task_id}/submissions/latest",
    response_model=ApiResponse[SubmissionResponse],
    summary="Get My Authoritative Attempt",
)
async def get_latest_submission(
        task_id: UUID,
        submission_recorder: SubmissionRecorder = Depends(get_submission_recorder),
        identity: Identity = Depends(require(Capability.READ_PROGRESS)),
) -> ApiResponse[SubmissionResponse]:
    result = await submission_recorder.get_authoritative_submission(task_id, identity.user_id)
    return ApiResponse[SubmissionResponse].success(data=result)
