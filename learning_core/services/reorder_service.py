import logging
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from learning_core.clients.redis_client import RedisClient
from learning_core.config import Settings
from learning_core.model.enums import HierarchyKind
from learning_core.repositories.course_repo import CourseRepository
from learning_core.repositories.ordered_repo import OrderedRepository
from learning_core.repositories.sprint_repo import SprintRepository, SessionRepository
from learning_core.repositories.task_repo import TaskRepository, QuestionRepository
from learning_core.schemas.hierarchy import ReorderResult
from learning_core.utils.exceptions import (
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from learning_core.utils.service_utils import parent_lock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposedOrdering:
    """A client's complete proposed order for one parent's children."""
    kind: HierarchyKind
    parent_id: UUID
    ordered_ids: tuple[UUID, ...]

    @classmethod
    def of(cls, kind: HierarchyKind, parent_id: UUID, ordered_ids: Sequence[UUID]) -> "ProposedOrdering":
        ordering = cls(kind=HierarchyKind(kind), parent_id=parent_id, ordered_ids=tuple(ordered_ids))
        duplicates = {i for i in ordering.ordered_ids if ordering.ordered_ids.count(i) > 1}
        if duplicates:
            raise ValidationException(
                f"Duplicate ids in proposed order: {', '.join(sorted(str(i) for i in duplicates))}"
            )
        return ordering


class ReorderService:
    """
    Applies a proposed ordering of sprints, sessions, tasks or questions.

    The proposal must name exactly the parent's current live children; any
    difference means the client worked from a stale view and nothing is written.
    """

    def __init__(
            self,
            course_repository: CourseRepository,
            sprint_repository: SprintRepository,
            session_repository: SessionRepository,
            task_repository: TaskRepository,
            question_repository: QuestionRepository,
            settings: Settings,
            redis_client: RedisClient | None = None,
    ):
        self._settings = settings
        self._redis_client = redis_client
        # kind -> (repository holding the parent, repository holding the children)
        self._levels: dict[HierarchyKind, tuple] = {
            HierarchyKind.SPRINTS: (course_repository, sprint_repository),
            HierarchyKind.SESSIONS: (sprint_repository, session_repository),
            HierarchyKind.TASKS: (session_repository, task_repository),
            HierarchyKind.QUESTIONS: (task_repository, question_repository),
        }

    async def reorder(
            self,
            kind: HierarchyKind,
            parent_id: UUID,
            ordered_ids: Sequence[UUID],
    ) -> ReorderResult:
        """
        Reorder the children of one parent.

        Args:
            kind: Level being reordered
            parent_id: Owner of the children
            ordered_ids: Every live child id, in the desired order

        Returns:
            ReorderResult mapping child id -> new rank (1-based)

        Raises:
            ResourceNotFoundException: Parent does not exist
            ValidationException: Duplicate ids in the proposal
            ConflictException: Proposal does not match the stored children
        """
        proposal = ProposedOrdering.of(kind, parent_id, ordered_ids)
        parent_repository, child_repository = self._levels[proposal.kind]
        child_repository: OrderedRepository

        async with parent_lock(
                self._redis_client, proposal.kind.value, parent_id, self._settings.hierarchy_lock_ttl
        ):
            parent = await parent_repository.get_by_id(parent_id, for_update=True)
            if not parent:
                raise ResourceNotFoundException(
                    f"Parent of {proposal.kind.value} not found with ID: {parent_id}"
                )

            children = await child_repository.list_children(parent_id)
            by_id = {child.id: child for child in children}

            missing = set(by_id) - set(proposal.ordered_ids)
            unknown = set(proposal.ordered_ids) - set(by_id)
            if missing or unknown:
                logger.info(
                    f"Rejected stale reorder of {proposal.kind.value} under {parent_id}: "
                    f"{len(missing)} missing, {len(unknown)} unknown"
                )
                raise ConflictException(
                    f"The {proposal.kind.value} of {parent_id} changed since they were loaded. "
                    "Refresh and retry."
                )

            await child_repository.apply_ranks([by_id[child_id] for child_id in proposal.ordered_ids])
            await child_repository.commit()

        logger.info(f"Reordered {len(proposal.ordered_ids)} {proposal.kind.value} under {parent_id}")
        return ReorderResult(
            kind=proposal.kind,
            parent_id=parent_id,
            orders={child_id: index + 1 for index, child_id in enumerate(proposal.ordered_ids)},
        )
