"""
Access Guard - finite-state gate evaluated before any core operation.

The caller's identity resolves to exactly one AccountState; each Capability
lists the states allowed to use it. Content management additionally needs a
staff role.
"""

import logging
from enum import Enum
from typing import Optional

from learning_core.model.enums import AccountState, UserRole
from learning_core.services.auth_service import Identity
from learning_core.utils.exceptions import AccessDeniedException, UnauthorizedException

logger = logging.getLogger(__name__)

PENDING_STATUSES = {"pending", "pending_approval"}
SUSPENDED_STATUSES = {"suspended", "banned", "blocked"}


class Capability(str, Enum):
    READ_CONTENT = "read_content"
    MANAGE_CONTENT = "manage_content"
    SUBMIT_TASK = "submit_task"
    READ_PROGRESS = "read_progress"
    ENROLL = "enroll"
    ISSUE_CERTIFICATE = "issue_certificate"


ALLOWED_STATES: dict[Capability, frozenset[AccountState]] = {
    Capability.READ_CONTENT: frozenset({AccountState.ACTIVE_APPROVED}),
    Capability.MANAGE_CONTENT: frozenset({AccountState.ACTIVE_APPROVED}),
    Capability.SUBMIT_TASK: frozenset({AccountState.ACTIVE_APPROVED}),
    Capability.ISSUE_CERTIFICATE: frozenset({AccountState.ACTIVE_APPROVED}),
    Capability.READ_PROGRESS: frozenset({AccountState.ACTIVE_APPROVED, AccountState.ACTIVE_UNAPPROVED}),
    Capability.ENROLL: frozenset({AccountState.ACTIVE_APPROVED, AccountState.ACTIVE_UNAPPROVED}),
}

STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.INSTRUCTOR})

DENIAL_MESSAGES = {
    AccountState.PENDING_APPROVAL: "Your account is waiting for approval",
    AccountState.SUSPENDED: "Your account has been suspended",
    AccountState.ACTIVE_UNAPPROVED: "Your account must be approved before accessing course content",
}


def resolve_state(identity: Optional[Identity]) -> AccountState:
    """Map identity claims to an account state; earlier checks win."""
    if identity is None:
        return AccountState.UNAUTHENTICATED

    status = (identity.account_status or "").strip().lower()
    if status in PENDING_STATUSES:
        return AccountState.PENDING_APPROVAL
    if status in SUSPENDED_STATUSES or not identity.is_active:
        return AccountState.SUSPENDED
    if identity.role == UserRole.ADMIN or identity.is_approved:
        return AccountState.ACTIVE_APPROVED
    return AccountState.ACTIVE_UNAPPROVED


def is_staff(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role in STAFF_ROLES


def check(identity: Optional[Identity], capability: Capability) -> Identity:
    """
    Allow or deny a capability.

    Returns:
        The identity, when allowed

    Raises:
        UnauthorizedException: No identity
        AccessDeniedException: Identity in a state (or role) without the capability
    """
    state = resolve_state(identity)
    if state == AccountState.UNAUTHENTICATED:
        raise UnauthorizedException("Authentication required")

    if state not in ALLOWED_STATES[capability]:
        logger.info(f"Denied {capability.value} to {identity.user_id} in state {state.value}")
        raise AccessDeniedException(DENIAL_MESSAGES.get(state, "Access Denied"))

    if capability == Capability.MANAGE_CONTENT and not is_staff(identity):
        logger.info(f"Denied {capability.value} to {identity.user_id} with role {identity.role}")
        raise AccessDeniedException("Only instructors and admins can manage course content")

    return identity
