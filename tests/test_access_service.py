import pytest

from learning_core.model.enums import AccountState, UserRole
from learning_core.services import access_service
from learning_core.services.access_service import Capability, resolve_state
from learning_core.services.auth_service import Identity
from learning_core.utils.exceptions import AccessDeniedException, UnauthorizedException

STUDENT = Identity(user_id="s1", role=UserRole.STUDENT, is_approved=True)
UNAPPROVED = Identity(user_id="s2", role=UserRole.STUDENT, is_approved=False)
PENDING = Identity(user_id="s3", role=UserRole.STUDENT, is_approved=True, account_status="PENDING_APPROVAL")
SUSPENDED = Identity(user_id="s4", role=UserRole.STUDENT, is_approved=True, account_status="suspended")
INACTIVE = Identity(user_id="s5", role=UserRole.STUDENT, is_approved=True, is_active=False)
ADMIN = Identity(user_id="a1", role=UserRole.ADMIN, is_approved=False)
INSTRUCTOR = Identity(user_id="i1", role=UserRole.INSTRUCTOR, is_approved=True)


@pytest.mark.parametrize(
    "identity, state",
    [
        (None, AccountState.UNAUTHENTICATED),
        (PENDING, AccountState.PENDING_APPROVAL),
        (SUSPENDED, AccountState.SUSPENDED),
        (INACTIVE, AccountState.SUSPENDED),
        (STUDENT, AccountState.ACTIVE_APPROVED),
        (ADMIN, AccountState.ACTIVE_APPROVED),
        (UNAPPROVED, AccountState.ACTIVE_UNAPPROVED),
    ],
)
def test_resolve_state(identity, state):
    assert resolve_state(identity) == state


def test_pending_wins_over_inactive():
    identity = Identity(user_id="x", is_active=False, account_status="pending")

    assert resolve_state(identity) == AccountState.PENDING_APPROVAL


@pytest.mark.parametrize("capability", list(Capability))
def test_unauthenticated_is_always_rejected(capability):
    with pytest.raises(UnauthorizedException):
        access_service.check(None, capability)


@pytest.mark.parametrize("identity", [PENDING, SUSPENDED, INACTIVE])
@pytest.mark.parametrize("capability", list(Capability))
def test_blocked_accounts_are_denied_everything(identity, capability):
    with pytest.raises(AccessDeniedException):
        access_service.check(identity, capability)


def test_unapproved_learner_can_enroll_and_read_progress_only():
    assert access_service.check(UNAPPROVED, Capability.ENROLL) is UNAPPROVED
    assert access_service.check(UNAPPROVED, Capability.READ_PROGRESS) is UNAPPROVED

    for capability in (Capability.READ_CONTENT, Capability.SUBMIT_TASK, Capability.ISSUE_CERTIFICATE):
        with pytest.raises(AccessDeniedException) as exc_info:
            access_service.check(UNAPPROVED, capability)
        assert "approved" in exc_info.value.message


def test_managing_content_needs_a_staff_role():
    assert access_service.check(ADMIN, Capability.MANAGE_CONTENT) is ADMIN
    assert access_service.check(INSTRUCTOR, Capability.MANAGE_CONTENT) is INSTRUCTOR

    with pytest.raises(AccessDeniedException):
        access_service.check(STUDENT, Capability.MANAGE_CONTENT)


def test_approved_student_uses_learner_capabilities():
    for capability in set(Capability) - {Capability.MANAGE_CONTENT}:
        assert access_service.check(STUDENT, capability) is STUDENT


@pytest.mark.parametrize(
    "claims, role",
    [
        ({"userId": 1, "role": "ADMIN"}, UserRole.ADMIN),
        ({"userId": 1, "roles": ["instructor", "student"]}, UserRole.INSTRUCTOR),
        ({"userId": 1, "role": "guest"}, None),
        ({"userId": 1}, None),
    ],
)
def test_identity_role_claims(claims, role):
    identity = Identity.from_claims(claims)

    assert identity.user_id == "1"
    assert identity.role == role
    assert identity.is_active is True
    assert identity.is_approved is False


@pytest.mark.parametrize(
    "active, approved, expected",
    [
        ("false", "true", (False, True)),
        ("FALSE", "False", (False, False)),
        ("1", "0", (True, False)),
        (0, 1, (False, True)),
        (None, None, (True, False)),
        ("unknown", "maybe", (True, False)),
    ],
)
def test_identity_flag_claims_are_parsed(active, approved, expected):
    identity = Identity.from_claims({"userId": 1, "isActive": active, "isApproved": approved})

    assert (identity.is_active, identity.is_approved) == expected


def test_string_false_active_claim_suspends():
    identity = Identity.from_claims({"userId": 1, "role": "student", "isActive": "false", "isApproved": "true"})

    assert resolve_state(identity) == AccountState.SUSPENDED
