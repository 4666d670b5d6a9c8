from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request

from learning_core.model.enums import UserRole
from learning_core.utils.exceptions import UnauthorizedException


@dataclass(frozen=True)
class Identity:
    """Already-verified caller identity taken from the gateway token."""
    user_id: str
    role: Optional[UserRole] = None
    is_active: bool = True
    is_approved: bool = False
    account_status: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: dict) -> "Identity":
        return cls(
            user_id=str(claims["userId"]),
            role=_parse_role(claims),
            is_active=_claim_bool(claims.get("isActive"), True),
            is_approved=_claim_bool(claims.get("isApproved"), False),
            account_status=(claims.get("accountStatus") or None),
            email=claims.get("email"),
            full_name=claims.get("fullName"),
        )


TRUE_STRINGS = ("true", "1", "yes", "y", "on")
FALSE_STRINGS = ("false", "0", "no", "n", "off", "")


def _claim_bool(raw, default: bool) -> bool:
    """Boolean claim that may arrive as a bool, a number or a string; unknown values fall back to default."""
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    return default


def _parse_role(claims: dict) -> Optional[UserRole]:
    raw = claims.get("role")
    if raw is None:
        # Older tokens carry a roles list
        roles = claims.get("roles") or []
        raw = roles[0] if roles else None
    if raw is None:
        return None
    try:
        return UserRole(str(raw).lower())
    except ValueError:
        return None


class AuthService:
    @staticmethod
    def get_identity(request: Request) -> Identity:
        decoded = AuthService._get_decoded_jwt(request)
        if not decoded.get("userId"):
            raise UnauthorizedException("Invalid token")
        return Identity.from_claims(decoded)

    @staticmethod
    def get_optional_identity(request: Request) -> Optional[Identity]:
        """Identity when an Authorization header is present, None otherwise."""
        if not request.headers.get("Authorization"):
            return None
        return AuthService.get_identity(request)

    @staticmethod
    def _get_decoded_jwt(request: Request) -> dict:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise UnauthorizedException("Authorization header missing")
        if not auth_header.startswith("Bearer "):
            raise UnauthorizedException("Invalid Authorization header format")
        token = auth_header.split(" ", 1)[1].strip()
        # Signature is verified upstream by the gateway
        try:
            decoded = jwt.decode(
                token,
                options={"verify_signature": False}
            )
        except jwt.InvalidTokenError:
            raise UnauthorizedException("Invalid token")
        return decoded
