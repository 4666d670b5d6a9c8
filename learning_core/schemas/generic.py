from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from learning_core.utils.exceptions import (
    AccessDeniedException,
    ConflictException,
    LearningCoreException,
    ResourceNotFoundException,
    TransientException,
    UnauthorizedException,
    ValidationException,
)

T = TypeVar("T")

# Service exception -> HTTP status carried in the error envelope
ERROR_CODES: dict[type[LearningCoreException], int] = {
    ValidationException: 400,
    UnauthorizedException: 401,
    AccessDeniedException: 403,
    ResourceNotFoundException: 404,
    ConflictException: 409,
    TransientException: 503,
}


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope used by every endpoint"""
    status: str
    message: Optional[str] = None
    code: Optional[int] = None
    data: Optional[T] = None
    errors: Optional[List[str]] = Field(None, description="Field-level problems of a rejected request")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def success(cls, data: Optional[T] = None, message: Optional[str] = None):
        return cls(status="SUCCESS", message=message, data=data)

    @classmethod
    def error(cls, code: int, message: str, errors: Optional[List[str]] = None):
        return cls(status="ERROR", message=message, code=code, errors=errors)

    @classmethod
    def from_exception(cls, exc: LearningCoreException) -> "ApiResponse":
        """Error envelope for a service exception; unknown subclasses map to 500."""
        code = next(
            (status for exc_type, status in ERROR_CODES.items() if isinstance(exc, exc_type)),
            500,
        )
        return cls.error(code=code, message=exc.message)


class HealthResponse(BaseModel):
    """Liveness plus the state of the lock backend"""
    status: str
    service: str
    version: str
    environment: str
    distributed_locks: bool = Field(..., description="False when Redis is not configured or unreachable")
