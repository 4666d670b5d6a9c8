class LearningCoreException(Exception):
    """Base exception for the learning core service"""

    default_message = "Learning core error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationException(LearningCoreException):
    """Invalid input (400). Surfaced to the caller, never retried."""

    default_message = "Bad Request"


class ResourceNotFoundException(LearningCoreException):
    """Stale or missing id (404)"""

    default_message = "Resource Not Found"


class ConflictException(LearningCoreException):
    """Stale ordering or concurrent edit (409). Caller must refresh and retry."""

    default_message = "Conflict"


class TransientException(LearningCoreException):
    """Storage I/O failure or timeout (503). Safe to retry with backoff."""

    default_message = "Service Temporarily Unavailable"


class AccessDeniedException(LearningCoreException):
    """Exception for Forbidden (403)"""

    default_message = "Access Denied"


class UnauthorizedException(LearningCoreException):
    """Exception for Unauthorized (401)"""

    default_message = "Unauthorized"
