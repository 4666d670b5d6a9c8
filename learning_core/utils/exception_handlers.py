import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learning_core.schemas.generic import ApiResponse
from learning_core.utils.exceptions import LearningCoreException

logger = logging.getLogger(__name__)


def _json(envelope: ApiResponse, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=envelope.code,
        content=envelope.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI):
    """
    Register global exception handlers for the FastAPI app.
    Every failure leaves as an ApiResponse error envelope.
    """

    @app.exception_handler(LearningCoreException)
    async def service_exception_handler(request: Request, exc: LearningCoreException):
        envelope = ApiResponse.from_exception(exc)
        name = type(exc).__name__
        if envelope.code >= 500:
            logger.error(f"{name} on {request.method} {request.url.path}: {exc.message}", exc_info=True)
            # Transient failures are safe to retry
            return _json(envelope, headers={"Retry-After": "1"})

        logger.warning(f"{name} on {request.method} {request.url.path}: {exc.message}")
        return _json(envelope)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
            request: Request, exc: RequestValidationError
    ):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        errors = []
        for error in exc.errors():
            field = (
                ".".join(str(x) for x in error["loc"]) if error["loc"] else "unknown"
            )
            errors.append(f"{field}: {error['msg']}")

        return _json(
            ApiResponse.error(
                code=status.HTTP_400_BAD_REQUEST,
                message=f"Validation Error: {', '.join(errors)}",
                errors=errors,
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTPException on {request.url.path}: {exc.detail}")
        return _json(ApiResponse.error(code=exc.status_code, message=str(exc.detail)))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled Exception: {str(exc)}", exc_info=True)
        return _json(
            ApiResponse.error(code=status.HTTP_500_INTERNAL_SERVER_ERROR, message="Internal Server Error")
        )
