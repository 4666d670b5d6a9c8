import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from learning_core.api.v1.router import api_router
from learning_core.config import get_settings
from learning_core.db.session import init_db, close_db
from learning_core.dependencies.services import get_redis_client
from learning_core.schemas.generic import HealthResponse
from learning_core.utils.exception_handlers import register_exception_handlers
from learning_core.utils.log import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator:
    """Lifecycle events"""
    # STARTUP
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    await init_db()

    # Locks degrade to no-ops when Redis is not configured
    redis_client = await get_redis_client()
    if redis_client.is_available():
        logger.info("Redis client initialized, distributed locks enabled")

    yield

    # SHUTDOWN
    logger.info(f"Shutting down {settings.app_name}")
    await close_db()
    await redis_client.disconnect()


# Create app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Course content hierarchy, task scoring and learner progress",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
register_exception_handlers(app)


# Health check
@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    redis_client = await get_redis_client()
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        distributed_locks=await redis_client.ping(),
    )


# Include routers
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "learning_core.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.environment == "development",
    )
