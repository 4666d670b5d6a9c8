import logging
from typing import Any, AsyncGenerator

from sqlalchemy import NullPool
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from learning_core.config import get_settings, Settings
from learning_core.model import Base

logger = logging.getLogger(__name__)


def _connect_args(settings: Settings) -> dict:
    """Driver timeouts; a stalled store surfaces as a retryable error."""
    args = {"timeout": settings.database_timeout}
    if settings.database_url.startswith("postgresql+asyncpg"):
        args["command_timeout"] = settings.database_timeout
    return args


settings = get_settings()
engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development" and settings.log_level.upper() == "DEBUG",
    poolclass=NullPool,
    connect_args=_connect_args(settings),
)
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession | Any, Any]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            # Nothing half-written survives a failed request
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    async with engine.begin() as conn:
        if settings.environment == "development":
            logger.info("Creating tables for development database")
            await conn.run_sync(Base.metadata.create_all)


async def close_db():
    await engine.dispose()
