from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from learning_core.db.session import get_db


async def get_database() -> AsyncGenerator[AsyncSession | Any, Any]:
    """
    Inject a per-request database session into endpoints
    """
    async for session in get_db():
        yield session
