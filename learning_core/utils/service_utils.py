import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import LockError, RedisError

from learning_core.clients.redis_client import RedisClient
from learning_core.utils.exceptions import ConflictException, TransientException

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@asynccontextmanager
async def parent_lock(redis_client: Optional[RedisClient], kind: str, parent_id, timeout: int):
    """
    Serialize mutations of one parent's children.

    A busy lock means another edit of the same sibling list is in flight:
    the caller gets a ConflictException and must refresh before retrying.
    """
    if redis_client is None or not redis_client.is_available():
        yield
        return

    key = RedisClient.hierarchy_lock_key(kind, parent_id)
    try:
        async with redis_client.acquire_lock(key, timeout=timeout):
            yield
    except LockError as e:
        raise ConflictException(
            f"Another change to the {kind} of {parent_id} is in progress. Refresh and retry."
        ) from e
    except RedisError as e:
        logger.error(f"Redis failure while locking {key}: {e}")
        raise TransientException("Lock service temporarily unavailable") from e


@asynccontextmanager
async def progress_lock(redis_client: Optional[RedisClient], learner_id: str, course_id, timeout: int, wait: float):
    """
    Serialize progress recomputes of one (learner, course).

    Waits up to ``wait`` seconds for a concurrent recompute to finish.
    """
    if redis_client is None or not redis_client.is_available():
        yield
        return

    key = RedisClient.progress_lock_key(learner_id, course_id)
    try:
        async with redis_client.acquire_lock(key, timeout=timeout, blocking_timeout=wait):
            yield
    except LockError as e:
        raise TransientException("Progress is being recomputed, retry shortly") from e
    except RedisError as e:
        logger.error(f"Redis failure while locking {key}: {e}")
        raise TransientException("Lock service temporarily unavailable") from e
