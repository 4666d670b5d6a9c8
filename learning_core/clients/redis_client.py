"""
Redis client for distributed locking.

Features:
    - Per-parent lock serializing hierarchy mutations and reorders
    - Per-(learner, course) lock serializing progress recomputes
    - Graceful degradation: without a Redis URL every lock is a no-op and
      the database constraints remain the only guard
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError

from learning_core.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client for distributed locks"""

    def __init__(self, settings: Settings):
        self._redis_url = settings.redis_url
        self._client: Optional[Redis] = None

    async def connect(self):
        """Establish Redis connection"""
        if not self._redis_url:
            logger.warning("Redis URL not configured, distributed locks disabled")
            return

        try:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            await self._client.ping()
            logger.info("Redis connection established successfully")
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._client = None

    async def disconnect(self):
        """Close Redis connection"""
        if self._client:
            await self._client.close()
            logger.info("Redis connection closed")

    def is_available(self) -> bool:
        """Check if Redis is available"""
        return self._client is not None

    async def ping(self) -> bool:
        """Ping Redis server to check connectivity"""
        if not self.is_available():
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    # =============================
    #   Lock keys
    # =============================
    @staticmethod
    def hierarchy_lock_key(kind: str, parent_id) -> str:
        return f"hierarchy:lock:{kind}:{parent_id}"

    @staticmethod
    def progress_lock_key(learner_id: str, course_id) -> str:
        return f"progress:lock:{learner_id}:{course_id}"

    # =============================
    #   Distributed Lock
    # =============================
    @asynccontextmanager
    async def acquire_lock(
            self,
            key: str,
            timeout: int,
            blocking_timeout: Optional[float] = None,
    ):
        """
        Acquire a distributed lock.

        Args:
            key: Lock key
            timeout: Lock expiry in seconds (protects against crashed holders)
            blocking_timeout: Seconds to wait for a busy lock; None fails immediately

        Yields:
            True once the lock is held (or when Redis is disabled)

        Raises:
            LockError: If the lock is held elsewhere
        """
        if not self.is_available():
            yield True
            return

        lock = self._client.lock(key, timeout=timeout)
        if blocking_timeout is None:
            acquired = await lock.acquire(blocking=False)
        else:
            acquired = await lock.acquire(blocking=True, blocking_timeout=blocking_timeout)
        if not acquired:
            raise LockError(f"Lock {key} is held by another request")

        logger.debug(f"Acquired lock {key}")
        try:
            yield True
        finally:
            try:
                await lock.release()
                logger.debug(f"Released lock {key}")
            except LockError:
                # Lock already expired
                logger.warning(f"Lock {key} expired before release")
