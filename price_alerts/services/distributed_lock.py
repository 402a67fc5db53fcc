"""Cluster-wide mutual exclusion backed by Redis."""
import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Dict, Optional, Union

from redis.exceptions import WatchError

from price_alerts.core.redis import get_redis

logger = logging.getLogger(__name__)


class RedisLock:
    """
    TTL-bound lock shared by every evaluator instance.

    Acquisition is a single ``SET key token NX PX ttl``. The token is kept per
    key so that ``release`` only deletes a lock this instance still owns. If
    the TTL already expired and another instance took over, the release is a
    no-op.
    """

    def __init__(self, redis=None):
        self.redis = redis
        self._tokens: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def _get_redis(self):
        """Get Redis connection."""
        if self.redis is None:
            async with self._lock:
                if self.redis is None:
                    self.redis = await get_redis()
        return self.redis

    async def try_acquire(self, key: str, ttl: Union[int, float, timedelta]) -> bool:
        """
        Try to take the lock without waiting.

        Args:
            key: Lock key
            ttl: Time-to-live in seconds (or timedelta) after which the lock
                frees itself if never released

        Returns:
            True if this instance now holds the lock
        """
        ttl_ms = int((ttl.total_seconds() if isinstance(ttl, timedelta) else ttl) * 1000)
        if ttl_ms <= 0:
            raise ValueError("Lock TTL must be positive")

        redis = await self._get_redis()
        token = uuid.uuid4().hex
        acquired = await redis.set(key, token, nx=True, px=ttl_ms)
        if acquired:
            self._tokens[key] = token
            logger.debug(f"Acquired lock {key} (ttl={ttl_ms}ms)")
            return True
        return False

    async def release(self, key: str) -> bool:
        """
        Release a lock held by this instance.

        Returns:
            True if the key was deleted, False if it was not ours anymore
        """
        token: Optional[str] = self._tokens.pop(key, None)
        if token is None:
            return False

        redis = await self._get_redis()
        async with redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.get(key)
                if isinstance(current, bytes):
                    current = current.decode("utf-8")
                if current != token:
                    logger.warning(f"Lock {key} expired before release; not deleting")
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
            except WatchError:
                logger.warning(f"Lock {key} changed during release; not deleting")
                return False

        logger.debug(f"Released lock {key}")
        return True
