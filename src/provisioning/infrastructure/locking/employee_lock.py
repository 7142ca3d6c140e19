"""Distributed lock implementations used to serialize sagas per employee."""

from __future__ import annotations

import asyncio
import time
import uuid

import redis.asyncio
import structlog

from provisioning.config import RedisSettings
from provisioning.domain.ports.services import DistributedLock
from provisioning.infrastructure.observability.metrics import DISTRIBUTED_LOCK_OPERATIONS


logger = structlog.get_logger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


def _record(operation: str, ok: bool) -> None:
    DISTRIBUTED_LOCK_OPERATIONS.labels(
        operation=operation, result="success" if ok else "failure",
    ).inc()


class RedisDistributedLock(DistributedLock):
    """Lock held as ``SET lock:<resource> <token> NX EX <ttl>``.

    Only the holder's token can release or extend the lock; an expired lock
    simply lets the next submission in.
    """

    def __init__(self, client: redis.asyncio.Redis, key_prefix: str = "provisioning:lock") -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._tokens: dict[str, str] = {}

    def _key(self, resource_id: str) -> str:
        return f"{self._key_prefix}:{resource_id}"

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        token = str(uuid.uuid4())
        acquired = bool(await self._client.set(self._key(resource_id), token, nx=True, ex=ttl_seconds))
        _record("acquire", acquired)
        if acquired:
            self._tokens[resource_id] = token
            logger.debug("lock_acquired", resource_id=resource_id, ttl=ttl_seconds)
        else:
            logger.debug("lock_not_acquired", resource_id=resource_id)
        return acquired

    async def release(self, resource_id: str) -> bool:
        token = self._tokens.pop(resource_id, None)
        if token is None:
            return False
        released = bool(await self._client.eval(_RELEASE_SCRIPT, 1, self._key(resource_id), token))
        _record("release", released)
        if not released:
            logger.warning("lock_expired_before_release", resource_id=resource_id)
        return released

    async def extend(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        token = self._tokens.get(resource_id)
        if token is None:
            return False
        result = await self._client.eval(
            _EXTEND_SCRIPT, 1, self._key(resource_id), token, str(ttl_seconds),
        )
        _record("extend", bool(result))
        return bool(result)

    async def is_locked(self, resource_id: str) -> bool:
        return bool(await self._client.exists(self._key(resource_id)))


class InMemoryDistributedLock(DistributedLock):
    """Process-local lock with expiry, for the single-instance demo and tests."""

    def __init__(self) -> None:
        self._expiry: dict[str, float] = {}
        self._guard = asyncio.Lock()

    def _held(self, resource_id: str) -> bool:
        expires = self._expiry.get(resource_id)
        if expires is None:
            return False
        if expires <= time.monotonic():
            del self._expiry[resource_id]
            return False
        return True

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        async with self._guard:
            if self._held(resource_id):
                _record("acquire", False)
                return False
            self._expiry[resource_id] = time.monotonic() + ttl_seconds
            _record("acquire", True)
            return True

    async def release(self, resource_id: str) -> bool:
        async with self._guard:
            released = self._expiry.pop(resource_id, None) is not None
            _record("release", released)
            return released

    async def extend(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        async with self._guard:
            if not self._held(resource_id):
                return False
            self._expiry[resource_id] = time.monotonic() + ttl_seconds
            return True

    async def is_locked(self, resource_id: str) -> bool:
        return self._held(resource_id)


def create_redis_client(settings: RedisSettings) -> redis.asyncio.Redis:
    """Factory function to create a Redis client."""
    return redis.asyncio.Redis.from_url(
        settings.url,
        decode_responses=False,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )
