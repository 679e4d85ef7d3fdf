"""
Flow guard: best-effort idempotency for board writes.

``seen`` and ``mark`` are two separate calls, so two concurrent deliveries with
the same key can both pass. A rare duplicate board item is the accepted cost.
"""

import time
from collections.abc import Callable, MutableMapping
from typing import Protocol

import redis.asyncio as redis

from shiftbridge.config import settings
from shiftbridge.obs import get_logger

logger = get_logger(__name__)


class FlowGuard(Protocol):
    async def seen(self, key: str) -> bool: ...

    async def mark(self, key: str) -> None: ...


class NullFlowGuard:
    """Used when no store is configured: never suppresses, never records."""

    async def seen(self, key: str) -> bool:
        return False

    async def mark(self, key: str) -> None:
        return None


class InMemoryFlowGuard:
    """
    Per-process key/expiry store. Good for tests and single-process runs.
    """

    def __init__(self, ttl_seconds: int = 86400, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: MutableMapping[str, float] = {}

    async def seen(self, key: str) -> bool:
        if not key:
            return False
        expires_at = self._store.get(key)
        if expires_at is None:
            return False
        if expires_at <= self._clock():
            self._store.pop(key, None)
            return False
        return True

    async def mark(self, key: str) -> None:
        if key:
            self._store[key] = self._clock() + self.ttl_seconds

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class RedisFlowGuard:
    """Redis-backed guard. Any redis failure degrades to "not seen" / "not marked"."""

    prefix = "flowguard:"

    def __init__(self, client: redis.Redis, ttl_seconds: int = 86400) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def seen(self, key: str) -> bool:
        if not key:
            return False
        try:
            return bool(await self.client.get(self.prefix + key))
        except redis.RedisError as exc:
            logger.warning(f"Flow guard lookup failed, treating as unseen: {exc}")
            return False

    async def mark(self, key: str) -> None:
        if not key:
            return
        try:
            await self.client.set(self.prefix + key, "1", ex=self.ttl_seconds)
        except redis.RedisError as exc:
            logger.warning(f"Flow guard mark failed, continuing: {exc}")


def build_flow_guard() -> FlowGuard:
    if not settings.REDIS_URL:
        logger.warning("REDIS_URL not configured, duplicate suppression disabled")
        return NullFlowGuard()
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return RedisFlowGuard(client, ttl_seconds=settings.FLOW_GUARD_TTL_SECONDS)
