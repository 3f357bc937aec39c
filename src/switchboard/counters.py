"""Shared counter stores."""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger
from redis.asyncio import Redis


class CounterStore(Protocol):
    """Atomic increment of a named counter, shared by every session."""

    async def increment(self, key: str, amount: int = 1) -> int: ...


class InMemoryCounterStore:
    """Process-local counters guarded by one asyncio lock."""

    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def increment(self, key: str, amount: int = 1) -> int:
        async with self._lock:
            value = self._values.get(key, 0) + amount
            self._values[key] = value
            return value

    def get(self, key: str) -> int:
        return self._values.get(key, 0)


class RedisCounterStore:
    """Counters kept in Redis so several workers share them."""

    def __init__(self, redis: Redis, key_prefix: str = "switchboard") -> None:
        self.redis = redis
        self.key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def increment(self, key: str, amount: int = 1) -> int:
        return int(await self.redis.incrby(self._make_key(key), amount))


async def increment_counter(store: CounterStore, key: str, amount: int = 1) -> int:
    """Increment ``key``, resolving to 0 when the store fails."""

    try:
        return await store.increment(key, amount)
    except Exception as exc:
        logger.warning("counter.increment_failed key={} reason={!s}", key, exc)
        return 0
