from __future__ import annotations

import copy
import json
from typing import Any

import redis.asyncio as aioredis


class MemoryUnitStorage:
    """Process-local unit state; lost on restart."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def load(self, address: str) -> dict[str, Any] | None:
        state = self._data.get(address)
        return copy.deepcopy(state) if state is not None else None

    async def save(self, address: str, state: dict[str, Any]) -> None:
        self._data[address] = copy.deepcopy(state)


class RedisUnitStorage:
    """Unit state persisted as one JSON document per address."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "coord") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, address: str) -> str:
        return f"{self._prefix}:{address}"

    async def load(self, address: str) -> dict[str, Any] | None:
        raw = await self._redis.get(self._key(address))
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, address: str, state: dict[str, Any]) -> None:
        await self._redis.set(self._key(address), json.dumps(state))
