# src/kv/memory_store.py — v1
"""In-process key-value store with TTL support (KV_BACKEND=memory).

Used for tests and single-process local runs.
"""

from __future__ import annotations

import time
from typing import Callable

from modelsync.kv.base_kv_store import BaseKVStore


class InMemoryKVStore(BaseKVStore):
    """Dict-backed store; expiry is evaluated lazily on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = None if ttl_seconds is None else self._clock() + ttl_seconds
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, prefix: str = "") -> list[str]:
        keys = [k for k in list(self._data) if k.startswith(prefix)]
        return sorted([k for k in keys if await self.get(k) is not None])
