# src/kv/redis_store.py — v1
"""Redis-based key-value store (KV_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments where syncer, supervisor and
curator run as separate processes.
"""

from __future__ import annotations

import logging

from modelsync.kv.base_kv_store import BaseKVStore

logger = logging.getLogger(__name__)


class RedisKVStore(BaseKVStore):
    """Redis-backed store; keys are prefixed with the namespace."""

    def __init__(self, redis_url: str, namespace: str = "modelsync") -> None:
        try:
            import redis.asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = aioredis.Redis.from_url(redis_url, decode_responses=True)
        self._prefix = f"{namespace}:"

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._prefix + key)

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._client.set(self._prefix + key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._prefix + key)

    async def list_keys(self, prefix: str = "") -> list[str]:
        keys: list[str] = []
        async for full_key in self._client.scan_iter(match=f"{self._prefix}{prefix}*"):
            keys.append(full_key[len(self._prefix):])
        return sorted(keys)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
