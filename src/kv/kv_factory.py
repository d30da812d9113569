# src/kv/kv_factory.py — v1
"""Factory for key-value store instantiation.

Two logical namespaces are used: ``models`` (document, version, hash,
backups, manual records) and ``locks`` (locks, failure counters,
blacklist flags).
"""

from __future__ import annotations

from typing import Literal

from modelsync.config.settings import Settings
from modelsync.kv.base_kv_store import BaseKVStore

Namespace = Literal["models", "locks"]


def create_kv_store(settings: Settings | None = None, namespace: Namespace = "models") -> BaseKVStore:
    """Instantiate the configured backend for a namespace.

    Args:
        settings: Application settings. Defaults to the in-memory backend.
        namespace: Logical namespace ("models" or "locks").

    Returns:
        Configured BaseKVStore implementation.
    """
    backend = "memory" if settings is None else settings.kv_backend

    if backend == "memory":
        from modelsync.kv.memory_store import InMemoryKVStore
        return InMemoryKVStore()

    if backend == "json":
        from modelsync.kv.json_store import JsonKVStore
        return JsonKVStore(root=settings.kv_root / namespace)

    if backend == "redis":
        from modelsync.kv.redis_store import RedisKVStore
        if not settings.kv_redis_url:
            raise ValueError("KV_REDIS_URL must be set when KV_BACKEND=redis")
        return RedisKVStore(
            redis_url=settings.kv_redis_url, namespace=f"modelsync:{namespace}"
        )

    raise ValueError(f"Unsupported kv backend: {backend!r}")
