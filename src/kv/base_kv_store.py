# src/kv/base_kv_store.py — v1
"""Abstract key-value store interface.

Models an eventually consistent store without compare-and-swap: callers
that need mutual exclusion go through KeyedLock, callers that need
lost-update detection go through VersionedStore.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseKVStore(ABC):
    """Unified interface for key-value storage backends."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored string, or None when absent or expired."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value, optionally expiring after ``ttl_seconds``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key (no-op when absent)."""

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """List live keys starting with ``prefix``, sorted."""

    async def close(self) -> None:
        """Release backend resources (default: nothing to do)."""
