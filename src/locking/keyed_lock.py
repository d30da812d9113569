# src/locking/keyed_lock.py — v1
"""Advisory, TTL-bounded named locks on top of a BaseKVStore.

The backing store offers no compare-and-swap, so acquisition is
read → write holder with TTL → settle delay → re-read. This narrows the
race window between two acquirers without closing it; the TTL is the real
upper bound on exclusive ownership and a crashed holder's lock simply
expires. On a strongly consistent store ``settle_delay_s`` may be 0.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from modelsync.kv.base_kv_store import BaseKVStore

logger = logging.getLogger(__name__)

SUPERVISOR_LOCK = "supervisor_lock"
SYNCER_LOCK = "syncer_lock"
DATA_WRITE_LOCK = "data_write_lock"
CLEANUP_LOCK = "cleanup_lock"


class LockError(Exception):
    """Raised when a lock required for a write is held by someone else."""

    def __init__(self, lock_key: str, holder: str | None) -> None:
        self.lock_key = lock_key
        self.holder = holder
        super().__init__(
            "Data is currently being modified by another process. "
            "Please try again in a moment."
        )


class KeyedLock:
    """Acquire / release / inspect named mutual-exclusion markers."""

    def __init__(self, store: BaseKVStore, settle_delay_s: float = 0.3) -> None:
        self._store = store
        self._settle_delay_s = settle_delay_s

    @property
    def store(self) -> BaseKVStore:
        return self._store

    async def acquire(self, key: str, holder_id: str, ttl_seconds: int) -> bool:
        """Try to take ``key`` for ``holder_id``; never raises.

        Returns:
            True if this holder is the recorded holder after the settle delay.
        """
        logger.debug("Attempting to acquire lock %r for %ss", key, ttl_seconds)
        try:
            current = await self._store.get(key)
            if current is not None:
                logger.debug("Lock %r held by %s", key, current)
                return False

            await self._store.put(key, holder_id, ttl_seconds=ttl_seconds)
            if self._settle_delay_s > 0:
                await asyncio.sleep(self._settle_delay_s)

            confirmed = await self._store.get(key)
            if confirmed == holder_id:
                logger.debug("Lock %r acquired by %s", key, holder_id)
                return True
            logger.debug("Contention for lock %r; %s acquired it", key, confirmed)
            return False
        except Exception as e:
            logger.error("Error during lock acquisition for %r: %s", key, e)
            return False

    async def release(self, key: str) -> None:
        """Delete the lock; failures are logged and left to the TTL."""
        try:
            await self._store.delete(key)
            logger.debug("Lock %r released", key)
        except Exception as e:
            logger.warning("Failed to delete lock %r: %s. It will expire via TTL.", key, e)

    async def holder(self, key: str) -> str | None:
        """Return the current holder id, or None if unlocked."""
        return await self._store.get(key)

    async def require(self, key: str, holder_id: str, ttl_seconds: int) -> None:
        """Acquire or raise LockError (for request-driven writers)."""
        if not await self.acquire(key, holder_id, ttl_seconds):
            raise LockError(key, await self.holder(key))

    @asynccontextmanager
    async def held(self, key: str, holder_id: str, ttl_seconds: int) -> AsyncIterator[None]:
        """Context manager: ``require`` on enter, ``release`` on exit."""
        await self.require(key, holder_id, ttl_seconds)
        try:
            yield
        finally:
            await self.release(key)
