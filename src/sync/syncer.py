# src/sync/syncer.py — v1
"""Catalog syncer — rebuild the producers tree from upstream sources.

Stages:
  1. fetch: stored document, model blacklist, catalog records, manual models
  2. merge: ``merge_deep(online, manual)`` then ``reconcile`` with stored data
  3. save: skip on unchanged hash, abort on version conflict, else back up
     the previous document and write list / hash / version
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from modelsync.core.hashing import hash_document
from modelsync.core.models import SyncResult
from modelsync.locking.keyed_lock import DATA_WRITE_LOCK, SYNCER_LOCK, KeyedLock
from modelsync.logging.context import new_op_id, set_operation_context, set_phase_context
from modelsync.merge.reconciler import merge_deep, reconcile
from modelsync.sync.manual import collect_manual_models
from modelsync.sync.online import PricingLimits, build_grouped_online_models

if TYPE_CHECKING:
    import httpx

    from modelsync.clients.base_client import BaseCatalogClient
    from modelsync.config.settings import Settings
    from modelsync.storage.versioned_store import VersionedStore

logger = logging.getLogger(__name__)


def _count_variants(producers: dict) -> int:
    return sum(
        len(variants) for series in producers.values() for variants in series.values()
        if isinstance(variants, dict)
    )


class ModelSyncer:
    """One syncer invocation against the shared document."""

    def __init__(
        self,
        store: VersionedStore,
        locks: KeyedLock,
        catalog: BaseCatalogClient,
        http_client: httpx.AsyncClient,
        settings: Settings,
    ) -> None:
        self._store = store
        self._locks = locks
        self._catalog = catalog
        self._http = http_client
        self._settings = settings

    async def run(self, op_id: str | None = None) -> SyncResult:
        op_id = op_id or new_op_id("sync")
        set_operation_context(op_id, "syncer")
        logger.info("Starting sync process")

        writer = await self._locks.holder(DATA_WRITE_LOCK)
        if writer:
            logger.info("Data is locked by another process (%s), skipping sync run", writer)
            return SyncResult(op_id=op_id, outcome="locked_out")

        if not await self._locks.acquire(SYNCER_LOCK, op_id, self._settings.syncer_lock_ttl_s):
            logger.info("Could not acquire %s", SYNCER_LOCK)
            return SyncResult(op_id=op_id, outcome="lock_failed")

        try:
            return await self._sync(op_id)
        except Exception as e:
            logger.exception("Critical error in sync run")
            return SyncResult(op_id=op_id, outcome="error", error=str(e))
        finally:
            await self._locks.release(SYNCER_LOCK)
            set_phase_context(None)
            logger.info("Sync process concluded")

    async def _sync(self, op_id: str) -> SyncResult:
        set_phase_context("fetch")
        snapshot = await self._store.read()
        blacklisted = await self._store.read_model_blacklist()

        records, manual = await asyncio.gather(
            self._catalog.fetch_models(),
            collect_manual_models(
                self._store.kv, self._http, self._settings.manual_url_check_timeout_s
            ),
        )
        online = build_grouped_online_models(
            records, blacklisted, PricingLimits.from_settings(self._settings)
        )

        set_phase_context("merge")
        fresh = merge_deep(online, manual)
        existing = snapshot.data or {"producers": {}}
        producers = reconcile(existing.get("producers"), fresh)
        result = SyncResult(
            op_id=op_id,
            outcome="unchanged",
            online_models=_count_variants(online),
            manual_models=_count_variants(manual),
        )

        set_phase_context("save")
        new_hash = hash_document(producers)
        if new_hash == await self._store.current_hash():
            logger.info("No significant changes detected (hash match)")
            result.new_hash = new_hash
            return result

        current_version = await self._store.current_version()
        if snapshot.exists and current_version != snapshot.version:
            logger.warning(
                "Version conflict: data modified by another process (read %s, now %s), aborting save",
                snapshot.version, current_version,
            )
            result.outcome = "conflict_aborted"
            return result

        await self._store.backup(snapshot.raw)
        document = {k: v for k, v in existing.items() if k != "producers"}
        document["producers"] = producers
        result.new_version = await self._store.write(
            document, op_id, "syncer", previous_version=current_version, content_hash=new_hash
        )
        result.new_hash = new_hash
        result.outcome = "written"
        return result
