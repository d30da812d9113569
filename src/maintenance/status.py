# src/maintenance/status.py — v1
"""Operator status report: pending / failed enrichment counts and lock holders."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Iterator

from modelsync.core.models import (
    MANUAL_DETAIL_FIELDS,
    PROCESSING_STATUS_KEY,
    SERIES_DESCRIPTION_KEY,
    ProcessingStatus,
    StatusReport,
    VariantSource,
)
from modelsync.locking.keyed_lock import CLEANUP_LOCK, SUPERVISOR_LOCK, SYNCER_LOCK, KeyedLock
from modelsync.storage.versioned_store import DocumentCorruptError, VersionedStore
from modelsync.tasks.finder import find_description_tasks, iter_series, iter_variants

logger = logging.getLogger(__name__)

PENDING_STATUSES = frozenset({
    None,
    ProcessingStatus.NOT_PROCESSED.value,
    ProcessingStatus.TRANSLATION_RETRY.value,
    ProcessingStatus.GENERATED.value,
})


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def iter_field_states(
    document: dict[str, Any], target_languages: list[str]
) -> Iterator[tuple[bool, str | None]]:
    """Yield ``(translated, status)`` for every enrichable field and language.

    The English series description yields its own status once, with
    ``translated=True``.
    """
    for _, _, series_obj in iter_series(document):
        desc = _mapping(series_obj.get(SERIES_DESCRIPTION_KEY))
        if desc.get("en"):
            status = _mapping(desc.get(PROCESSING_STATUS_KEY))
            yield True, status.get("en")
            for lang in target_languages:
                yield bool(desc.get(lang)), status.get(lang)

        for _, variant in iter_variants(series_obj):
            description = _mapping(variant.get("description"))
            details = _mapping(variant.get("details"))
            if description.get("en"):
                status = _mapping(description.get(PROCESSING_STATUS_KEY))
                for lang in target_languages:
                    yield bool(description.get(lang)), status.get(lang)
            elif variant.get("source") == VariantSource.MANUAL.value and details.get("en"):
                english = _mapping(details.get("en"))
                status_root = _mapping(details.get(PROCESSING_STATUS_KEY))
                for lang in target_languages:
                    translated = _mapping(details.get(lang))
                    lang_status = _mapping(status_root.get(lang))
                    for field in MANUAL_DETAIL_FIELDS:
                        if english.get(field):
                            yield bool(translated.get(field)), lang_status.get(field)


async def generate_status_report(
    store: VersionedStore, locks: KeyedLock, target_languages: list[str]
) -> StatusReport:
    """Aggregate counts over the stored document; never raises on bad data."""
    snapshot, *holders = await asyncio.gather(
        _safe_read(store),
        locks.holder(SUPERVISOR_LOCK),
        locks.holder(SYNCER_LOCK),
        locks.holder(CLEANUP_LOCK),
    )
    lock_holders = dict(zip((SUPERVISOR_LOCK, SYNCER_LOCK, CLEANUP_LOCK), holders))
    now = datetime.now(timezone.utc).isoformat()

    if snapshot is None:
        return StatusReport(
            status="error", message="Models list not found.", lock_holders=lock_holders, timestamp=now,
        )

    pending = failed = 0
    for translated, status in iter_field_states(snapshot, target_languages):
        if not translated or status in PENDING_STATUSES:
            pending += 1
        if status == ProcessingStatus.FAILED.value:
            failed += 1

    return StatusReport(
        status="ok",
        last_supervisor_update=snapshot.get("last_supervisor_update_ts") or "N/A",
        last_supervisor_run_id=snapshot.get("last_supervisor_run") or "N/A",
        lock_holders=lock_holders,
        pending_translation_tasks=pending,
        permanently_failed_tasks=failed,
        pending_description_tasks=len(find_description_tasks(snapshot)),
        timestamp=now,
    )


async def _safe_read(store: VersionedStore) -> dict[str, Any] | None:
    try:
        return (await store.read()).data
    except DocumentCorruptError as e:
        logger.error("Status report: %s", e)
        return None
