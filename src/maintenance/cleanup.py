# src/maintenance/cleanup.py — v2
"""Reset over-long (corrupted) descriptions so they are regenerated.

Rules:
  1. series_description.en longer than ``series_en`` is dropped, with its
     EN status, so Phase 0 generates it again;
  2. series_description.<lang> longer than ``series_translation`` is
     dropped with its status and source hash;
  3. variant translations (online ``description.<lang>``, manual
     ``details.<lang>.<field>``) longer than ``variant_translation`` are
     dropped with their status and source hash.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from modelsync.core.models import (
    MANUAL_DETAIL_FIELDS,
    PROCESSING_STATUS_KEY,
    SERIES_DESCRIPTION_KEY,
    CleanupReport,
    VariantSource,
)
from modelsync.locking.keyed_lock import CLEANUP_LOCK, SUPERVISOR_LOCK, SYNCER_LOCK, KeyedLock
from modelsync.logging.context import new_op_id, set_operation_context
from modelsync.tasks.finder import iter_series, iter_variants

if TYPE_CHECKING:
    from modelsync.config.settings import Settings
    from modelsync.storage.versioned_store import VersionedStore

logger = logging.getLogger(__name__)

CLEANUP_VERSION_TAG = "cleanup"


@dataclass(frozen=True)
class CleanupThresholds:
    series_en: int = 200
    series_translation: int = 200
    variant_translation: int = 2000

    @classmethod
    def from_settings(cls, settings: Settings) -> CleanupThresholds:
        return cls(
            series_en=settings.corrupted_series_en_desc_threshold,
            series_translation=settings.corrupted_series_translation_threshold,
            variant_translation=settings.corrupted_variant_translation_threshold,
        )


def _too_long(value: Any, limit: int) -> bool:
    return isinstance(value, str) and len(value) > limit


def _drop_status(status: Any, key: str, hash_key: str | None = None) -> None:
    if isinstance(status, dict):
        status.pop(key, None)
        if hash_key:
            status.pop(hash_key, None)


def clean_document(
    document: dict[str, Any], target_languages: list[str], limits: CleanupThresholds
) -> list[str]:
    """Remove over-long fields in place; returns ``"<path> (Len: n)"`` entries."""
    cleaned: list[str] = []

    for p_name, s_name, series_obj in iter_series(document):
        desc = series_obj.get(SERIES_DESCRIPTION_KEY)
        if isinstance(desc, dict):
            path = f"{p_name}/{s_name}/series_description"
            status = desc.get(PROCESSING_STATUS_KEY)
            if _too_long(desc.get("en"), limits.series_en):
                cleaned.append(f"{path}.en (Len: {len(desc['en'])})")
                del desc["en"]
                _drop_status(status, "en")
            for lang in target_languages:
                if _too_long(desc.get(lang), limits.series_translation):
                    cleaned.append(f"{path}.{lang} (Len: {len(desc[lang])})")
                    del desc[lang]
                    _drop_status(status, lang, f"{lang}_source_hash")

        for v_name, variant in iter_variants(series_obj):
            prefix = f"{p_name}/{s_name}/{v_name}"
            description = variant.get("description")
            details = variant.get("details")

            if isinstance(description, dict):
                status = description.get(PROCESSING_STATUS_KEY)
                for lang in target_languages:
                    if _too_long(description.get(lang), limits.variant_translation):
                        cleaned.append(f"{prefix}/description.{lang} (Len: {len(description[lang])})")
                        del description[lang]
                        _drop_status(status, lang, f"{lang}_source_hash")
            elif variant.get("source") == VariantSource.MANUAL.value and isinstance(details, dict):
                status_root = details.get(PROCESSING_STATUS_KEY)
                for lang in target_languages:
                    values = details.get(lang)
                    if not isinstance(values, dict):
                        continue
                    for field in MANUAL_DETAIL_FIELDS:
                        if _too_long(values.get(field), limits.variant_translation):
                            cleaned.append(f"{prefix}/details.{lang}.{field} (Len: {len(values[field])})")
                            del values[field]
                            lang_status = status_root.get(lang) if isinstance(status_root, dict) else None
                            _drop_status(lang_status, field, f"{field}_source_hash")

    return cleaned


async def run_cleanup(store: VersionedStore, locks: KeyedLock, settings: Settings) -> CleanupReport:
    """Maintenance sweep; refuses to run alongside the supervisor or syncer."""
    op_id = new_op_id("cleanup")
    set_operation_context(op_id, "cleanup")

    for key in (SUPERVISOR_LOCK, SYNCER_LOCK):
        holder = await locks.holder(key)
        if holder:
            logger.warning("Cleanup refused: %s held by %s", key, holder)
            return CleanupReport(status="error", message=f"Cannot run cleanup while {key} is held by {holder}.")

    if not await locks.acquire(CLEANUP_LOCK, op_id, settings.cleanup_lock_ttl_s):
        return CleanupReport(status="error", message="Cleanup is already running.")

    try:
        snapshot = await store.read()
        if not snapshot.exists:
            return CleanupReport(status="ok", message="Models list is empty, nothing to clean.")

        limits = CleanupThresholds.from_settings(settings)
        logger.info(
            "Cleanup rules: series EN > %d, series translation > %d, variant translation > %d",
            limits.series_en, limits.series_translation, limits.variant_translation,
        )
        document = snapshot.data
        cleaned = clean_document(document, settings.target_languages_list, limits)
        if not cleaned:
            logger.info("No corrupted descriptions found")
            return CleanupReport(status="ok", message="No items to clean.")

        current_version = await store.current_version()
        if current_version != snapshot.version:
            logger.warning(
                "Version conflict: data modified by another process (read %s, now %s), aborting cleanup",
                snapshot.version, current_version,
            )
            return CleanupReport(
                status="error",
                message="Data was modified by another process during cleanup. Please retry.",
            )

        logger.info("Found and reset %d corrupted fields", len(cleaned))
        new_version = await store.write(
            document, op_id, "cleanup", previous_version=snapshot.version, tag=CLEANUP_VERSION_TAG,
        )
        return CleanupReport(
            status="success",
            message=f"Successfully cleaned {len(cleaned)} fields.",
            cleaned_items=cleaned,
            new_version=new_version,
        )
    finally:
        await locks.release(CLEANUP_LOCK)
