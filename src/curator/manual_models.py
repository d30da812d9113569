# src/curator/manual_models.py — v1
"""Curator writes: manual-model CRUD and granular field edits.

Every write holds ``data_write_lock`` for its whole read-modify-write, so
the syncer (which yields while that lock is held) cannot interleave. The
edited document is written with a new version stamp; manual models are
mirrored to their individual ``model:<id>`` record.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from modelsync.core.models import DEFAULT_VARIANT_NAME, UNSAFE_KEYS, VariantSource
from modelsync.locking.keyed_lock import DATA_WRITE_LOCK, KeyedLock
from modelsync.logging.context import new_op_id, set_operation_context
from modelsync.merge.reconciler import merge_deep
from modelsync.sync.manual import MANUAL_MODEL_PREFIX, read_manual_records

if TYPE_CHECKING:
    from modelsync.config.settings import Settings
    from modelsync.storage.versioned_store import VersionedStore

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


class CuratorValidationError(ValueError):
    """Malformed curator payload (HTTP 400 at the API boundary)."""


class DocumentNotFoundError(LookupError):
    """Document or addressed entry does not exist (HTTP 404)."""


class ModelExistsError(Exception):
    """Create of a manual model whose id is already present (HTTP 409)."""


def sanitize_model_id(segment: str) -> str:
    """Strip a leading ``/`` and every character outside ``[A-Za-z0-9_-]``."""
    return _UNSAFE_ID_CHARS.sub("", segment.removeprefix("/")) if segment else ""


class ManualModelRecord(BaseModel):
    """Curator-entered model; unknown fields are kept as-is."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    producer: str = Field(min_length=1)
    type: str = Field(min_length=1)
    details: dict[str, Any]

    @field_validator("details")
    @classmethod
    def require_english_title(cls, v: dict[str, Any]) -> dict[str, Any]:
        english = v.get("en")
        if not isinstance(english, dict) or not english.get("title"):
            raise ValueError("details.en.title is required")
        return v


class FieldUpdate(BaseModel):
    """Set ``value`` at ``path`` inside a series (or one of its variants)."""

    producer: str = Field(min_length=1)
    series: str = Field(min_length=1)
    variant: str | None = None
    path: tuple[str, ...] = Field(min_length=1)
    value: Any = None

    @field_validator("path")
    @classmethod
    def reject_unsafe_segments(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for segment in v:
            if not segment or segment in UNSAFE_KEYS:
                raise ValueError(f"invalid path segment {segment!r}")
        return v

    @classmethod
    def from_dotted(cls, producer: str, series: str, field_path: str, value: Any, variant: str | None = None) -> FieldUpdate:
        return cls(
            producer=producer, series=series, variant=variant,
            path=tuple(field_path.split(".")), value=value,
        )

    def as_patch(self) -> dict[str, Any]:
        patch: Any = self.value
        for segment in reversed(self.path):
            patch = {segment: patch}
        return patch


class CuratorService:
    """Locked read-modify-write operations on behalf of operators."""

    def __init__(self, store: VersionedStore, locks: KeyedLock, settings: Settings) -> None:
        self._store = store
        self._locks = locks
        self._lock_ttl_s = settings.data_write_lock_ttl_s

    async def list_manual_models(self) -> list[dict[str, Any]]:
        records = await read_manual_records(self._store.kv)
        return sorted((r for r in records if r.get("id")), key=lambda r: str(r["id"]))

    async def save_manual_model(self, record: dict[str, Any], is_update: bool = False) -> dict[str, Any]:
        """Create or update a manual model; returns the stored variant.

        Raises:
            CuratorValidationError: Required fields missing.
            ModelExistsError: ``is_update`` is False and the id exists.
            LockError: Another writer holds the data lock.
        """
        try:
            model = ManualModelRecord.model_validate(record)
        except ValidationError as e:
            raise CuratorValidationError(f"Model data is missing required fields: {e}") from e

        op_id = new_op_id("curator")
        set_operation_context(op_id, "curator")
        async with self._locks.held(DATA_WRITE_LOCK, op_id, self._lock_ttl_s):
            snapshot = await self._store.read()
            document = snapshot.data or {"producers": {}}
            producers = document.setdefault("producers", {})
            series = producers.get(model.producer, {}).get(model.id)

            if not is_update and series:
                raise ModelExistsError(f"Model with ID '{model.id}' already exists.")

            existing = (series or {}).get(DEFAULT_VARIANT_NAME) or {}
            variant = merge_deep(existing, record)
            variant.setdefault("source", VariantSource.MANUAL.value)
            producers.setdefault(model.producer, {}).setdefault(model.id, {})[DEFAULT_VARIANT_NAME] = variant

            await self._store.write(document, op_id, "curator", previous_version=snapshot.version)
            await self._store.kv.put(f"{MANUAL_MODEL_PREFIX}{model.id}", json.dumps(variant))
            logger.info("Saved manual model %r (update=%s)", model.id, is_update)
            return variant

    async def delete_manual_model(self, model_id: str) -> bool:
        """Remove the model from the document and its record; True if it was listed."""
        model_id = sanitize_model_id(model_id)
        if not model_id:
            raise CuratorValidationError("Invalid or unsafe model ID provided.")

        op_id = new_op_id("curator")
        set_operation_context(op_id, "curator")
        async with self._locks.held(DATA_WRITE_LOCK, op_id, self._lock_ttl_s):
            snapshot = await self._store.read()
            if not snapshot.exists:
                return False

            document = snapshot.data
            producers = document.get("producers") or {}
            found = False
            for p_name in list(producers):
                if model_id in producers[p_name]:
                    del producers[p_name][model_id]
                    if not producers[p_name]:
                        del producers[p_name]
                    found = True
                    break

            if found:
                await self._store.write(document, op_id, "curator", previous_version=snapshot.version)
            await self._store.kv.delete(f"{MANUAL_MODEL_PREFIX}{model_id}")
            logger.info("Deleted manual model %r (listed=%s)", model_id, found)
            return found

    async def update_field(self, update: FieldUpdate) -> None:
        """Apply one granular edit.

        Raises:
            DocumentNotFoundError: No document, or the target entry is gone.
            LockError: Another writer holds the data lock.
        """
        op_id = new_op_id("curator")
        set_operation_context(op_id, "curator")
        async with self._locks.held(DATA_WRITE_LOCK, op_id, self._lock_ttl_s):
            snapshot = await self._store.read()
            if not snapshot.exists:
                raise DocumentNotFoundError("Main list not found. Cannot update.")

            document = snapshot.data
            series = (document.get("producers") or {}).get(update.producer, {}).get(update.series)
            if not isinstance(series, dict):
                raise DocumentNotFoundError(f"Series {update.producer}/{update.series} not found")

            if update.variant is None:
                series_map = document["producers"][update.producer]
                series_map[update.series] = merge_deep(series, update.as_patch())
            else:
                target = series.get(update.variant)
                if not isinstance(target, dict):
                    raise DocumentNotFoundError(
                        f"Variant {update.producer}/{update.series}/{update.variant} not found"
                    )
                updated = merge_deep(target, update.as_patch())
                series[update.variant] = updated
                if target.get("source") == VariantSource.MANUAL.value and target.get("id"):
                    logger.info("Granular update for manual model %r, syncing its record", target["id"])
                    await self._store.kv.put(f"{MANUAL_MODEL_PREFIX}{target['id']}", json.dumps(updated))

            await self._store.write(document, op_id, "curator", previous_version=snapshot.version)
