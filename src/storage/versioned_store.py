# src/storage/versioned_store.py — v1
"""Single JSON document plus version stamp on top of a BaseKVStore.

The store has no transactions: the document (``list``), its version stamp
(``version``) and the syncer's content hash (``hash``) are separate keys.
Atomicity across them comes only from the optimistic protocol used by
callers: read document + version, compute, re-read ``version`` right before
writing and discard the work when it moved.

Version stamps are ISO-8601 UTC timestamps with millisecond precision,
optionally followed by ``#<tag>`` (e.g. ``#cleanup``). ``next_version``
never returns a stamp that sorts at or below the previous one, so versions
grow lexicographically even across clock skew and tagged writes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from modelsync.core.hashing import canonical_json
from modelsync.core.models import VersionedDocument
from modelsync.kv.base_kv_store import BaseKVStore

logger = logging.getLogger(__name__)

LIST_KEY = "list"
VERSION_KEY = "version"
HASH_KEY = "hash"
BACKUP_KEY = "list_backup"
DAILY_BACKUP_PREFIX = "list_backup_"
MODEL_BLACKLIST_KEY = "model_blacklist"

WriterRole = Literal["supervisor", "syncer", "curator", "cleanup"]

_ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


class DocumentCorruptError(Exception):
    """Raised when the stored document is not valid JSON."""


def _format_stamp(moment: datetime) -> str:
    # Same shape as JavaScript's Date.toISOString()
    return moment.astimezone(timezone.utc).strftime(_ISO_FORMAT)[:-3] + "Z"


def _parse_stamp(stamp: str) -> datetime | None:
    try:
        return datetime.strptime(stamp.rstrip("Z"), _ISO_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def next_version(
    previous: str | None, tag: str | None = None, now: datetime | None = None
) -> str:
    """Return a version stamp strictly greater than ``previous``."""
    moment = now or datetime.now(timezone.utc)
    stamp = _format_stamp(moment)

    if previous:
        prev_base = previous.split("#", 1)[0]
        prev_moment = _parse_stamp(prev_base)
        if prev_moment is not None and stamp <= prev_base:
            stamp = _format_stamp(prev_moment + timedelta(milliseconds=1))

    return f"{stamp}#{tag}" if tag else stamp


class VersionedStore:
    """Read/write the catalog document with its version stamp."""

    def __init__(self, store: BaseKVStore) -> None:
        self._store = store

    @property
    def kv(self) -> BaseKVStore:
        return self._store

    async def read(self) -> VersionedDocument:
        """Read document and version together.

        Raises:
            DocumentCorruptError: If the stored document cannot be parsed.
        """
        raw, version = await asyncio.gather(
            self._store.get(LIST_KEY), self._store.get(VERSION_KEY)
        )
        if not raw:
            return VersionedDocument(data=None, version=version, raw=None)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DocumentCorruptError(f"Failed to parse stored document: {e}") from e
        if not isinstance(data, dict):
            raise DocumentCorruptError("Stored document is not a JSON object")
        return VersionedDocument(data=data, version=version, raw=raw)

    async def current_version(self) -> str | None:
        return await self._store.get(VERSION_KEY)

    async def current_hash(self) -> str | None:
        return await self._store.get(HASH_KEY)

    async def write(
        self,
        document: dict[str, Any],
        op_id: str,
        role: WriterRole,
        previous_version: str | None = None,
        tag: str | None = None,
        content_hash: str | None = None,
    ) -> str:
        """Stamp and persist ``document``; returns the new version.

        Callers are responsible for the version check; this method only
        writes. The document is stamped in place with run metadata.
        """
        new_version = next_version(previous_version, tag=tag)
        document["version"] = new_version
        if role in ("supervisor", "cleanup"):
            document["last_supervisor_run"] = op_id
            document["last_supervisor_update_ts"] = new_version
        elif role == "syncer":
            document["last_syncer_run"] = op_id
        else:
            document["last_curator_update"] = op_id

        writes = [
            self._store.put(LIST_KEY, canonical_json(document)),
            self._store.put(VERSION_KEY, new_version),
        ]
        if content_hash is not None:
            writes.append(self._store.put(HASH_KEY, content_hash))
        await asyncio.gather(*writes)

        logger.info("Document written by %s (%s). New version: %s", role, op_id, new_version)
        return new_version

    async def backup(self, raw: str | None, today: str | None = None) -> None:
        """Keep an immediate backup and one snapshot per day; never raises."""
        if not raw:
            return
        day = today or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        daily_key = f"{DAILY_BACKUP_PREFIX}{day}"
        try:
            await self._store.put(BACKUP_KEY, raw)
            if await self._store.get(daily_key) is None:
                logger.info("Creating daily snapshot: %s", daily_key)
                await self._store.put(daily_key, raw)
        except Exception as e:
            logger.error("Failed to create backups: %s", e)

    async def read_model_blacklist(self) -> set[str]:
        """Model ids excluded from the catalog by operators."""
        raw = await self._store.get(MODEL_BLACKLIST_KEY)
        if not raw:
            return set()
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unparsable %s entry", MODEL_BLACKLIST_KEY)
            return set()
        return {str(i) for i in ids} if isinstance(ids, list) else set()
