# src/sync/manual.py — v1
"""Collect curator-entered models (``model:<id>`` records) for the syncer."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from modelsync.core.models import DEFAULT_VARIANT_NAME, VariantSource
from modelsync.kv.base_kv_store import BaseKVStore

logger = logging.getLogger(__name__)

MANUAL_MODEL_PREFIX = "model:"
DEFAULT_MANUAL_PRODUCER = "Vertex"
_OPTIONAL_FIELDS = ("url", "imagePath", "size", "ram")


async def read_manual_records(kv: BaseKVStore) -> list[dict[str, Any]]:
    """All parsable ``model:*`` records; unparsable entries are skipped."""
    keys = await kv.list_keys(MANUAL_MODEL_PREFIX)
    raws = await asyncio.gather(*(kv.get(k) for k in keys))
    records: list[dict[str, Any]] = []
    for key, raw in zip(keys, raws):
        if not raw:
            continue
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Skipping unparsable manual record %s", key)
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


async def url_is_reachable(
    record: dict[str, Any], http_client: httpx.AsyncClient, timeout_s: float
) -> bool:
    """HEAD-check ``record['url']``; records without a URL pass."""
    url = record.get("url")
    if not url:
        return True
    try:
        response = await http_client.head(url, timeout=timeout_s, follow_redirects=True)
    except httpx.HTTPError as e:
        logger.warning("Skipping model %r: URL check error (%s): %s", record.get("id"), type(e).__name__, url)
        return False
    if response.is_success:
        return True
    logger.warning(
        "Skipping model %r: URL check failed (status %d): %s",
        record.get("id"), response.status_code, url,
    )
    return False


def manual_variant(record: dict[str, Any]) -> dict[str, Any]:
    variant: dict[str, Any] = {
        "id": record["id"],
        "source": VariantSource.MANUAL.value,
        "tier": record.get("tier") or "free",
        "type": record.get("type"),
    }
    for key in _OPTIONAL_FIELDS:
        if record.get(key):
            variant[key] = record[key]
    variant["details"] = record["details"]
    return variant


async def collect_manual_models(
    kv: BaseKVStore,
    http_client: httpx.AsyncClient,
    timeout_s: float = 5.0,
) -> dict[str, Any]:
    """Producers tree of reachable manual models: producer → id → ``Default``."""
    try:
        records = await read_manual_records(kv)
    except Exception as e:
        logger.error("Failed to read manual models: %s", e)
        return {}
    if not records:
        logger.info("No manual models found")
        return {}

    checks = await asyncio.gather(*(url_is_reachable(r, http_client, timeout_s) for r in records))
    valid = [r for r, ok in zip(records, checks) if ok]
    logger.info("Found %d valid manual models (out of %d)", len(valid), len(records))

    grouped: dict[str, Any] = {}
    for record in valid:
        details = record.get("details")
        english = details.get("en") if isinstance(details, dict) else None
        if not record.get("id") or not isinstance(english, dict) or not english.get("title"):
            logger.warning("Skipping manual model with invalid structure: %.150s", json.dumps(record))
            continue
        producer = record.get("producer") or DEFAULT_MANUAL_PRODUCER
        grouped.setdefault(producer, {}).setdefault(record["id"], {})[DEFAULT_VARIANT_NAME] = (
            manual_variant(record)
        )
    return grouped
