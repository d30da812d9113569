# src/kv/json_store.py — v1
"""JSON file-based key-value store (default KV_BACKEND=json).

Stores each key as an individual JSON envelope under KV_ROOT/<namespace>:
``{"value": "...", "expires_at": <epoch seconds or null>}``.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from urllib.parse import quote, unquote

from modelsync.kv.base_kv_store import BaseKVStore

logger = logging.getLogger(__name__)


class JsonKVStore(BaseKVStore):
    """File-based store; one file per key, TTL checked on read."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> str | None:
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read kv entry %s: %s", key, e)
            return None

        expires_at = envelope.get("expires_at")
        if expires_at is not None and time.time() >= expires_at:
            path.unlink(missing_ok=True)
            return None
        return envelope.get("value")

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        envelope = {
            "value": value,
            "expires_at": None if ttl_seconds is None else time.time() + ttl_seconds,
        }
        path = self._entry_path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(envelope), encoding="utf-8")
        tmp.replace(path)

    async def delete(self, key: str) -> None:
        self._entry_path(key).unlink(missing_ok=True)

    async def list_keys(self, prefix: str = "") -> list[str]:
        keys: list[str] = []
        for path in self._root.glob("*.json"):
            key = unquote(path.stem)
            if key.startswith(prefix) and await self.get(key) is not None:
                keys.append(key)
        return sorted(keys)

    def _entry_path(self, key: str) -> Path:
        """Return file path for a key (percent-encoded, so ':' and '/' are safe)."""
        return self._root / f"{quote(key, safe='')}.json"
