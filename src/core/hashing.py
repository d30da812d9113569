# src/core/hashing.py — v2
"""Source-text and document hashing.

``simple_hash`` must produce exactly the same strings as the admin panel's
JavaScript implementation: a 32-bit rolling hash over UTF-16 code units,
rendered as ``"h" + base36``. Lone surrogates (legal in decoded JSON) are
hashed as their raw code unit.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return sign + "".join(reversed(digits))


def simple_hash(text: str | None) -> str:
    """Non-cryptographic hash of an English source text."""
    if not text:
        return "h0"
    data = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code_unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return "h" + _to_base36(h)


def canonical_json(data: Any) -> str:
    """Compact JSON preserving key insertion order (matches JSON.stringify)."""
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def hash_document(data: Any) -> str:
    """SHA-256 hex digest of a document's canonical JSON."""
    return hashlib.sha256(canonical_json(data).encode("utf-8", "surrogatepass")).hexdigest()
