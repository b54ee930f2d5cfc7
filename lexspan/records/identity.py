from __future__ import annotations

import re
import time
from typing import Optional

_RE_TIMESTAMP_PREFIX = re.compile(r"^(\d+)(?:-|$)")


def now_ms() -> int:
    return int(time.time() * 1000)


def content_hash(value: str) -> str:
    """
    32-bit rolling string hash (``h = h * 31 + code_unit``), absolute value,
    as 8 zero-padded hex digits. Code units are UTF-16 so ids stay
    compatible with ones produced by the browser client.
    """
    data = value.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(abs(h), "08x")


def generate_record_id(
    target_lexeme: str,
    source_context: str,
    batch_index: int,
    item_index: int,
    timestamp_ms: Optional[int] = None,
) -> str:
    """``{timestamp}-{batch}-{item}-{hash}``; the hash covers text, context and indices."""
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    digest = content_hash(f"{target_lexeme}-{source_context}-{batch_index}-{item_index}")
    return f"{timestamp_ms}-{batch_index}-{item_index}-{digest}"


def record_timestamp(record_id: str) -> Optional[int]:
    """Creation time (ms) encoded at the front of an id, or None."""
    m = _RE_TIMESTAMP_PREFIX.match(str(record_id))
    return int(m.group(1)) if m else None
