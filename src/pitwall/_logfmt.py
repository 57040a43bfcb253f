"""Helpers for compact debug logging.

Live-timing payloads can be large (compressed ``.z`` blobs, full timing
tables). This module trims values before they are emitted in DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

# Keys whose values carry feed bookkeeping rather than readable data.
_OPAQUE_VALUE_KEYS: frozenset[str] = frozenset({"_kf"})


def summarize_for_log(value: Any, *, max_string: int = 120, max_items: int = 20, _depth: int = 0) -> Any:
    """Return a trimmed copy of *value* suitable for debug logs."""
    if _depth > 8:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<{len(value)} chars>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        summarized: dict[str, Any] = {}
        for index, (k, v) in enumerate(value.items()):
            if index >= max_items:
                summarized["…"] = f"<{len(value) - max_items} more keys>"
                break
            key = str(k)
            if key.lower() in _OPAQUE_VALUE_KEYS:
                summarized[key] = "<omitted>"
            else:
                summarized[key] = summarize_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return summarized

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        items = [
            summarize_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            for v in list(value)[:max_items]
        ]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more items>")
        return items

    return repr(value)
