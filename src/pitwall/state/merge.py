"""Deep merge of JSON-shaped patches.

Merge semantics: mappings recurse, every other value (lists included)
replaces whatever was stored under the same key.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def deep_merge(target: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay *patch* onto *target* in place and return *target*.

    Values taken from *patch* are deep-copied so later mutation of the
    patch (or of the stored state) cannot leak across.
    """
    for key, value in patch.items():
        if is_mapping(value):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            deep_merge(existing, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def merged(state: Any, patch: Any) -> Any:
    """Return the state after applying *patch*, mutating *state* where possible.

    A missing state adopts a copy of the patch; a non-mapping patch (or a
    non-mapping state) is replaced wholesale.
    """
    if state is None or not isinstance(state, dict) or not is_mapping(patch):
        return copy.deepcopy(patch)
    return deep_merge(state, patch)
