"""Recursive size bounding for context bundles."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

MAX_STRING = 8000
MAX_ARRAY = 100
ELLIPSIS = "…"
CYCLE_MARKER = "[cycle]"


def truncate_text(text: str, max_string: int = MAX_STRING) -> str:
    """Cap ``text`` at ``max_string`` characters, the last one being ``…``."""
    if len(text) <= max_string:
        return text
    if max_string <= 0:
        return ""
    return text[: max_string - 1] + ELLIPSIS


def prune(value: Any, max_string: int = MAX_STRING, max_array: int = MAX_ARRAY) -> Any:
    """
    Return a size-bounded copy of ``value``.

    Strings longer than ``max_string`` are truncated, lists and tuples are cut
    to ``max_array`` items, mappings are walked recursively.  A container
    already on the current path is replaced by ``"[cycle]"``.  Scalars pass
    through untouched.  ``prune(prune(x)) == prune(x)``.
    """
    return _walk(value, max_string, max_array, set())


def _walk(value: Any, max_string: int, max_array: int, seen: set[int]) -> Any:
    if isinstance(value, str):
        return truncate_text(value, max_string)
    if isinstance(value, Mapping | list | tuple | set | frozenset):
        ident = id(value)
        if ident in seen:
            return CYCLE_MARKER
        seen.add(ident)
        try:
            if isinstance(value, Mapping):
                return {k: _walk(v, max_string, max_array, seen) for k, v in value.items()}
            items = list(value)[:max_array]
            return [_walk(v, max_string, max_array, seen) for v in items]
        finally:
            seen.discard(ident)
    return value
