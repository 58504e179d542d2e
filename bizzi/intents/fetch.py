"""Helpers shared by recipes."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


async def gather_settled(*lookups: Awaitable[T], default: T) -> list[T]:
    """Run unrelated lookups concurrently; a failed one yields ``default``.

    Siblings are never cancelled by one lookup failing.
    """
    results = await asyncio.gather(*lookups, return_exceptions=True)
    out: list[T] = []
    for i, res in enumerate(results):
        if isinstance(res, BaseException):
            if isinstance(res, asyncio.CancelledError):
                raise res
            logger.debug(f"Lookup #{i} failed, using default: {res}")
            out.append(default)
        else:
            out.append(res)
    return out


def int_match(pattern: str, text: str, default: int, group: int = 1) -> int:
    """First integer captured by ``pattern`` in ``text``, else ``default``."""
    m = re.search(pattern, text or "", re.IGNORECASE)
    if not m:
        return default
    try:
        return int(m.group(group))
    except (TypeError, ValueError):
        return default


def normalized(text: str, limit: int) -> str:
    return (text or "").strip().lower()[:limit]


def rows_or_empty(rows: Any) -> list[dict[str, Any]]:
    return list(rows) if isinstance(rows, list) else []
