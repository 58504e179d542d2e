"""Ordered intent table.

Order matters only for the no-score fallback scan: specific intents first,
broad navigation/help last.  Anything unmatched resolves to ``general``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from functools import lru_cache

from loguru import logger

from bizzi.intents import calendar, email, financials, marketing, tax, workspace
from bizzi.intents.base import IntentDescriptor

FALLBACK_KEY = "general"


class IntentRegistry:
    """Immutable, ordered collection of ``IntentDescriptor`` objects."""

    def __init__(self, descriptors: Iterable[IntentDescriptor], fallback: IntentDescriptor):
        ordered: list[IntentDescriptor] = []
        seen: set[str] = {fallback.key}
        for d in descriptors:
            if d.key in seen:
                raise ValueError(f"duplicate intent key: {d.key}")
            seen.add(d.key)
            ordered.append(d)
        self._ordered = tuple(ordered)
        self._by_key = {d.key: d for d in ordered}
        self._by_key[fallback.key] = fallback
        self.fallback = fallback

    def __iter__(self) -> Iterator[IntentDescriptor]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def keys(self) -> list[str]:
        return [d.key for d in self._ordered]

    def get(self, key: str | None) -> IntentDescriptor | None:
        return self._by_key.get(key or "")

    def resolve(self, key: str | None) -> IntentDescriptor:
        """Descriptor for ``key``; unknown keys map to the fallback."""
        return self._by_key.get(key or "", self.fallback)

    def label(self, key: str) -> str:
        d = self._by_key.get(key)
        return d.label if d else key.replace("_", " ")

    def module_for(self, key: str | None) -> str:
        return self.resolve(key).module

    def first_match(self, message: str) -> IntentDescriptor:
        """First descriptor whose predicate accepts ``message``, else the fallback."""
        for d in self._ordered:
            try:
                if d.predicate(message):
                    return d
            except Exception as e:
                logger.debug(f"Predicate for {d.key} raised during scan: {e}")
        return self.fallback

    def describe(self) -> list[dict]:
        return [d.describe() for d in self._ordered]


def build_default_registry() -> IntentRegistry:
    ordered = (
        # Email first (specific comms)
        *email.INTENTS,
        # Scheduling / money
        calendar.SCHEDULE,
        financials.INTENTS[0],  # affordability_check
        # Docs
        workspace.DOCS_FIND,
        # Financials (specific → broader)
        *financials.INTENTS[1:],
        *tax.INTENTS,
        *marketing.INTENTS,
        # Calendar queries
        calendar.AGENDA,
        # Navigation / help (broadest last)
        workspace.NAVIGATE,
        workspace.APP_HELP,
    )
    return IntentRegistry(ordered, fallback=workspace.GENERAL_INTENT)


@lru_cache
def get_registry() -> IntentRegistry:
    """Process-wide default registry (built once)."""
    return build_default_registry()
