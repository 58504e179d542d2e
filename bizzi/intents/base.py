"""Intent descriptor: the fixed capability set every intent plugs into.

An intent can always classify (``predicate``); fetching (``recipe``),
caching (``cache_key``) and finalizing (``post_process``) are optional.
Absent capabilities are the explicit no-ops below, so the pipeline never
probes for attributes at runtime.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from bizzi.pipeline.types import IntentOutput, RequestHints
from bizzi.storage.store import DataStore

# Module tags used for route bias and persona stance.
EMAIL = "email"
FIN = "fin"
TAX = "tax"
MKT = "mkt"
INV = "inv"
OPS = "ops"
DOCS = "docs"
BILLING = "billing"
NAVHELP = "navhelp"
GENERAL = "general"

# Category → persona module key.
CATEGORY_MODULES: dict[str, str] = {
    EMAIL: "email",
    FIN: "financials",
    TAX: "tax",
    MKT: "marketing",
    INV: "investments",
    OPS: "calendar",
    DOCS: "docs",
    BILLING: "settings",
    NAVHELP: "bizzy",
    GENERAL: "bizzy",
}


@dataclass(slots=True)
class FetchContext:
    """Scoped inputs handed to a recipe / cache-key function."""

    user_id: str | None
    business_id: str | None
    message: str
    route: str
    hints: RequestHints
    store: DataStore
    now: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(slots=True)
class FinalizeContext:
    """Inputs handed to a post-process hook."""

    intent: str
    user_id: str | None
    business_id: str | None
    message: str
    hints: RequestHints
    bundle: Mapping[str, Any]
    store: DataStore


Predicate = Callable[[str], bool]
Recipe = Callable[[FetchContext], Awaitable[Mapping[str, Any]]]
CacheKeyFn = Callable[[FetchContext], "str | None"]
PostProcess = Callable[[IntentOutput, FinalizeContext], Awaitable["IntentOutput | str"]]


# ── Explicit no-op capabilities ─────────────────────────────────────


async def no_recipe(ctx: FetchContext) -> Mapping[str, Any]:
    return {}


def no_cache_key(ctx: FetchContext) -> str | None:
    return None


async def no_post_process(output: IntentOutput, ctx: FinalizeContext) -> IntentOutput:
    return output


def never(message: str) -> bool:
    return False


# ── Nudges ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Nudge:
    """Keyword bonus layered on top of the boolean predicate."""

    pattern: re.Pattern[str]
    weight: float

    def bonus(self, text: str) -> float:
        return self.weight if self.pattern.search(text) else 0.0


def nudge(pattern: str, weight: float) -> Nudge:
    return Nudge(re.compile(pattern, re.IGNORECASE), weight)


def matches(*patterns: str) -> Predicate:
    """Predicate that is true when *every* pattern matches (case-insensitive)."""
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]

    def predicate(message: str) -> bool:
        return all(c.search(message or "") for c in compiled)

    return predicate


# ── Descriptor ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class IntentDescriptor:
    key: str
    category: str
    label: str
    predicate: Predicate = never
    recipe: Recipe = no_recipe
    cache_key: CacheKeyFn = no_cache_key
    post_process: PostProcess = no_post_process
    nudges: tuple[Nudge, ...] = ()
    style_family: str = "conversational"
    template: str = "general"
    persona_hint: str = ""

    @property
    def has_recipe(self) -> bool:
        return self.recipe is not no_recipe

    @property
    def has_cache_key(self) -> bool:
        return self.cache_key is not no_cache_key

    @property
    def has_post_process(self) -> bool:
        return self.post_process is not no_post_process

    @property
    def module(self) -> str:
        return CATEGORY_MODULES.get(self.category, "bizzy")

    def nudge_bonus(self, text: str) -> float:
        return sum(n.bonus(text) for n in self.nudges)

    def describe(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "category": self.category,
            "module": self.module,
            "label": self.label,
            "recipe": self.has_recipe,
            "cache": self.has_cache_key,
            "post_process": self.has_post_process,
            "style_family": self.style_family,
        }
