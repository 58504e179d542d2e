"""Shared pytest fixtures: in-memory store, scripted provider, manual clock."""

from __future__ import annotations

import asyncio
import re
import uuid
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from bizzi.intents.registry import IntentRegistry, build_default_registry
from bizzi.pipeline.cache import ContextCache
from bizzi.pipeline.classifier import IntentClassifier
from bizzi.pipeline.context import ContextAssembler
from bizzi.pipeline.invoker import ModelInvoker
from bizzi.pipeline.orchestrator import ConversationPipeline
from bizzi.prompts.composer import PromptComposer
from bizzi.providers.base import LLMProvider, LLMResponse


def _like(pattern: str) -> re.Pattern[str]:
    parts = (".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in pattern)
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


class FakeStore:
    """In-memory ``DataStore``; rows live in plain dicts keyed by table name."""

    def __init__(self, tables: Mapping[str, Sequence[Mapping[str, Any]]] | None = None):
        self.tables: dict[str, list[dict[str, Any]]] = {k: [dict(r) for r in v] for k, v in (tables or {}).items()}
        self.selects: Counter[str] = Counter()
        self.inserts: list[tuple[str, dict[str, Any]]] = []
        self.failing: set[str] = set()

    def add(self, table: str, *rows: Mapping[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        eq: Mapping[str, Any] | None = None,
        gte: Mapping[str, Any] | None = None,
        lte: Mapping[str, Any] | None = None,
        ilike: Mapping[str, str] | None = None,
        ilike_any: Mapping[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.selects[table] += 1
        if table in self.failing:
            raise RuntimeError(f"{table} unavailable")

        rows = list(self.tables.get(table, []))
        for k, v in (eq or {}).items():
            rows = [r for r in rows if r.get(k) == v]
        for k, v in (gte or {}).items():
            rows = [r for r in rows if r.get(k) is not None and r[k] >= v]
        for k, v in (lte or {}).items():
            rows = [r for r in rows if r.get(k) is not None and r[k] <= v]
        for k, p in (ilike or {}).items():
            rx = _like(p)
            rows = [r for r in rows if rx.fullmatch(str(r.get(k) or ""))]
        if ilike_any:
            rxs = [(k, _like(p)) for k, p in ilike_any.items()]
            rows = [r for r in rows if any(rx.fullmatch(str(r.get(k) or "")) for k, rx in rxs)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns:
            rows = [{c: r.get(c) for c in columns} for r in rows]
        return [dict(r) for r in rows]

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        if table in self.failing:
            raise RuntimeError(f"{table} unavailable")
        stored = {"id": str(uuid.uuid4()), **row}
        self.tables.setdefault(table, []).append(stored)
        self.inserts.append((table, stored))
        return dict(stored)


class FakeProvider(LLMProvider):
    """Scripted provider: fixed reply, error response, exception or a slow call."""

    def __init__(
        self,
        content: str | None = "Here is the plan.",
        *,
        error: str | None = None,
        exc: Exception | None = None,
        delay: float = 0.0,
    ):
        super().__init__()
        self.content = content
        self.error = error
        self.exc = exc
        self.delay = delay
        self.calls: list[list[dict[str, Any]]] = []
        self.cancelled = False

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 1200,
        temperature: float = 0.5,
    ) -> LLMResponse:
        self.calls.append(messages)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.exc is not None:
            raise self.exc
        if self.error is not None:
            return LLMResponse(content=None, finish_reason="error", error=self.error)
        return LLMResponse(content=self.content, model=model or "fake-model")

    def get_default_model(self) -> str:
        return "fake-model"


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def cache(clock: ManualClock) -> ContextCache:
    return ContextCache(ttl_seconds=60, max_entries=32, clock=clock)


@pytest.fixture
def registry() -> IntentRegistry:
    return build_default_registry()


@pytest.fixture
def classifier(registry: IntentRegistry) -> IntentClassifier:
    return IntentClassifier(registry)


@pytest.fixture
def assembler(store: FakeStore, cache: ContextCache) -> ContextAssembler:
    return ContextAssembler(store, cache)


def make_pipeline(
    registry: IntentRegistry,
    store: FakeStore,
    provider: LLMProvider,
    cache: ContextCache,
    *,
    production: bool = False,
    timeout_s: float = 5.0,
) -> ConversationPipeline:
    return ConversationPipeline(
        registry=registry,
        classifier=IntentClassifier(registry),
        assembler=ContextAssembler(store, cache, production=production),
        composer=PromptComposer(),
        invoker=ModelInvoker(provider, model="fake-model", timeout_s=timeout_s),
        production=production,
    )


@pytest.fixture
def pipeline(
    registry: IntentRegistry, store: FakeStore, provider: FakeProvider, cache: ContextCache
) -> ConversationPipeline:
    return make_pipeline(registry, store, provider, cache)
