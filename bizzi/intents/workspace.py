"""App-level intents: docs lookup, navigation, help, and the general fallback."""

from __future__ import annotations

import re
from typing import Any

from bizzi.intents.base import DOCS, GENERAL, NAVHELP, FetchContext, FinalizeContext, IntentDescriptor, matches
from bizzi.pipeline.types import Action, IntentOutput

ROUTE_MAP: dict[str, str] = {
    "bizzy": "/dashboard/bizzy",
    "financials": "/dashboard/accounting",
    "marketing": "/dashboard/marketing",
    "tax": "/dashboard/tax",
    "investments": "/dashboard/investments",
    "calendar": "/dashboard/calendar",
    "settings": "/dashboard/settings",
    "docs": "/dashboard/bizzy-docs",
    "email": "/dashboard/email",
}

# Words in a request that map onto a ROUTE_MAP key.
_ROUTE_WORDS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), key)
    for p, key in (
        (r"\b(financials?|accounting|books)\b", "financials"),
        (r"\bmarketing\b", "marketing"),
        (r"\btax(es)?\b", "tax"),
        (r"\binvestments?\b", "investments"),
        (r"\bcalendar\b", "calendar"),
        (r"\bsettings\b", "settings"),
        (r"\bdocs?\b", "docs"),
        (r"\b(email|inbox)\b", "email"),
        (r"\bdashboard\b", "bizzy"),
    )
)

HELP_MODULES = ("bizzy", "financials", "marketing", "tax", "investments", "calendar", "docs", "settings")

_DOC_STOPWORDS = frozenset({"find", "open", "my", "the", "a", "an", "doc", "docs", "document", "one-pager", "please", "me", "for", "about", "on"})


def route_for(message: str) -> str | None:
    for pattern, key in _ROUTE_WORDS:
        if pattern.search(message or ""):
            return ROUTE_MAP[key]
    return None


def doc_query(message: str) -> str:
    words = re.findall(r"[\w'-]+", (message or "").lower())
    return " ".join(w for w in words if w not in _DOC_STOPWORDS)[:80]


# ── docs_find ───────────────────────────────────────────────────────


async def docs_find_recipe(ctx: FetchContext) -> dict[str, Any]:
    query = doc_query(ctx.message)
    docs = await ctx.store.select(
        "bizzy_docs",
        columns=["id", "title", "category", "tags", "created_at"],
        eq={"business_id": ctx.business_id},
        ilike={"title": f"%{query}%"} if query else None,
        order_by="created_at",
        descending=True,
        limit=10,
    )
    return {"docs": docs, "query": query}


# ── navigate ────────────────────────────────────────────────────────


async def navigate_recipe(ctx: FetchContext) -> dict[str, Any]:
    return {"routeMap": dict(ROUTE_MAP), "target": route_for(ctx.message)}


async def navigate_post_process(output: IntentOutput, ctx: FinalizeContext) -> IntentOutput:
    target = ctx.bundle.get("target") or route_for(ctx.message)
    if target:
        output.navigate_to = target
    return output


# ── app_help ────────────────────────────────────────────────────────


async def app_help_recipe(ctx: FetchContext) -> dict[str, Any]:
    profile = await ctx.store.select(
        "business_profiles",
        columns=["id", "name", "industry", "team_size"],
        eq={"user_id": ctx.user_id},
        limit=1,
    )
    return {"modules": list(HELP_MODULES), "businessProfile": profile[0] if profile else None}


async def app_help_post_process(output: IntentOutput, ctx: FinalizeContext) -> IntentOutput:
    for module in ctx.bundle.get("modules") or HELP_MODULES:
        route = ROUTE_MAP.get(module)
        if route:
            output.chips.append(Action.chip(module.capitalize(), intent="navigate", to=route))
    return output


# ── Descriptors ─────────────────────────────────────────────────────

DOCS_FIND = IntentDescriptor(
    key="docs_find",
    category=DOCS,
    label="Find a Bizzy Doc",
    predicate=matches(r"\b(find|open)\b", r"\b(doc|one-pager|summary)\b"),
    recipe=docs_find_recipe,
    template="doc_explain",
)

NAVIGATE = IntentDescriptor(
    key="navigate",
    category=NAVHELP,
    label="Navigate",
    predicate=matches(
        r"\b(open|go to|navigate|show me)\b",
        r"\b(dashboard|financials|marketing|tax|investments|calendar|settings|docs?)\b",
    ),
    recipe=navigate_recipe,
    post_process=navigate_post_process,
    template="settings_help",
)

APP_HELP = IntentDescriptor(
    key="app_help",
    category=NAVHELP,
    label="Help",
    predicate=matches(r"\b(help|what can (you|bizzy|bizzi) do|how do i use)\b"),
    recipe=app_help_recipe,
    post_process=app_help_post_process,
    template="settings_help",
    persona_hint="Answer precisely about the app; cite routes/menus; avoid speculation.",
)

GENERAL_INTENT = IntentDescriptor(
    key="general",
    category=GENERAL,
    label="Just chat",
)
