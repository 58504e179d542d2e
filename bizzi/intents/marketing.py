"""Marketing and investments overview intents."""

from __future__ import annotations

from typing import Any

from bizzi.intents.base import INV, MKT, FetchContext, IntentDescriptor, matches
from bizzi.intents.fetch import gather_settled


async def mkt_overview_recipe(ctx: FetchContext) -> dict[str, Any]:
    posts, emails = await gather_settled(
        ctx.store.select(
            "post_metrics",
            columns=["post_id", "title", "reach", "engagement", "created_at"],
            eq={"business_id": ctx.business_id},
            order_by="created_at",
            descending=True,
            limit=5,
        ),
        ctx.store.select(
            "email_metrics",
            columns=["subject", "open_rate", "ctr", "sent_at"],
            eq={"business_id": ctx.business_id},
            order_by="sent_at",
            descending=True,
            limit=5,
        ),
        default=[],
    )
    return {"posts": posts, "emails": emails}


async def inv_overview_recipe(ctx: FetchContext) -> dict[str, Any]:
    accounts, allocation = await gather_settled(
        ctx.store.select(
            "investment_accounts",
            columns=["institution", "name", "balance", "updated_at"],
            eq={"user_id": ctx.user_id},
            order_by="balance",
            descending=True,
            limit=10,
        ),
        ctx.store.select(
            "asset_allocation",
            columns=["equities", "bonds", "cash", "alternatives", "other", "as_of"],
            eq={"user_id": ctx.user_id},
            order_by="as_of",
            descending=True,
            limit=1,
        ),
        default=[],
    )
    return {"accounts": accounts, "allocation": allocation[0] if allocation else None}


def _overview_key(ctx: FetchContext) -> str | None:
    return "overview"


INTENTS: tuple[IntentDescriptor, ...] = (
    IntentDescriptor(
        key="mkt_overview",
        category=MKT,
        label="Marketing overview",
        predicate=matches(
            r"\b(marketing|campaigns?)\b",
            r"\b(how (did|are)|overview|summary|last (week|month))\b",
        ),
        recipe=mkt_overview_recipe,
        cache_key=_overview_key,
        template="marketing_tip",
    ),
    IntentDescriptor(
        key="inv_overview",
        category=INV,
        label="Investments overview",
        predicate=matches(r"\b(net worth|investments?|how.*portfolio)\b"),
        recipe=inv_overview_recipe,
        cache_key=_overview_key,
        template="investments_insight",
    ),
)
