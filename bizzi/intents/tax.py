"""Tax intents."""

from __future__ import annotations

from typing import Any

from bizzi.intents.base import TAX, FetchContext, IntentDescriptor, matches
from bizzi.intents.fetch import gather_settled


async def deadlines_recipe(ctx: FetchContext) -> dict[str, Any]:
    def by_level(level: str):
        return ctx.store.select(
            "tax_deadlines",
            columns=["name", "due_date", "level"],
            eq={"level": level},
            gte={"due_date": ctx.now.date().isoformat()},
            order_by="due_date",
            limit=6,
        )

    federal, state, reminders = await gather_settled(
        by_level("federal"),
        by_level("state"),
        ctx.store.select(
            "calendar_events",
            columns=["title", "start_ts"],
            eq={"business_id": ctx.business_id},
            ilike={"title": "%tax%"},
            order_by="start_ts",
            limit=3,
        ),
        default=[],
    )
    return {"federal": federal, "state": state, "reminders": reminders}


async def overview_recipe(ctx: FetchContext) -> dict[str, Any]:
    year = ctx.now.year
    months, paid = await gather_settled(
        ctx.store.select(
            "financial_metrics",
            columns=["month", "net_profit"],
            eq={"business_id": ctx.business_id},
            gte={"month": f"{year}-01"},
            lte={"month": f"{year}-12"},
        ),
        ctx.store.select(
            "tax_payments",
            columns=["period", "amount", "paid_at"],
            eq={"business_id": ctx.business_id},
            order_by="paid_at",
            descending=True,
            limit=4,
        ),
        default=[],
    )
    ytd = round(sum(float(m.get("net_profit") or 0) for m in months), 2) if months else None
    return {"ytdProfit": ytd, "estimatesPaid": paid}


def _today(ctx: FetchContext) -> str | None:
    return ctx.now.date().isoformat()


INTENTS: tuple[IntentDescriptor, ...] = (
    IntentDescriptor(
        key="tax_deadlines",
        category=TAX,
        label="Tax deadlines",
        predicate=matches(r"\b(quarterlies?|estimated|when.*due|deadlines?)\b"),
        recipe=deadlines_recipe,
        cache_key=_today,
        template="tax_help",
    ),
    IntentDescriptor(
        key="tax_overview",
        category=TAX,
        label="Tax overview",
        predicate=matches(r"\btax (situation|overview|posture)\b"),
        recipe=overview_recipe,
        cache_key=_today,
        template="tax_help",
    ),
)
