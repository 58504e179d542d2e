"""Financials intents: AR aging, runway, variance, forecast, spikes, overview, affordability."""

from __future__ import annotations

from typing import Any

from bizzi.intents.base import FIN, FetchContext, FinalizeContext, IntentDescriptor, matches, nudge
from bizzi.intents.fetch import gather_settled, int_match
from bizzi.pipeline.types import Action, IntentOutput

DEFAULT_AR_THRESHOLD_DAYS = 30
DEFAULT_FORECAST_HORIZON = 6

_KPI_COLUMNS = [
    "month",
    "total_revenue",
    "total_expenses",
    "net_profit",
    "profit_margin",
    "top_spending_category",
]


def with_deltas(kpis: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Annotate newest-first monthly KPI rows with month-over-month deltas."""
    out = []
    for i, row in enumerate(kpis):
        row = dict(row)
        prev = kpis[i + 1] if i + 1 < len(kpis) else None
        if prev is not None:
            row["total_revenue_delta"] = (row.get("total_revenue") or 0) - (prev.get("total_revenue") or 0)
            row["net_profit_delta"] = (row.get("net_profit") or 0) - (prev.get("net_profit") or 0)
            row["margin_pct_delta"] = (row.get("profit_margin") or 0) - (prev.get("profit_margin") or 0)
        out.append(row)
    return out


async def _kpis(ctx: FetchContext, limit: int = 3) -> list[dict[str, Any]]:
    rows = await ctx.store.select(
        "financial_metrics",
        columns=_KPI_COLUMNS,
        eq={"business_id": ctx.business_id},
        order_by="month",
        descending=True,
        limit=limit,
    )
    return with_deltas(rows)


# ── invoice_status ──────────────────────────────────────────────────

_AR = r"\b(what.?s outstanding|receivables|who owes|ar|aging)\b"
_OVER_DAYS = r"(?:>|\bover\b)\s*(\d{2,3})\s*days?\b"


def ar_threshold(message: str) -> int:
    return int_match(_OVER_DAYS, message, DEFAULT_AR_THRESHOLD_DAYS)


async def invoice_status_recipe(ctx: FetchContext) -> dict[str, Any]:
    threshold = ar_threshold(ctx.message)
    aging = await ctx.store.select(
        "ar_aging",
        columns=["client", "invoice_id", "amount", "days"],
        eq={"business_id": ctx.business_id},
        gte={"days": threshold},
        order_by="days",
        descending=True,
        limit=25,
    )
    return {"aging": aging, "thresholdDays": threshold}


def invoice_status_cache_key(ctx: FetchContext) -> str | None:
    return f"over:{ar_threshold(ctx.message)}"


async def invoice_status_post_process(output: IntentOutput, ctx: FinalizeContext) -> IntentOutput:
    aging = ctx.bundle.get("aging") or []
    if aging:
        output.cta = Action.cta(
            "Draft payment reminders",
            action="ar_reminders",
            threshold_days=ctx.bundle.get("thresholdDays", DEFAULT_AR_THRESHOLD_DAYS),
            count=len(aging),
        )
        output.extras["ar_total"] = round(sum(float(r.get("amount") or 0) for r in aging), 2)
    return output


# ── cash_runway ─────────────────────────────────────────────────────


async def cash_runway_recipe(ctx: FetchContext) -> dict[str, Any]:
    balances, burn = await gather_settled(
        ctx.store.select(
            "account_breakdown",
            columns=["balance"],
            eq={"business_id": ctx.business_id},
            order_by="balance",
            descending=True,
            limit=5,
        ),
        ctx.store.select(
            "financial_metrics",
            columns=["month", "net_profit"],
            eq={"business_id": ctx.business_id},
            order_by="month",
            descending=True,
            limit=3,
        ),
        default=[],
    )
    return {"balances": balances, "burn": burn}


# ── fin_variance_explain ────────────────────────────────────────────

_WHY = r"\b(why|explain|variance|dip|spike)\b"


async def fin_variance_recipe(ctx: FetchContext) -> dict[str, Any]:
    kpis, worst_jobs, top_expenses = await gather_settled(
        _kpis(ctx),
        ctx.store.select(
            "jobs_profitability",
            columns=["job_id", "job_name", "profit", "margin", "month"],
            eq={"business_id": ctx.business_id},
            order_by="profit",
            limit=5,
        ),
        ctx.store.select(
            "expense_categories",
            columns=["category", "amount", "month"],
            eq={"business_id": ctx.business_id},
            order_by="amount",
            descending=True,
            limit=5,
        ),
        default=[],
    )
    return {"kpis": kpis, "worstJobs": worst_jobs, "topExpenses": top_expenses}


# ── forecast_generate ───────────────────────────────────────────────


def forecast_horizon(message: str) -> int:
    return max(1, min(24, int_match(r"\b(\d+)\s*(months?|mos?)\b", message, DEFAULT_FORECAST_HORIZON)))


async def forecast_recipe(ctx: FetchContext) -> dict[str, Any]:
    horizon = forecast_horizon(ctx.message)
    rows = await ctx.store.select(
        "cashflow_forecast",
        columns=["month", "cash_in", "cash_out", "net_cash"],
        eq={"business_id": ctx.business_id},
        order_by="month",
        limit=horizon,
    )
    return {"forecast": rows, "horizon": horizon}


def forecast_cache_key(ctx: FetchContext) -> str | None:
    return f"h:{forecast_horizon(ctx.message)}"


# ── expense_spike ───────────────────────────────────────────────────


async def expense_spike_recipe(ctx: FetchContext) -> dict[str, Any]:
    categories, vendors = await gather_settled(
        ctx.store.select(
            "expense_categories",
            columns=["category", "amount", "month"],
            eq={"business_id": ctx.business_id},
            order_by="amount",
            descending=True,
            limit=6,
        ),
        ctx.store.select(
            "vendor_spend",
            columns=["vendor", "amount", "month"],
            eq={"business_id": ctx.business_id},
            order_by="amount",
            descending=True,
            limit=6,
        ),
        default=[],
    )
    return {"categories": categories, "vendors": vendors}


# ── fin_overview ────────────────────────────────────────────────────


async def fin_overview_recipe(ctx: FetchContext) -> dict[str, Any]:
    kpis, trend = await gather_settled(
        _kpis(ctx),
        ctx.store.select(
            "cashflow_forecast",
            columns=["month", "net_cash"],
            eq={"business_id": ctx.business_id},
            order_by="month",
            limit=6,
        ),
        default=[],
    )
    return {"kpis": kpis, "forecastTrend": trend}


# ── affordability_check ─────────────────────────────────────────────


async def affordability_recipe(ctx: FetchContext) -> dict[str, Any]:
    balances, forecast = await gather_settled(
        ctx.store.select(
            "account_breakdown",
            columns=["account_name", "balance", "month"],
            eq={"business_id": ctx.business_id},
            order_by="balance",
            descending=True,
            limit=5,
        ),
        ctx.store.select(
            "cashflow_forecast",
            columns=["month", "cash_in", "cash_out", "net_cash"],
            eq={"business_id": ctx.business_id},
            order_by="month",
            limit=6,
        ),
        default=[],
    )
    return {"balances": balances, "forecast": forecast}


# ── Descriptors ─────────────────────────────────────────────────────


def _static_key(value: str):
    def cache_key(ctx: FetchContext) -> str | None:
        return value

    return cache_key


INTENTS: tuple[IntentDescriptor, ...] = (
    IntentDescriptor(
        key="affordability_check",
        category=FIN,
        label="Affordability check",
        predicate=matches(r"\b(can i afford|affordability|afford)\b"),
        recipe=affordability_recipe,
        cache_key=_static_key("balances"),
        style_family="structured",
        template="affordability_check",
    ),
    IntentDescriptor(
        key="fin_variance_explain",
        category=FIN,
        label="Explain KPI change",
        predicate=matches(_WHY, r"\b(revenue|margin|profit|expenses?)\b"),
        recipe=fin_variance_recipe,
        cache_key=_static_key("variance"),
        nudges=(nudge(_WHY, 0.2),),
        template="analysis",
    ),
    IntentDescriptor(
        key="forecast_generate",
        category=FIN,
        label="Generate forecast",
        predicate=matches(r"\b(forecast|project|projection)\b"),
        recipe=forecast_recipe,
        cache_key=forecast_cache_key,
        nudges=(nudge(r"\b(forecast|projection)\b", 0.2),),
        template="financial_insight",
    ),
    IntentDescriptor(
        key="cash_runway",
        category=FIN,
        label="Cash runway",
        predicate=matches(r"\b(runway|how long|months of cash)\b"),
        recipe=cash_runway_recipe,
        cache_key=_static_key("runway"),
        template="financial_insight",
    ),
    IntentDescriptor(
        key="invoice_status",
        category=FIN,
        label="AR aging",
        predicate=matches(_AR),
        recipe=invoice_status_recipe,
        cache_key=invoice_status_cache_key,
        post_process=invoice_status_post_process,
        template="financial_insight",
    ),
    IntentDescriptor(
        key="expense_spike",
        category=FIN,
        label="Expense spike",
        predicate=matches(r"\b(expenses? (higher|spike|spiked)|why were expenses)\b"),
        recipe=expense_spike_recipe,
        cache_key=_static_key("spike"),
        template="analysis",
    ),
    IntentDescriptor(
        key="fin_overview",
        category=FIN,
        label="Financial overview",
        predicate=matches(r"\b(how did i|overview|summary|how (are|were) finances)\b"),
        recipe=fin_overview_recipe,
        cache_key=_static_key("overview"),
        template="insight",
    ),
)
