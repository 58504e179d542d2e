"""Calendar intents: schedule something, or read the agenda for the coming week."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from bizzi.intents.base import OPS, FetchContext, FinalizeContext, IntentDescriptor, matches, nudge
from bizzi.pipeline.types import IntentOutput

CALENDAR_ROUTE = "/dashboard/calendar"
DEFAULT_HOUR = 9
DEFAULT_DURATION = timedelta(hours=1)

_SCHEDULE = r"\b(schedule|book|set up|add to calendar|remind me)\b"
_WINDOW = r"\b(tomorrow|next (7|seven) days|this week)\b"
_AGENDA = r"\b(agenda|what.?s on|what do i have)\b"

_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_NEXT_DAY_RE = re.compile(r"\b(?:next|on)\s+(mon|tue|wed|thu|fri|sat|sun)[a-z]*\b")
_IN_N_RE = re.compile(r"\bin\s+(\d{1,2})\s+(day|days|week|weeks)\b")
_ISO_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_AT_RE = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b")
_LEAD_RE = re.compile(r"^\s*(?:please\s+)?(?:schedule|book|set up|add to calendar|remind me(?:\s+to)?)\s+", re.I)
_ARTICLE_RE = re.compile(r"^(?:a|an|the|my)\s+", re.I)
_WHEN_STRIP_RE = re.compile(
    r"\b(today|tomorrow|(?:next|on)\s+\w+day|in\s+\d{1,2}\s+(?:days?|weeks?)|\d{4}-\d{2}-\d{2}|"
    r"at\s+\d{1,2}(?::\d{2})?\s*(?:am|pm)?|for\s+me)\b",
    re.I,
)


def resolve_when(text: str, now: datetime) -> datetime | None:
    """Resolve a relative day phrase (+ optional 'at 3pm') against ``now``."""
    s = (text or "").lower()
    day: datetime | None = None
    if "tomorrow" in s:
        day = now + timedelta(days=1)
    elif re.search(r"\btoday\b", s):
        day = now
    elif m := _NEXT_DAY_RE.search(s):
        target = _WEEKDAYS.index(m.group(1))
        ahead = (target - now.weekday()) % 7 or 7
        day = now + timedelta(days=ahead)
    elif m := _IN_N_RE.search(s):
        n = int(m.group(1))
        day = now + timedelta(weeks=n) if m.group(2).startswith("week") else now + timedelta(days=n)
    elif m := _ISO_RE.search(s):
        try:
            day = datetime.fromisoformat(m.group(1)).replace(tzinfo=now.tzinfo)
        except ValueError:
            day = None
    if day is None:
        return None

    hour, minute = DEFAULT_HOUR, 0
    if m := _AT_RE.search(s):
        hour, minute = int(m.group(1)) % 24, int(m.group(2) or 0)
        if m.group(3) == "pm" and hour < 12:
            hour += 12
        elif m.group(3) == "am" and hour == 12:
            hour = 0
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def event_title(text: str) -> str:
    title = _LEAD_RE.sub("", text or "")
    title = _WHEN_STRIP_RE.sub("", title)
    title = _ARTICLE_RE.sub("", re.sub(r"\s+", " ", title).strip(" .?!"))
    return title[:1].upper() + title[1:] if title else "New event"


async def _events_between(ctx: FetchContext, start: datetime, end: datetime, limit: int) -> list[dict[str, Any]]:
    return await ctx.store.select(
        "calendar_events",
        columns=["id", "title", "type", "start_ts", "end_ts", "location", "status"],
        eq={"business_id": ctx.business_id},
        gte={"start_ts": start.isoformat()},
        lte={"start_ts": end.isoformat()},
        order_by="start_ts",
        limit=limit,
    )


def _week_window(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, now + timedelta(days=7)


# ── calendar_schedule ───────────────────────────────────────────────


async def schedule_recipe(ctx: FetchContext) -> dict[str, Any]:
    start, end = _week_window(ctx.now)
    upcoming = await _events_between(ctx, start, end, limit=20)
    when = resolve_when(ctx.message, ctx.now)
    proposed = None
    if when is not None:
        proposed = {
            "title": event_title(ctx.message),
            "start_ts": when.isoformat(),
            "end_ts": (when + DEFAULT_DURATION).isoformat(),
        }
    return {"upcoming": upcoming, "proposed": proposed}


async def schedule_post_process(output: IntentOutput, ctx: FinalizeContext) -> IntentOutput:
    """Save the proposed event (status ``proposed``) and point the user at the calendar."""
    proposed = ctx.bundle.get("proposed")
    output.navigate_to = CALENDAR_ROUTE
    if not (proposed and ctx.business_id):
        return output
    row = await ctx.store.insert(
        "calendar_events",
        {
            "business_id": ctx.business_id,
            "user_id": ctx.user_id,
            "title": proposed["title"],
            "type": "meeting",
            "start_ts": proposed["start_ts"],
            "end_ts": proposed["end_ts"],
            "status": "proposed",
        },
    )
    logger.info(f"Proposed calendar event '{row['title']}' at {row['start_ts']}")
    output.extras["proposed_event"] = row
    return output


# ── agenda_range ────────────────────────────────────────────────────

_schedule_hit = matches(_SCHEDULE)
_window_hit = matches(_WINDOW)
_agenda_hit = matches(_AGENDA)


def _agenda_predicate(message: str) -> bool:
    # A time window alone reads as "what's on", unless the user is booking something.
    return _agenda_hit(message) or (_window_hit(message) and not _schedule_hit(message))


async def agenda_recipe(ctx: FetchContext) -> dict[str, Any]:
    start, end = _week_window(ctx.now)
    items = await _events_between(ctx, start, end, limit=30)
    return {"range": {"from": start.isoformat(), "to": end.isoformat()}, "items": items}


def agenda_cache_key(ctx: FetchContext) -> str | None:
    return ctx.now.date().isoformat()


# ── Descriptors ─────────────────────────────────────────────────────

SCHEDULE = IntentDescriptor(
    key="calendar_schedule",
    category=OPS,
    label="Schedule it",
    predicate=_schedule_hit,
    recipe=schedule_recipe,
    post_process=schedule_post_process,
    nudges=(nudge(_SCHEDULE, 0.25),),
    template="calendar_schedule",
)

AGENDA = IntentDescriptor(
    key="agenda_range",
    category=OPS,
    label="Agenda (next days)",
    predicate=_agenda_predicate,
    recipe=agenda_recipe,
    cache_key=agenda_cache_key,
    nudges=(nudge(_WINDOW, 0.1),),
)
