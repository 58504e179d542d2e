"""Email intents: summarize, reply, template, search, tasks, follow-up, contact.

Thread content is read from the ``email_threads_cache`` projection; the
mailbox sync that fills it lives outside this package.
"""

from __future__ import annotations

import re
from typing import Any

from loguru import logger

from bizzi.intents.base import (
    EMAIL,
    FetchContext,
    FinalizeContext,
    IntentDescriptor,
    matches,
    nudge,
)
from bizzi.intents.fetch import gather_settled, normalized
from bizzi.pipeline.types import Action, IntentOutput
from bizzi.storage.store import DataStore

_THREAD_COLUMNS = [
    "thread_id",
    "subject",
    "snippet",
    "body",
    "from_name",
    "from_email",
    "to_email",
    "last_message_ts",
]
_LIST_COLUMNS = [
    "thread_id",
    "subject",
    "snippet",
    "from_name",
    "from_email",
    "last_message_ts",
    "labels",
    "unread",
    "account_id",
]
_EMAIL_RE = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
_BODY_CAP = 2000


# ── Shared readers ──────────────────────────────────────────────────


def _sender(row: dict[str, Any]) -> str:
    name, email = row.get("from_name") or "", row.get("from_email") or ""
    if name and email:
        return f"{name} <{email}>"
    return name or email


async def _thread_messages(ctx: FetchContext, limit: int) -> list[dict[str, Any]]:
    """Last ``limit`` messages of the hinted thread, oldest first."""
    eq: dict[str, Any] = {"user_id": ctx.user_id, "thread_id": ctx.hints.thread_id}
    if ctx.hints.account_id:
        eq["account_id"] = ctx.hints.account_id
    rows = await ctx.store.select(
        "email_threads_cache",
        columns=_THREAD_COLUMNS,
        eq=eq,
        order_by="last_message_ts",
        descending=True,
        limit=limit,
    )
    rows.reverse()
    return rows


def _compact(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "from": _sender(r),
            "date": r.get("last_message_ts") or "",
            "subject": r.get("subject") or "",
            "body": _WS_RE.sub(" ", r.get("body") or r.get("snippet") or "").strip()[:_BODY_CAP],
        }
        for r in rows
    ]


def _subject(rows: list[dict[str, Any]]) -> str:
    if rows:
        return rows[-1].get("subject") or rows[0].get("subject") or "(no subject)"
    return "(no subject)"


def _list_item(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "threadId": row.get("thread_id"),
        "subject": row.get("subject") or "",
        "from_name": row.get("from_name") or "",
        "from_email": row.get("from_email") or "",
        "snippet": row.get("snippet") or "",
        "date": row.get("last_message_ts") or "",
        "labels": row.get("labels") or [],
        "unread": bool(row.get("unread")),
        "accountId": row.get("account_id"),
    }


async def _recent_inbound(
    store: DataStore, user_id: str | None, account_id: str | None, contact: str, limit: int
) -> list[dict[str, Any]]:
    eq: dict[str, Any] = {"user_id": user_id}
    if account_id:
        eq["account_id"] = account_id
    rows = await store.select(
        "email_threads_cache",
        columns=_LIST_COLUMNS,
        eq=eq,
        ilike={"from_email": f"%{contact}%"} if contact else None,
        order_by="last_message_ts",
        descending=True,
        limit=50,
    )
    return [_list_item(r) for r in rows][:limit]


async def _recent_outbound(store: DataStore, user_id: str | None, contact: str, limit: int) -> list[dict[str, Any]]:
    if not contact:
        return []
    rows = await store.select(
        "email_activity_log",
        columns=["payload", "created_at", "account_id"],
        eq={"user_id": user_id, "action": "email_sent"},
        order_by="created_at",
        descending=True,
        limit=100,
    )
    needle = contact.lower()
    out = []
    for r in rows:
        payload = r.get("payload") or {}
        if needle in str(payload.get("to", "")).lower():
            out.append(
                {
                    "subject": payload.get("subject", ""),
                    "date": str(r.get("created_at") or ""),
                    "accountId": r.get("account_id"),
                }
            )
        if len(out) >= limit:
            break
    return out


def _has_thread(ctx: FetchContext) -> bool:
    return bool(ctx.user_id and ctx.hints.thread_id)


def _thread_cache_key(ctx: FetchContext) -> str | None:
    return ctx.hints.thread_id or None


# ── email_summarize ─────────────────────────────────────────────────

_SUMMARIZE = r"\b(tl;dr|summarize|summary|what.?s this about|what is this about)\b"


async def summarize_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not _has_thread(ctx):
        return {}
    rows = await _thread_messages(ctx, limit=8)
    contact = rows[-1].get("from_email", "") if rows else ""
    inbound, outbound = await gather_settled(
        _recent_inbound(ctx.store, ctx.user_id, ctx.hints.account_id, contact, 3),
        _recent_outbound(ctx.store, ctx.user_id, contact, 3),
        default=[],
    )
    return {
        "email": {
            "accountId": ctx.hints.account_id,
            "threadId": ctx.hints.thread_id,
            "subject": _subject(rows),
            "contact": {"email": contact, "domain": contact.split("@")[1] if "@" in contact else ""},
            "lastMessages": _compact(rows),
            "inboundRecent": inbound,
            "outboundRecent": outbound,
        }
    }


# ── email_reply ─────────────────────────────────────────────────────

_REPLY = r"\b(reply|respond|write back|draft(?:\s+a)?\s+reply)\b"


async def reply_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not _has_thread(ctx):
        return {}
    rows = await _thread_messages(ctx, limit=6)
    last = rows[-1] if rows else {}
    return {
        "email": {
            "accountId": ctx.hints.account_id,
            "threadId": ctx.hints.thread_id,
            "subject": _subject(rows),
            "participants": {"from": _sender(last), "to": last.get("to_email", "")},
            "lastMessages": _compact(rows),
        }
    }


async def reply_post_process(output: IntentOutput, ctx: FinalizeContext) -> IntentOutput:
    """Record the generated draft in the activity log and offer to open it."""
    thread_id = ctx.hints.thread_id
    if not (ctx.user_id and thread_id and output.response_text.strip()):
        return output
    await ctx.store.insert(
        "email_activity_log",
        {
            "user_id": ctx.user_id,
            "account_id": ctx.hints.account_id,
            "thread_id": thread_id,
            "action": "draft_generated",
            "payload": {"body": output.response_text, "user_prompt": ctx.message},
        },
    )
    logger.debug(f"Logged reply draft for thread {thread_id}")
    output.cta = Action.cta("Review draft", action="open_draft", thread_id=thread_id)
    output.extras["draft_logged"] = True
    return output


# ── email_template ──────────────────────────────────────────────────

_TEMPLATE = r"\b(template|payment reminder|estimate follow[- ]?up|scheduling(?:\s+email)?|follow[- ]?up)\b"


async def template_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not _has_thread(ctx):
        return {}
    rows = await _thread_messages(ctx, limit=1)
    last = rows[-1] if rows else {}
    return {
        "email": {
            "accountId": ctx.hints.account_id,
            "threadId": ctx.hints.thread_id,
            "subject": _subject(rows),
            "participants": {"from": _sender(last), "to": last.get("to_email", "")},
            "lastMessageText": (last.get("body") or last.get("snippet") or "")[:_BODY_CAP],
        }
    }


# ── email_search ────────────────────────────────────────────────────

_SEARCH_FILTER = r"\b(from|subject|label|before|after):"
_SUBJECT_RE = re.compile(r"subject:(\S.*?)(?=\s+\w+:|$)", re.IGNORECASE)
_FILTER_PATTERNS = {
    "from": re.compile(r"from:(\S+)", re.IGNORECASE),
    "label": re.compile(r"label:(\S+)", re.IGNORECASE),
    "after": re.compile(r"after:(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    "before": re.compile(r"before:(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
}


def parse_inline_filters(text: str) -> dict[str, str]:
    """Split ``from:`` / ``subject:`` / ``label:`` / ``after:`` / ``before:`` out of a query."""
    out = {"text": "", "from": "", "subject": "", "label": "", "after": "", "before": ""}
    remaining = text or ""
    m = _SUBJECT_RE.search(remaining)
    if m:
        out["subject"] = m.group(1).strip()
        remaining = _SUBJECT_RE.sub("", remaining)
    for name, pattern in _FILTER_PATTERNS.items():
        m = pattern.search(remaining)
        if m:
            out[name] = m.group(1)
            remaining = pattern.sub("", remaining)
    out["text"] = _WS_RE.sub(" ", remaining).strip()
    return out


async def search_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not ctx.user_id:
        return {}
    filters = parse_inline_filters(ctx.hints.search_query or ctx.message)
    eq: dict[str, Any] = {"user_id": ctx.user_id}
    if ctx.hints.account_id:
        eq["account_id"] = ctx.hints.account_id
    ilike: dict[str, str] = {}
    if filters["from"]:
        ilike["from_email"] = f"%{filters['from']}%"
    if filters["subject"]:
        ilike["subject"] = f"%{filters['subject']}%"
    free = filters["text"][:120]
    rows = await ctx.store.select(
        "email_threads_cache",
        columns=_LIST_COLUMNS,
        eq=eq,
        gte={"last_message_ts": filters["after"]} if filters["after"] else None,
        lte={"last_message_ts": filters["before"]} if filters["before"] else None,
        ilike=ilike or None,
        ilike_any={"subject": f"%{free}%", "snippet": f"%{free}%"} if free else None,
        order_by="last_message_ts",
        descending=True,
        limit=50,
    )
    if filters["label"]:
        wanted = filters["label"].upper()
        rows = [r for r in rows if wanted in [str(x).upper() for x in (r.get("labels") or [])]]
    return {"email": {"search": {"filters": filters, "results": [_list_item(r) for r in rows][:25]}}}


_search_hit = matches(r"\b(find|show|search)\b.*\b(emails?|inbox|threads?)\b")
_filter_hit = matches(_SEARCH_FILTER)


def _search_predicate(message: str) -> bool:
    return _search_hit(message) or _filter_hit(message)


def search_cache_key(ctx: FetchContext) -> str | None:
    return f"{ctx.hints.account_id or ''}:{normalized(ctx.hints.search_query or ctx.message, 120)}"


# ── email_extract_tasks ─────────────────────────────────────────────

_TASKS = r"\b(action items?|tasks?|todos?)\b"


async def tasks_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not _has_thread(ctx):
        return {}
    rows = await _thread_messages(ctx, limit=8)
    return {
        "email": {
            "threadId": ctx.hints.thread_id,
            "accountId": ctx.hints.account_id,
            "subject": _subject(rows),
            "lastMessages": _compact(rows),
        }
    }


# ── email_followup ──────────────────────────────────────────────────

_FOLLOWUP = r"\bfollow[- ]?up\b"
_WHEN_SIMPLE = re.compile(r"\b(today|tomorrow|next\s+(mon|tue|wed|thu|fri|sat|sun)[a-z]*)\b")
_WHEN_IN_N = re.compile(r"\bin\s+(\d{1,2})\s+(day|days|week|weeks)\b")
_WHEN_DATE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")


def extract_when_hint(text: str) -> str:
    """today | tomorrow | next <weekday> | in N days/weeks | YYYY-MM-DD, else ''."""
    s = (text or "").lower()
    for pattern in (_WHEN_SIMPLE, _WHEN_IN_N, _WHEN_DATE):
        m = pattern.search(s)
        if m:
            return m.group(0)
    return ""


async def followup_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not _has_thread(ctx):
        return {}
    rows = await _thread_messages(ctx, limit=1)
    last = rows[-1] if rows else {}
    return {
        "email": {
            "threadId": ctx.hints.thread_id,
            "accountId": ctx.hints.account_id,
            "contact": {"email": last.get("from_email", "")},
            "whenHint": extract_when_hint(ctx.message),
            "subject": _subject(rows),
            "lastMessageText": (last.get("body") or last.get("snippet") or "")[:_BODY_CAP],
        }
    }


def followup_cache_key(ctx: FetchContext) -> str | None:
    if not ctx.hints.thread_id:
        return None
    return f"{ctx.hints.thread_id}:{normalized(ctx.message, 40)}"


# ── email_find_contact ──────────────────────────────────────────────

_CONTACT = r"\b(last|recent)\b.*\b(email|thread|message)\b.*\b(from|with)\b"
_CONTACT_SHOW = r"\bshow\b.*(from:|\bcontact\b)"


async def find_contact_recipe(ctx: FetchContext) -> dict[str, Any]:
    if not ctx.user_id:
        return {}
    m = _EMAIL_RE.search(ctx.message or "")
    contact = ctx.hints.from_email or (m.group(0) if m else "")
    inbound, outbound = await gather_settled(
        _recent_inbound(ctx.store, ctx.user_id, ctx.hints.account_id, contact, 10),
        _recent_outbound(ctx.store, ctx.user_id, contact, 10),
        default=[],
    )
    return {
        "email": {
            "contact": {"email": contact, "name": ctx.hints.contact_name or ""},
            "inboundRecent": inbound,
            "outboundRecent": outbound,
        }
    }


def find_contact_cache_key(ctx: FetchContext) -> str | None:
    return f"{ctx.hints.account_id or ''}:{normalized(ctx.message, 80)}"


_contact_hit = matches(_CONTACT)
_contact_show_hit = matches(_CONTACT_SHOW)


def _find_contact_predicate(message: str) -> bool:
    return _contact_hit(message) or _contact_show_hit(message)


# ── Descriptors ─────────────────────────────────────────────────────

INTENTS: tuple[IntentDescriptor, ...] = (
    IntentDescriptor(
        key="email_summarize",
        category=EMAIL,
        label="Summarize this email",
        predicate=matches(_SUMMARIZE),
        recipe=summarize_recipe,
        cache_key=_thread_cache_key,
        nudges=(nudge(_SUMMARIZE, 0.25),),
        template="doc_explain",
    ),
    IntentDescriptor(
        key="email_reply",
        category=EMAIL,
        label="Draft a reply",
        predicate=matches(_REPLY),
        recipe=reply_recipe,
        cache_key=_thread_cache_key,
        post_process=reply_post_process,
        nudges=(nudge(_REPLY, 0.25),),
        persona_hint="Write short, clear, professional emails; propose 2-3 time slots when scheduling.",
    ),
    IntentDescriptor(
        key="email_template",
        category=EMAIL,
        label="Use an email template",
        predicate=matches(_TEMPLATE),
        recipe=template_recipe,
        cache_key=_thread_cache_key,
        nudges=(nudge(_TEMPLATE, 0.2),),
    ),
    IntentDescriptor(
        key="email_search",
        category=EMAIL,
        label="Search emails",
        predicate=_search_predicate,
        recipe=search_recipe,
        cache_key=search_cache_key,
        nudges=(nudge(r"\b(search|find|show)\b", 0.25),),
    ),
    IntentDescriptor(
        key="email_extract_tasks",
        category=EMAIL,
        label="Extract tasks from email",
        predicate=matches(_TASKS + r".*\b(email|thread|inbox|this)\b"),
        recipe=tasks_recipe,
        cache_key=_thread_cache_key,
        nudges=(nudge(_TASKS, 0.25),),
    ),
    IntentDescriptor(
        key="email_followup",
        category=EMAIL,
        label="Schedule a follow-up",
        predicate=matches(_FOLLOWUP),
        recipe=followup_recipe,
        cache_key=followup_cache_key,
        nudges=(nudge(_FOLLOWUP, 0.25),),
    ),
    IntentDescriptor(
        key="email_find_contact",
        category=EMAIL,
        label="Find contact history",
        predicate=_find_contact_predicate,
        recipe=find_contact_recipe,
        cache_key=find_contact_cache_key,
        nudges=(nudge(r"\b(last|recent)\b.*\b(from|with)\b", 0.25),),
    ),
)
