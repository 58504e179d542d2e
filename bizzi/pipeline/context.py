"""Context assembly: cached recipe bundle + business profile + recent conversation + intent hints."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from bizzi.intents.base import FetchContext, IntentDescriptor
from bizzi.intents.fetch import gather_settled
from bizzi.pipeline.cache import CacheKey, ContextCache
from bizzi.pipeline.pruning import MAX_ARRAY, MAX_STRING, prune, truncate_text
from bizzi.pipeline.types import ChatRequest, ErrorKind, RequestHints, StageError, StageResult
from bizzi.storage.store import DataStore

HISTORY_LIMIT = 6
ALLOWED_ROLES = frozenset({"user", "assistant", "system"})


def sanitize_role(role: Any) -> str:
    """Map stored roles onto the provider's role set (``bizzy``/unknown → assistant)."""
    value = str(role or "").strip().lower()
    return value if value in ALLOWED_ROLES else "assistant"


def intent_hints(intent: str, message: str, hints: RequestHints, bundle: Mapping[str, Any]) -> dict[str, Any]:
    """Cheap, intent-scoped hint blocks added to every bundle (no extra reads)."""
    email = bundle.get("email") if isinstance(bundle.get("email"), Mapping) else {}
    thread_id = hints.thread_id or email.get("threadId")
    account_id = hints.account_id or email.get("accountId")

    if intent in ("email_summarize", "email_reply", "email_template", "email_extract_tasks"):
        return {"emailHint": {"message": message, "threadId": thread_id, "accountId": account_id}}
    if intent == "email_search":
        return {
            "emailHint": {
                "message": message,
                "searchQuery": hints.search_query or message,
                "accountId": hints.account_id,
                "fromEmail": hints.from_email,
                "toEmail": hints.to_email,
            }
        }
    if intent == "email_followup":
        return {
            "emailHint": {
                "message": message,
                "threadId": thread_id,
                "accountId": account_id,
                "followupDelay": hints.followup_delay,
            }
        }
    if intent == "email_find_contact":
        return {
            "emailHint": {
                "message": message,
                "accountId": hints.account_id,
                "fromEmail": hints.from_email,
                "contactName": hints.contact_name,
            }
        }
    if intent == "calendar_schedule":
        return {"scheduleHint": message}
    if intent == "affordability_check":
        return {"affordHint": hints.model_dump(exclude_none=True)}
    if intent == "fin_variance_explain":
        out: dict[str, Any] = {}
        if hints.metric:
            out["metricHint"] = hints.metric
        if hints.period:
            out["periodHint"] = hints.period
        return out
    return {}


@dataclass(slots=True)
class AssembledContext:
    bundle: dict[str, Any]
    history: list[dict[str, str]] = field(default_factory=list)
    cache_hit: bool = False


class ContextAssembler:
    """
    Builds the bounded data context handed to the model.

    The intent's recipe runs through the ``ContextCache`` when the intent has
    a cache-key capability.  Recipe and cache-key failures degrade to an empty
    bundle and are reported as a ``context`` stage error; they never raise.
    """

    def __init__(
        self,
        store: DataStore,
        cache: ContextCache,
        *,
        max_string: int = MAX_STRING,
        max_array: int = MAX_ARRAY,
        history_limit: int = HISTORY_LIMIT,
        production: bool = False,
    ):
        self.store = store
        self.cache = cache
        self.max_string = max_string
        self.max_array = max_array
        self.history_limit = history_limit
        self.production = production

    async def assemble(
        self,
        descriptor: IntentDescriptor,
        request: ChatRequest,
        now: datetime | None = None,
    ) -> StageResult[AssembledContext]:
        ctx = FetchContext(
            user_id=request.user_id,
            business_id=request.business_id,
            message=request.message,
            route=request.route,
            hints=request.hints,
            store=self.store,
        )
        if now is not None:
            ctx.now = now

        bundle, cache_hit, error = await self._intent_bundle(descriptor, ctx)

        email = bundle.get("email") if isinstance(bundle.get("email"), Mapping) else {}
        thread_id = request.hints.thread_id or bundle.get("threadId") or email.get("threadId")
        history, profile = await gather_settled(
            self.recent_history(request.user_id, request.business_id, thread_id),
            self.business_profile(request.user_id, request.business_id),
            default=None,
        )
        history = history or []

        base: dict[str, Any] = {
            "user_id": request.user_id,
            "business_id": request.business_id,
            "intent": descriptor.key,
            "businessProfile": profile,
            "recentChat": history,
        }
        base.update(intent_hints(descriptor.key, request.message, request.hints, bundle))
        merged = prune({**base, **bundle}, self.max_string, self.max_array)
        return StageResult(
            AssembledContext(merged, history, cache_hit),
            error,
            meta={"keys": sorted(bundle)},
        )

    async def _intent_bundle(
        self, descriptor: IntentDescriptor, ctx: FetchContext
    ) -> tuple[dict[str, Any], bool, StageError | None]:
        if not descriptor.has_recipe:
            return {}, False, None

        key: CacheKey | None = None
        if descriptor.has_cache_key:
            try:
                discriminator = descriptor.cache_key(ctx)
            except Exception as e:
                self._log_failure(f"cache key for '{descriptor.key}'", e)
                return {}, False, StageError(ErrorKind.CONTEXT, f"cache_key: {e}")
            if discriminator is not None:
                key = CacheKey.for_request(ctx.business_id, ctx.user_id, descriptor.key, str(discriminator))
                cached = self.cache.get(key)
                if cached is not None:
                    logger.debug(f"Context cache hit: {key}")
                    return cached, True, None

        try:
            raw = await descriptor.recipe(ctx)
        except Exception as e:
            self._log_failure(f"recipe for '{descriptor.key}'", e)
            return {}, False, StageError(ErrorKind.CONTEXT, f"recipe: {e}")

        bundle = dict(raw) if isinstance(raw, Mapping) else {}
        if key is not None:
            self.cache.set(key, bundle)
        return bundle, False, None

    async def business_profile(self, user_id: str | None, business_id: str | None) -> dict[str, Any] | None:
        """The tenant's profile row, by business id or else by owner; ``None`` when absent."""
        if business_id:
            eq: dict[str, Any] = {"id": business_id}
        elif user_id:
            eq = {"user_id": user_id}
        else:
            return None

        try:
            rows = await self.store.select(
                "business_profiles",
                columns=["id", "name", "industry", "team_size"],
                eq=eq,
                limit=1,
            )
        except Exception as e:
            logger.debug(f"Business profile unavailable: {e}")
            return None
        return rows[0] if rows else None

    async def recent_history(
        self,
        user_id: str | None,
        business_id: str | None,
        thread_id: str | None = None,
    ) -> list[dict[str, str]]:
        """Last N chat messages, oldest first; thread-scoped when a thread id is known."""
        if thread_id:
            eq: dict[str, Any] = {"thread_id": thread_id}
        elif user_id:
            eq = {"user_id": user_id}
            if business_id:
                eq["business_id"] = business_id
        else:
            return []

        try:
            rows = await self.store.select(
                "gpt_messages",
                columns=["role", "content", "created_at"],
                eq=eq,
                order_by="created_at",
                descending=True,
                limit=self.history_limit,
            )
        except Exception as e:
            logger.debug(f"Recent chat unavailable: {e}")
            return []

        window = []
        for row in reversed(rows):
            content = truncate_text(str(row.get("content") or ""), self.max_string)
            if content.strip():
                window.append({"role": sanitize_role(row.get("role")), "content": content})
        return window

    def _log_failure(self, what: str, exc: Exception) -> None:
        if self.production:
            logger.debug(f"Context {what} failed: {exc}")
        else:
            logger.warning(f"Context {what} failed: {exc}")
