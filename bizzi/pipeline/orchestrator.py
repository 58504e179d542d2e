"""Orchestrator: classify → gate → assemble → compose → invoke → finalize."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger

from bizzi.intents.base import FinalizeContext
from bizzi.intents.registry import IntentRegistry, get_registry
from bizzi.pipeline.cache import ContextCache
from bizzi.pipeline.clarification import clarification_envelope
from bizzi.pipeline.classifier import ClassifierWeights, IntentClassifier
from bizzi.pipeline.context import ContextAssembler
from bizzi.pipeline.invoker import FALLBACK_TEXT, ModelInvoker
from bizzi.pipeline.postprocess import normalize_output, run_post_process
from bizzi.pipeline.types import (
    ChatRequest,
    ErrorKind,
    InvalidRequest,
    ResponseEnvelope,
    StageError,
)
from bizzi.prompts.composer import PromptComposer
from bizzi.prompts.persona import PERSONA_VERSION
from bizzi.providers.base import LLMProvider
from bizzi.settings import BizziSettings
from bizzi.storage.store import DataStore


def normalize_request(request: ChatRequest | Mapping[str, Any]) -> ChatRequest:
    """Validate and trim an inbound turn; an empty message is rejected."""
    if not isinstance(request, ChatRequest):
        request = ChatRequest.model_validate(dict(request))
    message = (request.message or "").strip()
    if not message:
        raise InvalidRequest("missing_message", "message is required")
    return request.model_copy(update={"message": message})


class ConversationPipeline:
    """
    One chat turn, end to end.

    Stages report failures as ``StageError`` values; this class alone decides
    what the client sees.  The only exception that escapes ``run`` is
    ``InvalidRequest``, raised before any stage starts.
    """

    def __init__(
        self,
        registry: IntentRegistry,
        classifier: IntentClassifier,
        assembler: ContextAssembler,
        composer: PromptComposer,
        invoker: ModelInvoker,
        *,
        production: bool = False,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.registry = registry
        self.classifier = classifier
        self.assembler = assembler
        self.composer = composer
        self.invoker = invoker
        self.production = production
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: BizziSettings,
        store: DataStore,
        provider: LLMProvider,
        *,
        cache: ContextCache | None = None,
        registry: IntentRegistry | None = None,
    ) -> ConversationPipeline:
        registry = registry or get_registry()
        cache = cache or ContextCache(settings.cache_ttl_s, settings.cache_max_entries)
        return cls(
            registry=registry,
            classifier=IntentClassifier(registry, ClassifierWeights.from_settings(settings)),
            assembler=ContextAssembler(
                store,
                cache,
                max_string=settings.prune_max_string,
                max_array=settings.prune_max_array,
                history_limit=settings.history_limit,
                production=settings.is_production,
            ),
            composer=PromptComposer(settings.default_depth),
            invoker=ModelInvoker(
                provider,
                model=settings.model,
                timeout_s=settings.llm_timeout_s,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
            ),
            production=settings.is_production,
        )

    async def run(
        self,
        request: ChatRequest | Mapping[str, Any],
        abort: asyncio.Event | None = None,
    ) -> ResponseEnvelope:
        req = normalize_request(request)
        started = self._clock()
        timings: dict[str, float] = {}
        errors: list[StageError] = []

        # ── classify ──
        t0 = self._clock()
        classified = self.classifier.classify(req.message, req.route, req.hints, forced=req.intent)
        timings["classify"] = self._ms(t0)
        if classified.error:
            errors.append(classified.error)
        classification = classified.value
        descriptor = self.registry.resolve(classification.key)

        meta: dict[str, Any] = {
            "intent": descriptor.key,
            "module": (req.module or descriptor.module).lower(),
            "candidates": classification.top(5),
            "forced": classification.forced,
            "cache_hit": False,
        }

        if classification.ambiguous:
            envelope = clarification_envelope(classification)
            logger.info(f"Clarifying between {[o.intent for o in classification.options]}")
            return self._finalize(envelope, meta, timings, errors, started)

        # ── assemble ──
        t0 = self._clock()
        assembled = await self.assembler.assemble(descriptor, req)
        timings["context"] = self._ms(t0)
        if not assembled.ok:
            errors.append(assembled.error)
        context = assembled.value
        meta["cache_hit"] = context.cache_hit
        meta["context_keys"] = assembled.meta.get("keys", [])

        # ── compose ──
        t0 = self._clock()
        prompt = self.composer.compose(descriptor, req, context.bundle)
        timings["compose"] = self._ms(t0)
        meta.update(
            module=prompt.module,
            depth=prompt.depth,
            style_family=prompt.style_family,
            persona_version=prompt.persona_version,
            style_version=prompt.style_version,
        )

        # ── invoke ──
        t0 = self._clock()
        invoked = await self.invoker.invoke(prompt, context.bundle, context.history, req.message, abort)
        timings["invoke"] = self._ms(t0)
        if invoked.error:
            errors.append(invoked.error)
            envelope = ResponseEnvelope(response_text=FALLBACK_TEXT, meta={"error": "llm_failed"})
            if invoked.error.kind is ErrorKind.CANCELLED:
                envelope.meta["cancelled"] = True
            return self._finalize(envelope, meta, timings, errors, started)

        # ── finalize ──
        t0 = self._clock()
        finalized = await run_post_process(
            descriptor,
            invoked.value.text,
            FinalizeContext(
                intent=descriptor.key,
                user_id=req.user_id,
                business_id=req.business_id,
                message=req.message,
                hints=req.hints,
                bundle=context.bundle,
                store=self.assembler.store,
            ),
            production=self.production,
        )
        timings["post_process"] = self._ms(t0)
        if finalized.error:
            errors.append(finalized.error)
        envelope = normalize_output(finalized.value)
        return self._finalize(envelope, meta, timings, errors, started)

    def _finalize(
        self,
        envelope: ResponseEnvelope,
        meta: dict[str, Any],
        timings: dict[str, float],
        errors: list[StageError],
        started: float,
    ) -> ResponseEnvelope:
        meta.setdefault("persona_version", PERSONA_VERSION)
        # Hook extras stay, but the pipeline's own keys win.
        envelope.meta = {**envelope.meta, **meta, "timings": timings, "took_ms": self._ms(started)}
        if errors:
            envelope.meta["errors"] = [e.to_dict(with_detail=not self.production) for e in errors]
        logger.info(
            f"Chat turn intent={meta['intent']} took={envelope.meta['took_ms']}ms "
            f"errors={[e.kind.value for e in errors]}"
        )
        return envelope

    def _ms(self, since: float) -> float:
        return round((self._clock() - since) * 1000, 2)
