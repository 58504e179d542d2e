"""Compose persona + style layers into the system-message stack for one turn."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from bizzi.intents.base import IntentDescriptor
from bizzi.pipeline.types import ChatRequest
from bizzi.prompts.persona import PERSONA_VERSION, Dials, PersonaFlags, build_persona_message, dials_for
from bizzi.prompts.style import (
    CONVERSATIONAL,
    DEFAULT_DEPTH,
    DEPTH_PRESETS,
    STRUCTURED,
    build_style_messages,
    normalize_depth,
    style_version,
)

# Templates whose answers react to KPI direction.
BAD_NEWS_TEMPLATES = frozenset({"insight", "kpi_compare", "financial_insight", "analysis"})
CELEBRATION_TEMPLATES = frozenset({"insight", "marketing_tip"})
STRUCTURAL_TEMPLATES = frozenset({"procedure", "decision_brief", "kpi_compare"})
NEGATIVE_DELTA_FIELDS = ("margin_pct_delta", "net_profit_delta", "total_revenue_delta")

_STYLE_ALIASES = {
    "structured": STRUCTURED,
    "scaffolded": STRUCTURED,
    "report": STRUCTURED,
    "conversational": CONVERSATIONAL,
    "chat": CONVERSATIONAL,
}

_THOROUGH_RE = re.compile(
    r"\b(best ways|strateg(y|ies)|guide|playbook|deep dive|comprehensive|in depth|how to|ideas|tactics|"
    r"framework|step by step|explain|thoughts)\b"
)
_WHY_RE = re.compile(r"\b(why|reason|because|rationale|tradeoff|trade-off)\b")
_HOW_RE = re.compile(r"\bhow\b")
_COMPARE_RE = re.compile(r"\b(compare|versus|vs\.?|pros and cons|tradeoff|trade-off|which should i choose)\b")
_STEPS_RE = re.compile(r"\b(step|steps|checklist|how do i|procedure|walk me through|process)\b")
_TABLE_RE = re.compile(r"\b(table|tabulate|matrix|grid|columns)\b")
_BRIEF_RE = re.compile(r"(\btl;dr|\bshort version\b|\bbrief\b|\bsummary only\b|\bone line\b|\bone-liner\b)")
_REASONING_RE = re.compile(
    r"\b(risks?|advantages?|pros|cons|benefits?|issues?|problems?|causes?|effects?|impact|analysis|"
    r"breakdown|explain|thoughts|opinion|future|plan)\b"
)


@dataclass(frozen=True, slots=True)
class StructureHints:
    wants_steps: bool = False
    wants_compare: bool = False
    wants_table: bool = False
    wants_brief: bool = False
    wants_thorough: bool = False
    asks_why: bool = False
    asks_how: bool = False

    @property
    def wants_scaffold(self) -> bool:
        return self.wants_steps or self.wants_compare or self.wants_table


def infer_structure(prompt: str) -> StructureHints:
    """Guess from the wording whether the user wants steps, a comparison, a table..."""
    p = (prompt or "").lower()
    return StructureHints(
        wants_steps=bool(_STEPS_RE.search(p)),
        wants_compare=bool(_COMPARE_RE.search(p)),
        wants_table=bool(_TABLE_RE.search(p)),
        wants_brief=bool(_BRIEF_RE.search(p)),
        wants_thorough=bool(_THOROUGH_RE.search(p)),
        asks_why=bool(_WHY_RE.search(p)),
        asks_how=bool(_HOW_RE.search(p)),
    )


def narrative_hint(hints: StructureHints) -> str:
    if hints.wants_brief:
        return "direct-answer"
    if hints.wants_steps:
        return "numbered-steps"
    if hints.wants_compare or hints.wants_table:
        return "contrast-brief"
    if hints.asks_why:
        return "mini-essay-with-reasoning"
    if hints.asks_how:
        return "example-led-explanation"
    return "mini-essay (paragraphs), avoid bullets unless explicitly asked"


def wants_structured_reasoning(prompt: str) -> bool:
    p = (prompt or "").lower()
    return bool(_REASONING_RE.search(p)) or len(p.split()) > 10


def has_negative_kpis(bundle: Mapping[str, Any]) -> bool:
    kpis = bundle.get("kpis")
    if not isinstance(kpis, list):
        return False
    for row in kpis:
        if not isinstance(row, Mapping):
            continue
        for name in NEGATIVE_DELTA_FIELDS:
            value = row.get(name)
            if isinstance(value, int | float) and value < 0:
                return True
    return False


@dataclass(frozen=True, slots=True)
class ComposedPrompt:
    system_messages: tuple[dict[str, str], ...]
    persona_version: str
    style_version: str
    depth: str
    style_family: str
    module: str
    dials: Dials


class PromptComposer:
    """
    Builds the instruction stack: persona first, then style, then a short
    narrative hint.  The two layers are independent; the composer only picks
    their parameters.
    """

    def __init__(self, default_depth: str = DEFAULT_DEPTH):
        self.default_depth = normalize_depth(default_depth)

    def choose_depth(self, request: ChatRequest, hints: StructureHints) -> str:
        if request.depth and request.depth.strip().lower() in DEPTH_PRESETS:
            return request.depth.strip().lower()
        if hints.wants_brief:
            return "brief"
        if hints.wants_thorough:
            return "comprehensive"
        return self.default_depth

    def choose_family(self, descriptor: IntentDescriptor, request: ChatRequest, hints: StructureHints) -> str:
        override = _STYLE_ALIASES.get((request.style or "").strip().lower())
        if override:
            return override
        if hints.wants_scaffold or descriptor.template in STRUCTURAL_TEMPLATES:
            return STRUCTURED
        return descriptor.style_family if descriptor.style_family in _STYLE_ALIASES else CONVERSATIONAL

    def compose(
        self,
        descriptor: IntentDescriptor,
        request: ChatRequest,
        bundle: Mapping[str, Any] | None = None,
    ) -> ComposedPrompt:
        bundle = bundle or {}
        hints = infer_structure(request.message)
        depth = self.choose_depth(request, hints)
        family = self.choose_family(descriptor, request, hints)
        module = (request.module or descriptor.module or "bizzy").lower()

        negative = has_negative_kpis(bundle)
        flags = PersonaFlags(
            bad_news=negative and descriptor.template in BAD_NEWS_TEMPLATES,
            celebration=not negative and descriptor.template in CELEBRATION_TEMPLATES,
            quick=depth == "brief",
            deep_dive=depth in ("deep", "comprehensive"),
        )
        dials = dials_for(flags)

        persona = build_persona_message(
            intent=descriptor.key,
            module=module,
            dials=dials,
            template=descriptor.template,
            extra_hint=descriptor.persona_hint,
        )
        messages = [{"role": "system", "content": persona}]
        messages.extend(
            {"role": "system", "content": content}
            for content in build_style_messages(descriptor.template, depth, family)
        )
        messages.append({"role": "system", "content": self._narrative_message(request.message, hints)})

        return ComposedPrompt(
            system_messages=tuple(messages),
            persona_version=PERSONA_VERSION,
            style_version=style_version(family),
            depth=depth,
            style_family=family,
            module=module,
            dials=dials,
        )

    @staticmethod
    def _narrative_message(prompt: str, hints: StructureHints) -> str:
        lines = [
            f"Prefer narrative flow: {narrative_hint(hints)}.",
            "Do not force uniform paragraph counts.",
            "Vary tone and format based on what fits the question.",
            'Skip generic headings like "Summary", "Details", or "Next steps" unless the user asks for structure.',
        ]
        if wants_structured_reasoning(prompt):
            lines.append(
                "This question benefits from a reasoned, multi-part answer: use 2-4 short paragraphs and, "
                "only if truly helpful, a brief topic-specific label."
            )
        return " ".join(lines)
