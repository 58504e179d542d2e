"""Weighted, route-aware intent classification with ambiguity detection."""

from __future__ import annotations

import re
from dataclasses import dataclass

from loguru import logger

from bizzi.intents.base import BILLING, DOCS, EMAIL, FIN, INV, MKT, OPS, TAX
from bizzi.intents.registry import IntentRegistry
from bizzi.pipeline.types import (
    Classification,
    ClassificationCandidate,
    ClarifyOption,
    ErrorKind,
    RequestHints,
    StageError,
    StageResult,
)
from bizzi.settings import BizziSettings

# Path substring → category, first match wins.
ROUTE_CATEGORIES: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), cat)
    for p, cat in (
        (r"/dashboard/email", EMAIL),
        (r"accounting|financials", FIN),
        (r"marketing", MKT),
        (r"tax", TAX),
        (r"investments?", INV),
        (r"calendar", OPS),
        (r"bizzy-docs|docs", DOCS),
        (r"settings|sync", BILLING),
    )
)


def route_category(route: str | None) -> str | None:
    """Coarse module category implied by the current path, if any."""
    for pattern, category in ROUTE_CATEGORIES:
        if pattern.search(route or ""):
            return category
    return None


@dataclass(frozen=True, slots=True)
class ClassifierWeights:
    route_bonus: float = 0.35
    continuity_bonus: float = 0.2
    ambiguity_gap: float = 0.15
    ambiguity_floor: float = 0.8

    @classmethod
    def from_settings(cls, settings: BizziSettings) -> ClassifierWeights:
        return cls(
            route_bonus=settings.route_bonus,
            continuity_bonus=settings.continuity_bonus,
            ambiguity_gap=settings.ambiguity_gap,
            ambiguity_floor=settings.ambiguity_floor,
        )


# Float sums like 1.25 - 1.1 land a hair above 0.15.
_EPS = 1e-9


class IntentClassifier:
    """
    Scores every registered intent against a message.

    Base score is the boolean predicate (0/1).  On top of it: a route bonus
    for intents in the category implied by the current path, per-intent
    keyword nudges, and a continuity bonus for email intents when the client
    sent thread/account hints.  Never raises.
    """

    def __init__(self, registry: IntentRegistry, weights: ClassifierWeights | None = None):
        self.registry = registry
        self.weights = weights or ClassifierWeights()

    def classify(
        self,
        message: str,
        route: str = "",
        hints: RequestHints | None = None,
        forced: str | None = None,
    ) -> StageResult[Classification]:
        """
        Resolve exactly one intent.

        Args:
            message: Raw user message.
            route: Current client path (e.g. ``/dashboard/accounting``).
            hints: Client hints; thread/account ids bias toward email intents.
            forced: Client-supplied intent key; bypasses scoring.

        Returns:
            StageResult wrapping the Classification; ``error`` is set when one
            or more predicates raised.
        """
        if forced:
            return StageResult(self._forced(forced))

        hints = hints or RequestHints()
        category = route_category(route)
        text = message or ""
        failures: list[str] = []

        candidates: list[ClassificationCandidate] = []
        for d in self.registry:
            try:
                base = 1.0 if d.predicate(text) else 0.0
            except Exception as e:
                logger.debug(f"Predicate {d.key} raised: {e}")
                failures.append(f"{d.key}: {type(e).__name__}")
                base = 0.0
            bonus = 0.0
            if category and d.category == category:
                bonus += self.weights.route_bonus
            try:
                bonus += d.nudge_bonus(text)
            except Exception as e:
                failures.append(f"{d.key} nudge: {type(e).__name__}")
            if hints.has_email_continuity and d.category == EMAIL:
                bonus += self.weights.continuity_bonus
            candidates.append(ClassificationCandidate(d.key, base, bonus))

        # sorted() is stable, so registration order breaks exact ties.
        candidates.sort(key=lambda c: c.score, reverse=True)
        error = StageError(ErrorKind.CLASSIFICATION, "; ".join(failures)) if failures else None

        top = candidates[0] if candidates else None
        if top is None or top.score <= 0:
            resolved = self.registry.first_match(text)
            return StageResult(Classification(resolved.key, tuple(candidates[:5])), error)

        second = candidates[1] if len(candidates) > 1 else None
        ambiguous = (
            second is not None
            and second.score >= self.weights.ambiguity_floor - _EPS
            and top.score - second.score <= self.weights.ambiguity_gap + _EPS
        )
        options: tuple[ClarifyOption, ...] = ()
        if ambiguous:
            options = (
                ClarifyOption(top.key, self.registry.label(top.key)),
                ClarifyOption(second.key, self.registry.label(second.key)),
            )
            logger.debug(f"Ambiguous intent: {top.key}={top.score:.2f} vs {second.key}={second.score:.2f}")
        return StageResult(
            Classification(top.key, tuple(candidates[:5]), ambiguous=ambiguous, options=options),
            error,
        )

    def _forced(self, forced: str) -> Classification:
        descriptor = self.registry.resolve(forced.strip())
        if descriptor.key != forced.strip():
            logger.warning(f"Unknown forced intent '{forced}', using {descriptor.key}")
        return Classification(
            descriptor.key,
            (ClassificationCandidate(descriptor.key, 1.0),),
            forced=True,
        )

