import pytest

from bizzi.intents.base import FIN, TAX, IntentDescriptor, matches, nudge
from bizzi.intents.registry import IntentRegistry
from bizzi.intents.workspace import GENERAL_INTENT
from bizzi.pipeline.classifier import ClassifierWeights, IntentClassifier, route_category
from bizzi.pipeline.types import ErrorKind, RequestHints


def _pair_registry(top: float, second: float) -> IntentRegistry:
    return IntentRegistry(
        (
            IntentDescriptor("alpha", FIN, "Alpha report", nudges=(nudge(r"widget", top),)),
            IntentDescriptor("beta", TAX, "Beta filing", nudges=(nudge(r"widget", second),)),
        ),
        fallback=GENERAL_INTENT,
    )


@pytest.mark.parametrize(
    "message",
    [
        "",
        "asdf qwerty",
        "hello there",
        "reply to this and schedule a follow up tomorrow",
        "how did I do last month? why did revenue dip?",
        "open the tax dashboard and help me",
    ],
)
def test_every_message_resolves_to_exactly_one_intent(classifier, registry, message) -> None:
    result = classifier.classify(message)

    assert result.value.key
    assert result.value.key in registry


def test_single_matching_predicate_wins_without_ambiguity(classifier) -> None:
    result = classifier.classify("can i afford a second truck")

    assert result.value.key == "affordability_check"
    assert not result.value.ambiguous
    assert result.ok


def test_close_scores_above_floor_are_ambiguous() -> None:
    registry = _pair_registry(0.9, 0.8)

    result = IntentClassifier(registry).classify("widget please")

    c = result.value
    assert c.ambiguous
    assert [o.intent for o in c.options] == ["alpha", "beta"]
    assert [o.label for o in c.options] == ["Alpha report", "Beta filing"]


def test_gap_equal_to_threshold_counts_as_ambiguous() -> None:
    result = IntentClassifier(_pair_registry(0.95, 0.8)).classify("widget")

    assert result.value.ambiguous


def test_second_below_floor_is_not_ambiguous() -> None:
    result = IntentClassifier(_pair_registry(0.85, 0.75)).classify("widget")

    assert result.value.key == "alpha"
    assert not result.value.ambiguous


def test_thresholds_are_configurable() -> None:
    weights = ClassifierWeights(ambiguity_gap=0.05, ambiguity_floor=0.8)

    result = IntentClassifier(_pair_registry(0.9, 0.8), weights).classify("widget")

    assert not result.value.ambiguous


def test_forced_intent_always_wins(classifier) -> None:
    result = classifier.classify("draft a reply to this email", forced="tax_deadlines")

    c = result.value
    assert c.key == "tax_deadlines"
    assert c.forced
    assert not c.ambiguous


def test_forced_override_beats_an_ambiguous_message() -> None:
    result = IntentClassifier(_pair_registry(0.9, 0.8)).classify("widget", forced="beta")

    assert result.value.key == "beta"
    assert not result.value.ambiguous


def test_unknown_forced_intent_falls_back_to_general(classifier) -> None:
    result = classifier.classify("anything", forced="does_not_exist")

    assert result.value.key == "general"
    assert result.value.forced


def test_receivables_over_days_on_financial_route_is_invoice_status(classifier) -> None:
    result = classifier.classify("what's outstanding on receivables over 45 days", route="/dashboard/accounting")

    c = result.value
    assert c.key == "invoice_status"
    assert not c.ambiguous
    assert c.candidates[0].score == pytest.approx(1.35)


def test_schedule_call_without_email_hints_is_calendar(classifier) -> None:
    result = classifier.classify("schedule a call tomorrow")

    assert result.value.key == "calendar_schedule"
    assert not result.value.ambiguous


def test_what_is_on_tomorrow_reads_as_agenda(classifier) -> None:
    assert classifier.classify("what do I have tomorrow").value.key == "agenda_range"


def test_thread_hints_bias_toward_email_intents(classifier) -> None:
    hints = RequestHints(thread_id="t-1", account_id="acc-1")

    result = classifier.classify("what's this about", hints=hints)

    assert result.value.key == "email_summarize"
    email_scores = {c.key: c.bonus for c in result.value.candidates if c.key.startswith("email_")}
    assert all(b >= 0.2 for b in email_scores.values())


def test_route_bonus_applies_to_matching_category(classifier) -> None:
    result = classifier.classify("hello", route="/dashboard/tax")

    tax = [c for c in result.value.candidates if c.key.startswith("tax_")]
    assert tax and all(c.bonus == pytest.approx(0.35) for c in tax)


def test_no_positive_score_falls_back_to_first_match_scan(classifier) -> None:
    result = classifier.classify("")

    assert result.value.key == "general"
    assert not result.value.ambiguous


def test_raising_predicate_scores_zero_and_is_reported() -> None:
    def boom(message: str) -> bool:
        raise RuntimeError("bad regex")

    registry = IntentRegistry(
        (
            IntentDescriptor("broken", FIN, "Broken", predicate=boom),
            IntentDescriptor("fine", TAX, "Fine", predicate=matches(r"\bquarterly\b")),
        ),
        fallback=GENERAL_INTENT,
    )

    result = IntentClassifier(registry).classify("quarterly numbers")

    assert result.value.key == "fine"
    assert result.error is not None
    assert result.error.kind is ErrorKind.CLASSIFICATION
    assert "broken" in result.error.detail


def test_candidates_are_capped_at_five(classifier) -> None:
    assert len(classifier.classify("hello").value.candidates) == 5


@pytest.mark.parametrize(
    ("route", "category"),
    [
        ("/dashboard/email", "email"),
        ("/dashboard/accounting", "fin"),
        ("/dashboard/financials/overview", "fin"),
        ("/dashboard/marketing", "mkt"),
        ("/dashboard/tax", "tax"),
        ("/dashboard/investments", "inv"),
        ("/dashboard/calendar", "ops"),
        ("/dashboard/bizzy-docs", "docs"),
        ("/dashboard/settings", "billing"),
        ("/dashboard/bizzy", None),
        ("", None),
    ],
)
def test_route_category(route, category) -> None:
    assert route_category(route) == category
