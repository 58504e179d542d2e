import pytest

from bizzi.intents.base import FIN, IntentDescriptor, no_cache_key, no_post_process, no_recipe
from bizzi.intents.registry import FALLBACK_KEY, IntentRegistry, build_default_registry, get_registry
from bizzi.intents.workspace import GENERAL_INTENT

EXPECTED_KEYS = {
    "email_summarize",
    "email_reply",
    "email_template",
    "email_search",
    "email_extract_tasks",
    "email_followup",
    "email_find_contact",
    "calendar_schedule",
    "agenda_range",
    "affordability_check",
    "fin_variance_explain",
    "forecast_generate",
    "cash_runway",
    "invoice_status",
    "expense_spike",
    "fin_overview",
    "tax_deadlines",
    "tax_overview",
    "mkt_overview",
    "inv_overview",
    "docs_find",
    "navigate",
    "app_help",
}


def test_default_registry_holds_every_intent_once() -> None:
    registry = build_default_registry()

    assert set(registry.keys()) == EXPECTED_KEYS
    assert len(registry) == len(EXPECTED_KEYS)
    assert FALLBACK_KEY in registry
    assert FALLBACK_KEY not in registry.keys()


def test_specific_intents_precede_broad_ones() -> None:
    keys = build_default_registry().keys()

    assert keys[0].startswith("email_")
    assert keys.index("calendar_schedule") < keys.index("agenda_range")
    assert keys.index("affordability_check") < keys.index("fin_overview")
    assert keys[-2:] == ["navigate", "app_help"]


def test_get_registry_is_memoized() -> None:
    assert get_registry() is get_registry()


def test_duplicate_keys_are_rejected() -> None:
    d = IntentDescriptor("dup", FIN, "Dup")

    with pytest.raises(ValueError, match="duplicate intent key"):
        IntentRegistry((d, d), fallback=GENERAL_INTENT)


def test_resolve_unknown_key_returns_fallback(registry) -> None:
    assert registry.resolve("nope").key == "general"
    assert registry.resolve(None).key == "general"
    assert registry.get("nope") is None
    assert registry.resolve("invoice_status").key == "invoice_status"


def test_first_match_scans_in_order(registry) -> None:
    assert registry.first_match("can i afford a truck").key == "affordability_check"
    assert registry.first_match("nothing matches here").key == "general"


def test_labels_and_modules(registry) -> None:
    assert registry.label("email_reply") == "Draft a reply"
    assert registry.label("made_up_key") == "made up key"
    assert registry.module_for("invoice_status") == "financials"
    assert registry.module_for("agenda_range") == "calendar"
    assert registry.module_for("unknown") == "bizzy"


def test_absent_capabilities_are_explicit_noops(registry) -> None:
    general = registry.resolve("general")
    assert general.recipe is no_recipe
    assert general.cache_key is no_cache_key
    assert general.post_process is no_post_process
    assert not (general.has_recipe or general.has_cache_key or general.has_post_process)

    schedule = registry.resolve("calendar_schedule")
    assert schedule.has_recipe and schedule.has_post_process and not schedule.has_cache_key


def test_describe_lists_capabilities(registry) -> None:
    rows = {row["key"]: row for row in registry.describe()}

    assert rows["invoice_status"] == {
        "key": "invoice_status",
        "category": "fin",
        "module": "financials",
        "label": "AR aging",
        "recipe": True,
        "cache": True,
        "post_process": True,
        "style_family": "conversational",
    }
