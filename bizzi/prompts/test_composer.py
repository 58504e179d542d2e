import pytest

from bizzi.intents.workspace import GENERAL_INTENT
from bizzi.pipeline.types import ChatRequest
from bizzi.prompts.composer import PromptComposer, has_negative_kpis, infer_structure, narrative_hint
from bizzi.prompts.persona import PERSONA_VERSION, Dials, PersonaFlags, build_persona_message, dials_for
from bizzi.prompts.style import (
    DEPTH_PRESETS,
    STYLE_CHAT,
    STYLE_CHAT_VERSION,
    STYLE_GUIDE,
    STYLE_VERSION,
    TEMPLATES,
    build_style_messages,
    normalize_depth,
)


def _contents(prompt) -> list[str]:
    return [m["content"] for m in prompt.system_messages]


def test_structured_intent_gets_guide_template_and_depth(registry) -> None:
    prompt = PromptComposer().compose(
        registry.resolve("affordability_check"), ChatRequest(message="can i afford a new truck")
    )

    contents = _contents(prompt)
    assert all(m["role"] == "system" for m in prompt.system_messages)
    assert contents[0].endswith(f"(persona {PERSONA_VERSION})")
    assert contents[1] == STYLE_GUIDE
    assert contents[2] == TEMPLATES["affordability_check"]
    assert contents[3] == DEPTH_PRESETS["standard"]
    assert contents[4].startswith("Prefer narrative flow:")
    assert prompt.style_family == "structured"
    assert prompt.style_version == STYLE_VERSION
    assert prompt.module == "financials"


def test_conversational_intent_gets_chat_rules_only() -> None:
    prompt = PromptComposer().compose(GENERAL_INTENT, ChatRequest(message="hello there"))

    contents = _contents(prompt)
    assert len(contents) == 4
    assert contents[1] == STYLE_CHAT
    assert prompt.style_family == "conversational"
    assert prompt.style_version == STYLE_CHAT_VERSION
    assert prompt.module == "bizzy"


def test_explicit_depth_wins_and_deep_dive_lowers_brevity() -> None:
    prompt = PromptComposer().compose(GENERAL_INTENT, ChatRequest(message="tl;dr please", depth="deep"))

    assert prompt.depth == "deep"
    assert prompt.dials.brevity == 1


def test_thorough_wording_also_lowers_brevity() -> None:
    prompt = PromptComposer().compose(GENERAL_INTENT, ChatRequest(message="give me a comprehensive guide to pricing"))

    assert prompt.depth == "comprehensive"
    assert prompt.dials.brevity == 1


@pytest.mark.parametrize(
    ("message", "depth"),
    [
        ("tl;dr of my week", "brief"),
        ("give me a comprehensive guide to pricing", "comprehensive"),
        ("hello", "standard"),
    ],
)
def test_depth_inferred_from_wording(message, depth) -> None:
    assert PromptComposer().compose(GENERAL_INTENT, ChatRequest(message=message)).depth == depth


def test_unknown_default_depth_normalizes_to_standard() -> None:
    assert PromptComposer("enormous").default_depth == "standard"


def test_style_override_beats_descriptor_family(registry) -> None:
    prompt = PromptComposer().compose(
        registry.resolve("affordability_check"), ChatRequest(message="can i afford it", style="chat")
    )

    assert prompt.style_family == "conversational"


def test_step_requests_switch_to_structured() -> None:
    prompt = PromptComposer().compose(GENERAL_INTENT, ChatRequest(message="walk me through the steps to send an invoice"))

    assert prompt.style_family == "structured"
    assert "numbered-steps" in _contents(prompt)[-1]


def test_negative_kpis_trigger_bad_news_dials(registry) -> None:
    bundle = {"kpis": [{"month": "2026-05", "net_profit_delta": -2100.0}]}

    prompt = PromptComposer().compose(registry.resolve("fin_overview"), ChatRequest(message="how did i do"), bundle)

    assert prompt.dials == Dials(humor=0, energy=2, brevity=3, optimism=1)


def test_positive_kpis_on_insight_template_celebrate(registry) -> None:
    bundle = {"kpis": [{"month": "2026-05", "net_profit_delta": 900.0}]}

    prompt = PromptComposer().compose(registry.resolve("fin_overview"), ChatRequest(message="how did i do"), bundle)

    assert prompt.dials.energy == 3
    assert prompt.dials.optimism == 3


def test_request_module_overrides_descriptor_module() -> None:
    prompt = PromptComposer().compose(GENERAL_INTENT, ChatRequest(message="hi", module="Tax"))

    assert prompt.module == "tax"
    assert "planner-explainer" in _contents(prompt)[0]


def test_persona_hint_and_override_are_included(registry) -> None:
    prompt = PromptComposer().compose(registry.resolve("email_reply"), ChatRequest(message="reply to her"))

    assert "propose 2-3 time slots" in _contents(prompt)[0]


def test_persona_message_clamps_dials() -> None:
    text = build_persona_message(dials=Dials(humor=9, energy=0, brevity=2, optimism=2))

    assert "Use brief quips sparingly" in text
    assert "Energy: steady." in text
    assert text.endswith(f"(persona {PERSONA_VERSION})")


def test_dials_for_applies_flags_in_order() -> None:
    assert dials_for(PersonaFlags()) == Dials()
    assert dials_for(PersonaFlags(quick=True)).brevity == 3
    assert dials_for(PersonaFlags(bad_news=True, deep_dive=True)).brevity == 1


def test_build_style_messages_shapes() -> None:
    assert build_style_messages("insight", "brief", "structured") == [
        STYLE_GUIDE,
        TEMPLATES["insight"],
        DEPTH_PRESETS["brief"],
    ]
    assert build_style_messages("nope", "bogus", "conversational") == [STYLE_CHAT, DEPTH_PRESETS["standard"]]
    assert normalize_depth(" MAX ") == "max"


def test_structure_hints() -> None:
    hints = infer_structure("Compare option A vs option B in a table")

    assert hints.wants_compare and hints.wants_table and hints.wants_scaffold
    assert narrative_hint(hints) == "contrast-brief"
    assert narrative_hint(infer_structure("why is cash low")) == "mini-essay-with-reasoning"


def test_has_negative_kpis_ignores_malformed_rows() -> None:
    assert not has_negative_kpis({})
    assert not has_negative_kpis({"kpis": "oops"})
    assert not has_negative_kpis({"kpis": [None, {"margin_pct_delta": "n/a"}]})
    assert has_negative_kpis({"kpis": [{"margin_pct_delta": -0.5}]})
