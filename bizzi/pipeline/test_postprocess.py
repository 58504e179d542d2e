from bizzi.conftest import FakeStore
from bizzi.intents.base import GENERAL, FinalizeContext, IntentDescriptor
from bizzi.pipeline.postprocess import coerce_action, normalize_output, run_post_process
from bizzi.pipeline.types import Action, ErrorKind, IntentOutput, RequestHints


def _ctx(bundle=None, store=None) -> FinalizeContext:
    return FinalizeContext(
        intent="custom",
        user_id="u1",
        business_id="b1",
        message="hi",
        hints=RequestHints(),
        bundle=bundle or {},
        store=store or FakeStore(),
    )


async def test_no_hook_passes_text_through() -> None:
    result = await run_post_process(IntentDescriptor("plain", GENERAL, "Plain"), "text", _ctx())

    assert result.ok
    assert result.value == IntentOutput(response_text="text")


async def test_raising_hook_keeps_unmodified_output() -> None:
    async def hook(output, ctx):
        output.response_text = "mutated"
        output.navigate_to = "/somewhere"
        raise RuntimeError("write failed")

    result = await run_post_process(IntentDescriptor("x", GENERAL, "X", post_process=hook), "model text", _ctx())

    assert result.value == IntentOutput(response_text="model text")
    assert result.error.kind is ErrorKind.POST_PROCESS
    assert result.error.detail == "write failed"


async def test_string_result_is_wrapped() -> None:
    async def hook(output, ctx):
        return output.response_text.upper()

    result = await run_post_process(IntentDescriptor("x", GENERAL, "X", post_process=hook), "shout", _ctx())

    assert result.ok
    assert result.value.response_text == "SHOUT"


async def test_unexpected_result_type_is_an_error() -> None:
    async def hook(output, ctx):
        return 42

    result = await run_post_process(IntentDescriptor("x", GENERAL, "X", post_process=hook), "text", _ctx())

    assert result.value.response_text == "text"
    assert result.error.kind is ErrorKind.POST_PROCESS


def test_normalize_orders_chips_then_nav_then_cta_and_folds_extras() -> None:
    output = IntentOutput(
        response_text="Done.",
        chips=[Action.chip("Tax", intent="navigate", to="/dashboard/tax")],
        navigate_to="/dashboard/calendar",
        cta=Action.cta("Review draft", action="open_draft"),
        follow_up_prompt="Anything else?",
        extras={"draft_logged": True},
    )

    envelope = normalize_output(output).to_dict()

    assert [a["kind"] for a in envelope["actions"]] == ["chip", "nav", "cta"]
    assert envelope["actions"][1] == {"to": "/dashboard/calendar", "kind": "nav", "label": "Open"}
    assert envelope["actions"][2]["action"] == "open_draft"
    assert envelope["follow_up_prompt"] == "Anything else?"
    assert envelope["meta"] == {"draft_logged": True}
    assert set(envelope) == {"response_text", "actions", "follow_up_prompt", "meta"}


def test_plain_output_has_no_actions() -> None:
    envelope = normalize_output(IntentOutput(response_text="hi"))

    assert envelope.actions == []
    assert envelope.meta == {}


def test_coerce_action_accepts_dicts_and_labels() -> None:
    assert coerce_action({"type": "chip", "label": "Open tax", "to": "/dashboard/tax"}) == Action(
        "chip", "Open tax", {"to": "/dashboard/tax"}
    )
    assert coerce_action("Try again") == Action("chip", "Try again")
    assert coerce_action("", "cta") is None
    assert coerce_action(3.5) is None
