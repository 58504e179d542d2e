"""Per-intent finalize hooks and canonical envelope shaping."""

from __future__ import annotations

from typing import Any

from loguru import logger

from bizzi.intents.base import FinalizeContext, IntentDescriptor
from bizzi.pipeline.types import (
    Action,
    ErrorKind,
    IntentOutput,
    ResponseEnvelope,
    StageError,
    StageResult,
)


def coerce_action(item: Any, default_kind: str = "chip") -> Action | None:
    """Accept an ``Action``, a ``{kind,label,...}`` dict, or a bare label string."""
    if isinstance(item, Action):
        return item
    if isinstance(item, str):
        return Action(default_kind, item) if item else None
    if isinstance(item, dict):
        payload = {k: v for k, v in item.items() if k not in ("kind", "type", "label")}
        return Action(str(item.get("kind") or item.get("type") or default_kind), str(item.get("label", "")), payload)
    return None


async def run_post_process(
    descriptor: IntentDescriptor,
    text: str,
    ctx: FinalizeContext,
    *,
    production: bool = False,
) -> StageResult[IntentOutput]:
    """
    Invoke the intent's finalize hook, if any.

    A hook may return a string (wrapped) or an ``IntentOutput``.  If it raises
    or returns anything else, the model text passes through unchanged.
    """
    if not descriptor.has_post_process:
        return StageResult(IntentOutput(response_text=text))

    try:
        result = await descriptor.post_process(IntentOutput(response_text=text), ctx)
    except Exception as e:
        if production:
            logger.debug(f"post_process for '{descriptor.key}' failed: {e}")
        else:
            logger.warning(f"post_process for '{descriptor.key}' failed: {e}")
        return StageResult(IntentOutput(response_text=text), StageError(ErrorKind.POST_PROCESS, str(e)))

    if isinstance(result, str):
        return StageResult(IntentOutput(response_text=result))
    if isinstance(result, IntentOutput):
        return StageResult(result)
    return StageResult(
        IntentOutput(response_text=text),
        StageError(ErrorKind.POST_PROCESS, f"unexpected hook result: {type(result).__name__}"),
    )


def normalize_output(output: IntentOutput) -> ResponseEnvelope:
    """Chips, then the navigation target, then the CTA; ``extras`` go to meta."""
    actions: list[Action] = []
    for chip in output.chips:
        action = coerce_action(chip, "chip")
        if action is not None:
            actions.append(action)
    if output.navigate_to:
        actions.append(Action.nav(output.navigate_to))
    if output.cta is not None:
        cta = coerce_action(output.cta, "cta")
        if cta is not None:
            actions.append(cta)
    return ResponseEnvelope(
        response_text=output.response_text,
        actions=actions,
        follow_up_prompt=output.follow_up_prompt or "",
        meta=dict(output.extras),
    )
