"""Clarification gate: the terminal answer for an ambiguous classification."""

from __future__ import annotations

from bizzi.pipeline.types import Action, Classification, ResponseEnvelope

CLARIFY_QUESTION = "Which would you like me to do?"
CLARIFY_NOTE = "You can tap an option or type your preference."


def clarification_envelope(classification: Classification) -> ResponseEnvelope:
    """Deterministic envelope offering the top two candidates as chips.

    Never touches the store or the model.
    """
    actions = [Action.chip(option.label, intent=option.intent) for option in classification.options]
    return ResponseEnvelope(
        response_text=CLARIFY_QUESTION,
        actions=actions,
        follow_up_prompt=CLARIFY_NOTE,
        meta={"clarify": True, "options": [o.intent for o in classification.options]},
    )
