"""Single fail-soft, cancellable, timeout-bound completion call."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from bizzi.pipeline.types import ErrorKind, StageError, StageResult
from bizzi.prompts.composer import ComposedPrompt
from bizzi.providers.base import LLMProvider

FALLBACK_TEXT = "Something went wrong, but I'm still here. Try again in a moment."
BASE_SYSTEM = (
    "You are Bizzi, a helpful AI cofounder for home service businesses. Be concise, pragmatic, and specific."
)
# Sent as chat messages already; kept out of the JSON block.
_HISTORY_KEY = "recentChat"


@dataclass(slots=True)
class Completion:
    text: str
    failed: bool = False
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)


def _fallback() -> Completion:
    return Completion(text=FALLBACK_TEXT, failed=True)


class ModelInvoker:
    """
    Wraps one ``LLMProvider.chat`` call.

    Every failure mode (provider error response, empty text, exception,
    timeout, caller abort) comes back as a fallback ``Completion`` plus a
    ``StageError``; nothing propagates.
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str | None = None,
        timeout_s: float = 30.0,
        max_tokens: int = 1200,
        temperature: float = 0.5,
    ):
        self.provider = provider
        self.model = model
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        self.temperature = temperature

    @staticmethod
    def build_messages(
        prompt: ComposedPrompt,
        bundle: Mapping[str, Any],
        history: Sequence[Mapping[str, str]],
        message: str,
    ) -> list[dict[str, str]]:
        """Base system, persona+style, business context, history, then the user turn."""
        context = {k: v for k, v in bundle.items() if k != _HISTORY_KEY}
        messages: list[dict[str, str]] = [{"role": "system", "content": BASE_SYSTEM}]
        messages.extend(dict(m) for m in prompt.system_messages)
        messages.append(
            {
                "role": "system",
                "content": "Business context (JSON):\n" + json.dumps(context, ensure_ascii=False, default=str),
            }
        )
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        messages.append({"role": "user", "content": message})
        return messages

    async def invoke(
        self,
        prompt: ComposedPrompt,
        bundle: Mapping[str, Any],
        history: Sequence[Mapping[str, str]],
        message: str,
        abort: asyncio.Event | None = None,
    ) -> StageResult[Completion]:
        if abort is not None and abort.is_set():
            return StageResult(_fallback(), StageError(ErrorKind.CANCELLED, "aborted before invocation"))

        messages = self.build_messages(prompt, bundle, history, message)
        call = asyncio.ensure_future(
            self.provider.chat(
                messages,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        )
        waiters: set[asyncio.Future[Any]] = {call}
        aborted: asyncio.Future[Any] | None = None
        if abort is not None:
            aborted = asyncio.ensure_future(abort.wait())
            waiters.add(aborted)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.timeout_s, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # The awaiting task went away; the provider call must not outlive it.
            await self._cancel(call)
            raise
        finally:
            if aborted is not None and not aborted.done():
                aborted.cancel()

        if call not in done:
            await self._cancel(call)
            if aborted is not None and aborted in done:
                logger.info("Completion cancelled by caller")
                return StageResult(_fallback(), StageError(ErrorKind.CANCELLED, "aborted during invocation"))
            logger.warning(f"Completion timed out after {self.timeout_s}s")
            return StageResult(_fallback(), StageError(ErrorKind.INVOCATION, "timeout"))

        try:
            response = call.result()
        except Exception as e:
            logger.error(f"Completion provider raised: {e}")
            return StageResult(_fallback(), StageError(ErrorKind.INVOCATION, type(e).__name__))

        if response.failed:
            detail = response.error or f"finish_reason={response.finish_reason}"
            logger.warning(f"Completion failed: {detail}")
            return StageResult(_fallback(), StageError(ErrorKind.INVOCATION, detail))

        return StageResult(
            Completion(text=(response.content or "").strip(), model=response.model, usage=dict(response.usage))
        )

    @staticmethod
    async def _cancel(task: asyncio.Future[Any]) -> None:
        task.cancel()
        # Drain the cancelled call; its outcome is already replaced by the fallback.
        await asyncio.gather(task, return_exceptions=True)
