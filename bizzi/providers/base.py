"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)
    model: str = ""
    error: str = ""

    @property
    def failed(self) -> bool:
        """True when the provider reported an error or returned no text."""
        return self.finish_reason == "error" or not (self.content or "").strip()


class LLMProvider(ABC):
    """
    Abstract base class for completion providers.

    Implementations translate an ordered list of role-tagged messages into
    one text completion. Transport errors are reported through
    ``LLMResponse.finish_reason == "error"`` rather than raised.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 1200,
        temperature: float = 0.5,
    ) -> LLMResponse:
        """Send a chat completion request."""

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model."""
