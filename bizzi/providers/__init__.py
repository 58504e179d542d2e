"""LLM provider abstraction module."""

from bizzi.providers.base import LLMProvider, LLMResponse
from bizzi.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
