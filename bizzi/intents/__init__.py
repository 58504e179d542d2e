"""Intent descriptors and the ordered registry."""

from bizzi.intents.base import FetchContext, FinalizeContext, IntentDescriptor
from bizzi.intents.registry import IntentRegistry, build_default_registry, get_registry

__all__ = [
    "FetchContext",
    "FinalizeContext",
    "IntentDescriptor",
    "IntentRegistry",
    "build_default_registry",
    "get_registry",
]
