"""LLM provider implementations."""

from .base import ChatMessage, CompletionProvider
from .factory import available_providers, create_provider
from .openai_compatible import OpenAICompatibleProvider

__all__ = [
    "ChatMessage",
    "CompletionProvider",
    "OpenAICompatibleProvider",
    "available_providers",
    "create_provider",
]
