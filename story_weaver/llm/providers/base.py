"""Abstract interface for chat-completion backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TypedDict


class ChatMessage(TypedDict):
    role: str
    content: str


class CompletionProvider(ABC):
    """Provider interface for a single chat-completion request.

    Implementations raise ``httpx.HTTPStatusError`` for non-2xx upstream
    responses so callers can decide on retries by status code.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        seed: int | None = None,
    ) -> str:
        """Return the assistant message text."""
        raise NotImplementedError
