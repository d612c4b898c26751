"""
Retrying wrapper around a chat-completion provider.

Only rate limits (429) and upstream server errors (5xx) are retried, with
exponential backoff capped at 10 seconds. Any other error propagates on the
first attempt.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable

import httpx

from ..utils.logging import log_event
from .providers.base import ChatMessage, CompletionProvider

logger = logging.getLogger(__name__)

MAX_BACKOFF_MS = 10000


@dataclass
class ClientOptions:
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 1000
    seed: int | None = None
    max_attempts: int = 3


def backoff_delay_ms(attempt: int) -> int:
    """Delay before retrying after the given zero-based attempt."""
    return min(1000 * 2**attempt, MAX_BACKOFF_MS)


def is_retryable(exc: BaseException) -> bool:
    status = status_code_of(exc)
    return status is not None and (status == 429 or 500 <= status < 600)


def status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


class GenerationClient:
    """Calls the provider with up to ``max_attempts`` tries.

    Attributes:
        provider: Backend that performs one completion request
        options: Default model and sampling settings
        sleep: Awaitable sleep used between retries, injectable for tests
    """

    def __init__(
        self,
        provider: CompletionProvider,
        options: ClientOptions | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.options = options or ClientOptions()
        self.sleep = sleep

    @property
    def model(self) -> str:
        return self.options.model

    async def chat_completions_create(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return the completion text, retrying transient upstream failures.

        Raises:
            httpx.HTTPStatusError: On a non-retryable status, or the last
                retryable one once attempts are exhausted
        """
        max_attempts = max(1, self.options.max_attempts)
        attempt = 0
        while True:
            try:
                return await self.provider.complete(
                    messages,
                    model=self.options.model,
                    temperature=self.options.temperature if temperature is None else temperature,
                    max_tokens=self.options.max_tokens if max_tokens is None else max_tokens,
                    seed=self.options.seed,
                )
            except Exception as exc:
                if not is_retryable(exc) or attempt + 1 >= max_attempts:
                    raise
                delay_ms = backoff_delay_ms(attempt)
                log_event(
                    logger,
                    "Completion retry",
                    level=logging.WARNING,
                    event="completion_retry",
                    attempt=attempt + 1,
                    status_code=status_code_of(exc),
                    delay_ms=delay_ms,
                )
                await self.sleep(delay_ms / 1000)
                attempt += 1
