"""OpenAI-compatible chat-completions provider over httpx."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from ...config import ProviderConfig
from .base import ChatMessage, CompletionProvider


class OpenAICompatibleProvider(CompletionProvider):
    """Posts to ``<base_url>/chat/completions`` and returns the first choice."""

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError(f"Missing API key (set {cfg.api_key_env})")
        self.cfg = cfg
        self.api_key = api_key
        self.transport = transport

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        seed: int | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if seed is not None:
            payload["seed"] = seed
        data = await self._post(payload)
        return _extract_text(data)

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        # The deadline covers the whole exchange; httpx's own timeout only
        # bounds each connect, read or write.
        timeout = self.cfg.timeout_seconds
        try:
            return await asyncio.wait_for(self._send(payload), timeout)
        except asyncio.TimeoutError as exc:
            raise httpx.TimeoutException(f"Completion request exceeded {timeout}s") from exc

    async def _send(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.cfg.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(
            timeout=self.cfg.timeout_seconds,
            trust_env=self.cfg.trust_env,
            transport=self.transport,
        ) as client:
            resp = await client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()


def _extract_text(data: dict[str, Any]) -> str:
    try:
        return data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError):
        return ""
