"""Provider factory and registry for hot-swappable LLM backends."""

from __future__ import annotations

from ...config import ProviderConfig, get_api_key
from .base import CompletionProvider
from .openai_compatible import OpenAICompatibleProvider


ProviderBuilder = type[CompletionProvider]

_PROVIDER_REGISTRY: dict[str, ProviderBuilder] = {
    "openai": OpenAICompatibleProvider,
    "openai_compatible": OpenAICompatibleProvider,
    "openai-compatible": OpenAICompatibleProvider,
}


def available_providers() -> list[str]:
    """Return the set of registered provider names."""
    return sorted(_PROVIDER_REGISTRY.keys())


def create_provider(provider_cfg: ProviderConfig) -> CompletionProvider:
    """Build a provider instance from runtime config."""
    name = provider_cfg.name.lower().strip()
    builder = _PROVIDER_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_providers())
        raise ValueError(f"Unsupported provider: {provider_cfg.name}. Supported: {supported}")
    return builder(provider_cfg, get_api_key(provider_cfg))
