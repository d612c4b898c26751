"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- FeedConfig: RSS fetching settings and feed overrides
- ProviderConfig: LLM provider endpoint and credentials
- GenerationConfig: Model sampling settings for story generation
- CacheConfig: Story cache and feed cache lifetimes
- DiversityConfig: Feed diversity engine defaults
- StorageConfig: Article/story store backend
- ApiConfig: HTTP server settings
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from typing import Any

import yaml


@dataclass
class FeedConfig:
    """Configuration for RSS feed fetching.

    Attributes:
        timeout_seconds: Per-feed HTTP timeout
        user_agent: HTTP User-Agent header string
        trust_env: Whether to respect system proxy settings
        max_total: Default cap on aggregated articles
        feeds: Optional category -> feed URL list overriding the curated set
    """

    timeout_seconds: float = 10.0
    user_agent: str = "Story Generator RSS Parser/1.0"
    trust_env: bool = True
    max_total: int = 50
    feeds: dict[str, list[str]] | None = None


@dataclass
class ProviderConfig:
    """Configuration for the LLM provider.

    Attributes:
        name: Provider name ("openai" or "openai_compatible")
        model: Model identifier
        api_key_env: Environment variable name containing the API key
        base_url: Base URL of the chat-completions API
        api_key: Optional inline API key (overrides env var)
        timeout_seconds: Per-request timeout
        trust_env: Whether to respect system proxy settings for API requests
    """

    name: str = "openai"
    model: str = "gpt-4o"
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str = "https://api.openai.com/v1"
    api_key: str | None = None
    timeout_seconds: float = 30.0
    trust_env: bool = True


@dataclass
class GenerationConfig:
    """Sampling settings for story generation.

    Attributes:
        temperature: Sampling temperature for the first attempt
        corrective_temperature: Sampling temperature for the corrective retry
        max_tokens: Maximum output tokens
        seed: Optional determinism seed
        max_attempts: Attempts per completion call (rate limit / 5xx retries)
    """

    temperature: float = 0.7
    corrective_temperature: float = 0.5
    max_tokens: int = 1000
    seed: int | None = None
    max_attempts: int = 3


@dataclass
class CacheConfig:
    """Configuration for caching.

    Attributes:
        story_ttl_hours: Lifetime of a cached story
        feed_ttl_seconds: Lifetime of a cached feed response
        refresh_ttl_hours: Lifetime of a feed cache row written by refresh
    """

    story_ttl_hours: float = 24.0
    feed_ttl_seconds: int = 300
    refresh_ttl_hours: float = 48.0


@dataclass
class DiversityConfig:
    max_per_source: int = 2
    freshness_decay_hours: float = 48.0
    category_rotation: bool = True


@dataclass
class StorageConfig:
    """Configuration for the article/story store.

    Attributes:
        backend: "memory" or "sqlite"
        path: SQLite database path (sqlite backend only)
    """

    backend: str = "memory"
    path: str = "story_weaver.db"


@dataclass
class ApiConfig:
    """HTTP server settings.

    Attributes:
        host: Bind address
        port: Bind port
        refresh_key_env: Environment variable holding the refresh shared secret
        secure_cookies: Whether the device id cookie is marked Secure
    """

    host: str = "127.0.0.1"
    port: int = 8000
    refresh_key_env: str = "FEED_REFRESH_KEY"
    secure_cookies: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Optional log file path
        format: Log file format ("jsonl" or "plain")
        llm_log_detail: "response_only" or "prompt_response"
    """

    level: str = "INFO"
    console: bool = True
    file: str | None = None
    format: str = "jsonl"
    llm_log_detail: str = "response_only"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    feed: FeedConfig = field(default_factory=FeedConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    diversity: DiversityConfig = field(default_factory=DiversityConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


_SECTIONS: dict[str, type] = {
    "feed": FeedConfig,
    "provider": ProviderConfig,
    "generation": GenerationConfig,
    "cache": CacheConfig,
    "diversity": DiversityConfig,
    "storage": StorageConfig,
    "api": ApiConfig,
    "logging": LoggingConfig,
    "langfuse": LangfuseConfig,
}


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return AppConfig(**{name: _SECTIONS[name](**data[name]) for name in _SECTIONS})


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.api_key_env)


def get_refresh_key(cfg: ApiConfig) -> str | None:
    """Shared secret gating the feed refresh endpoint; None disables the gate."""
    return os.getenv(cfg.refresh_key_env) or None
