"""
Story generation pipeline orchestration.

This module coordinates one story request:
1. Refusal screen on the submitted text
2. Request hash and cache lookup
3. Prompt rendering and the completion call
4. Parsing and contract validation
5. On a contract violation, exactly one corrective retry with a stricter
   system prompt; a second violation is raised to the caller
6. Cache write, only after validation succeeded

The coroutine can be cancelled at any await; nothing is cached unless the
whole pipeline completes.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from ..cache import StoryCache
from ..config import AppConfig
from ..core.hashing import req_hash
from ..core.types import DEFAULT_READING_LEVEL, READING_LEVELS, StoryResult
from ..errors import ContentRefusedError, GenerationError, StoryValidationError
from ..llm.client import ClientOptions, GenerationClient
from ..llm.prompts import (
    SYSTEM_TEMPLATE,
    USER_TEMPLATE,
    PromptVariables,
    build_corrective_system_prompt,
    load_prompt,
)
from ..llm.providers import create_provider
from ..llm.tracing import record_span_error, set_span_output, start_span
from ..safety import maybe_refuse
from ..utils.logging import log_event, truncate_text
from .validator import build_story_result, parse_generation, post_check

logger = logging.getLogger(__name__)


@dataclass
class StoryOutcome:
    """Result of one pipeline run.

    Attributes:
        result: The validated story
        cache_hit: Whether the result came from the cache
        request_hash: Cache key derived from the request
        model: Model name that served (or originally served) the request
        attempts: Generation attempts made for this request (0 on a cache hit)
    """

    result: StoryResult
    cache_hit: bool
    request_hash: str
    model: str
    attempts: int = 0


class StoryGenerator:
    """Turns article text into a validated children's story.

    Attributes:
        client: Retrying completion client
        cache: Story cache keyed by request hash
        story_ttl: TTL in seconds for cache writes (cache default when None)
        corrective_temperature: Sampling temperature for the corrective retry
        prompt_dir: Optional override of the prompt template directory
    """

    def __init__(
        self,
        client: GenerationClient,
        cache: StoryCache,
        story_ttl: float | None = None,
        corrective_temperature: float = 0.5,
        prompt_dir: Path | None = None,
        llm_log_detail: str = "response_only",
    ):
        self.client = client
        self.cache = cache
        self.story_ttl = story_ttl
        self.corrective_temperature = corrective_temperature
        self.prompt_dir = prompt_dir
        self.llm_log_detail = llm_log_detail

    async def generate(
        self,
        article_text: str,
        reading_level: str = DEFAULT_READING_LEVEL,
        style_hints: str | None = None,
    ) -> StoryOutcome:
        """Run the full pipeline for one request.

        Raises:
            ValueError: If ``reading_level`` is unknown
            ContentRefusedError: If the text fails the refusal screen
            StoryValidationError: If the corrective retry also breaks the contract
            GenerationError: If the model returns no content
            httpx.HTTPStatusError: If the upstream call fails for good
        """
        if reading_level not in READING_LEVELS:
            raise ValueError(f"Unknown reading level: {reading_level}")

        refusal = maybe_refuse(article_text)
        if refusal.refuse:
            log_event(logger, "Story request refused", event="story_refused", reason=refusal.reason)
            raise ContentRefusedError(refusal.reason or "Content not suitable for children's stories")

        request_hash = req_hash(article_text, reading_level)
        cached = self.cache.get(request_hash)
        if cached is not None:
            log_event(logger, "Story cache hit", event="story_cache_hit", request_hash=request_hash)
            return StoryOutcome(
                result=cached,
                cache_hit=True,
                request_hash=request_hash,
                model=self.client.model,
            )

        variables = PromptVariables(
            reading_level=reading_level,
            article_text=article_text,
            style_hints=style_hints,
        )
        system_prompt = load_prompt(SYSTEM_TEMPLATE, variables, self.prompt_dir)
        user_prompt = load_prompt(USER_TEMPLATE, variables, self.prompt_dir)

        result = await self._attempt("initial", system_prompt, user_prompt, reading_level)
        attempts = 1
        try:
            post_check(result, reading_level)
        except StoryValidationError as exc:
            log_event(
                logger,
                "Story failed validation, retrying with corrective prompt",
                level=logging.WARNING,
                event="story_corrective_retry",
                request_hash=request_hash,
                error=str(exc),
            )
            corrective_prompt = build_corrective_system_prompt(variables, self.prompt_dir)
            result = await self._attempt(
                "corrective",
                corrective_prompt,
                user_prompt,
                reading_level,
                temperature=self.corrective_temperature,
            )
            attempts = 2
            post_check(result, reading_level)

        self.cache.set(request_hash, result, self.story_ttl)
        log_event(
            logger,
            "Story generated",
            event="story_generated",
            request_hash=request_hash,
            reading_level=reading_level,
            word_count=result.word_count,
            attempts=attempts,
        )
        return StoryOutcome(
            result=result,
            cache_hit=False,
            request_hash=request_hash,
            model=self.client.model,
            attempts=attempts,
        )

    async def _attempt(
        self,
        variant: str,
        system_prompt: str,
        user_prompt: str,
        reading_level: str,
        temperature: float | None = None,
    ) -> StoryResult:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        with start_span(
            f"story.generate.{variant}",
            kind="llm",
            input_value=messages,
            attributes={"llm.model": self.client.model, "story.reading_level": reading_level},
        ) as span:
            try:
                raw = await self.client.chat_completions_create(messages, temperature=temperature)
            except Exception as exc:
                record_span_error(span, exc)
                raise
            set_span_output(span, raw)

        self._log_llm_response(variant, raw, user_prompt)
        if not raw or not raw.strip():
            raise GenerationError("No content generated by the model")

        parsed = parse_generation(raw)
        if parsed.degraded:
            log_event(
                logger,
                "Model output was not valid JSON; using raw text as the story",
                level=logging.WARNING,
                event="story_parse_degraded",
                variant=variant,
            )
        return build_story_result(parsed, reading_level)

    def _log_llm_response(self, variant: str, raw: str, prompt: str) -> None:
        fields = {"event": "llm_response", "variant": variant, "model": self.client.model}
        if self.llm_log_detail == "prompt_response":
            fields["raw_prompt"] = truncate_text(prompt)
        fields["raw_response"] = truncate_text(raw or "")
        log_event(logger, "LLM response", level=logging.DEBUG, **fields)


def build_generator(cfg: AppConfig, cache: StoryCache | None = None) -> StoryGenerator:
    """Wire provider, client, cache and generator from runtime config.

    Raises:
        ValueError: If the provider is unknown or its API key is missing
    """
    provider = create_provider(cfg.provider)
    options = ClientOptions(
        model=cfg.provider.model,
        temperature=cfg.generation.temperature,
        max_tokens=cfg.generation.max_tokens,
        seed=cfg.generation.seed,
        max_attempts=cfg.generation.max_attempts,
    )
    return StoryGenerator(
        client=GenerationClient(provider, options),
        cache=cache or StoryCache(default_ttl=cfg.cache.story_ttl_hours * 3600),
        corrective_temperature=cfg.generation.corrective_temperature,
        llm_log_detail=cfg.logging.llm_log_detail,
    )
