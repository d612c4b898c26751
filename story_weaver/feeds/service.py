"""
Feed assembly and refresh jobs built on the aggregator.

- build_feed: aggregate -> safety filter -> diversify -> truncate
- refresh_feeds: per-category pre-warm of the store and its feed cache
- screen_snapshot: re-run the safety filter over a cached snapshot

Snapshots are plain dicts (``{"articles": [...], "meta": {...}}``) so they can
be stored in any backend's feed cache and returned from the API as is.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Iterable

from ..config import DiversityConfig
from ..core.types import CATEGORIES, Article
from ..diversity import cap_per_source, diversify
from ..safety import filter_unsafe
from ..storage.base import ArticleStore
from ..utils.logging import log_event
from .aggregator import FeedFetchError, fetch_aggregated_feed, sort_by_published
from .parser import FeedParser

logger = logging.getLogger(__name__)

# The feed endpoint over-fetches so safety and diversity have room to drop items.
FEED_OVERFETCH = 3
REFRESH_OVERFETCH = 2


@dataclass
class FeedSnapshot:
    articles: list[Article]
    applied_categories: list[str]
    diversity_applied: bool
    safety_filtered: int
    last_updated: datetime
    errors: list[FeedFetchError] = field(default_factory=list)

    def to_payload(self, cache_hit: bool = False) -> dict[str, Any]:
        return {
            "articles": [a.to_dict() for a in self.articles],
            "meta": {
                "cache_hit": cache_hit,
                "appliedCategories": list(self.applied_categories),
                "total": len(self.articles),
                "diversity_applied": self.diversity_applied,
                "safety_applied": True,
                "safety_filtered": self.safety_filtered,
                "lastUpdated": self.last_updated.isoformat(),
            },
        }


@dataclass
class RefreshResult:
    refreshed: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"refreshed": list(self.refreshed), "counts": dict(self.counts)}


def feed_cache_key(categories: Iterable[str] | None, limit: int) -> str:
    """``feed:<sorted categories | all>:<limit>``."""
    cats = sorted(categories or [])
    return f"feed:{','.join(cats) if cats else 'all'}:{limit}"


async def build_feed(
    categories: list[str] | None,
    limit: int,
    parser: FeedParser | None = None,
    feeds: dict[str, list[str]] | None = None,
    diversity_cfg: DiversityConfig | None = None,
    now: datetime | None = None,
) -> FeedSnapshot:
    """Assemble a kid-safe, diversified feed of at most ``limit`` articles."""
    diversity_cfg = diversity_cfg or DiversityConfig()
    now = now or datetime.now(timezone.utc)

    aggregated = await fetch_aggregated_feed(
        categories=categories or None,
        max_total=limit * FEED_OVERFETCH,
        parser=parser,
        feeds=feeds,
    )
    screened = filter_unsafe(aggregated.items)
    diverse = diversify(
        screened.articles,
        max_per_source=diversity_cfg.max_per_source,
        freshness_decay_hours=diversity_cfg.freshness_decay_hours,
        category_rotation=diversity_cfg.category_rotation,
        now=now,
    )
    articles = diverse.articles[:limit]

    log_event(
        logger,
        "Feed assembled",
        event="feed_built",
        categories=categories or "all",
        fetched=len(aggregated.items),
        safety_filtered=screened.filtered_count,
        returned=len(articles),
        feed_errors=len(aggregated.errors),
    )
    return FeedSnapshot(
        articles=articles,
        applied_categories=list(categories or []),
        diversity_applied=diverse.diversity_applied,
        safety_filtered=screened.filtered_count,
        last_updated=now,
        errors=aggregated.errors,
    )


def screen_snapshot(payload: dict[str, Any]) -> dict[str, Any]:
    """Re-screen a cached snapshot and mark it as a cache hit.

    Snapshots written by the refresh job skip the safety filter, so every
    cached read goes through it before being served.
    """
    articles = [Article.from_dict(item) for item in payload.get("articles", [])]
    screened = filter_unsafe(articles)
    meta = dict(payload.get("meta") or {})
    meta.update(
        {
            "cache_hit": True,
            "total": len(screened.articles),
            "safety_applied": True,
            "safety_filtered": int(meta.get("safety_filtered") or 0) + screened.filtered_count,
        }
    )
    return {"articles": [a.to_dict() for a in screened.articles], "meta": meta}


async def refresh_feeds(
    store: ArticleStore,
    categories: list[str] | None = None,
    limit: int = 20,
    parser: FeedParser | None = None,
    feeds: dict[str, list[str]] | None = None,
    max_per_source: int = 2,
    ttl_hours: float = 48.0,
) -> RefreshResult:
    """Refresh every category concurrently; one failure never stops the others."""
    wanted = list(categories) if categories else list(CATEGORIES)
    result = RefreshResult()

    async def _refresh_one(category: str) -> None:
        aggregated = await fetch_aggregated_feed(
            categories=[category],
            max_total=limit * REFRESH_OVERFETCH,
            parser=parser,
            feeds=feeds,
        )
        if aggregated.errors:
            log_event(
                logger,
                "Feed aggregation errors during refresh",
                level=logging.WARNING,
                event="refresh_feed_errors",
                category=category,
                errors=[e.to_dict() for e in aggregated.errors],
            )
        articles = sort_by_published(cap_per_source(aggregated.items, max_per_source))[:limit]
        inserted = await asyncio.to_thread(store.insert_articles, articles) if articles else 0

        now = datetime.now(timezone.utc)
        payload = {
            "articles": [a.to_dict() for a in articles],
            "meta": {
                "cache_hit": False,
                "appliedCategories": [category],
                "total": len(articles),
                "diversity_applied": bool(articles),
                "safety_applied": False,
                "safety_filtered": 0,
                "lastUpdated": now.isoformat(),
            },
        }
        await asyncio.to_thread(
            store.upsert_feed_cache,
            feed_cache_key([category], limit),
            payload,
            now + timedelta(hours=ttl_hours),
        )
        result.counts[category] = inserted

    outcomes = await asyncio.gather(*(_refresh_one(c) for c in wanted), return_exceptions=True)
    for category, outcome in zip(wanted, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            log_event(
                logger,
                "Category refresh failed",
                level=logging.ERROR,
                event="refresh_failed",
                category=category,
                error=str(outcome) or type(outcome).__name__,
            )
            continue
        result.refreshed.append(category)

    log_event(logger, "Feed refresh finished", event="refresh_done", **result.to_dict())
    return result
