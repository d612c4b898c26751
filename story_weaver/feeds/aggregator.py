"""
Concurrent fan-out over curated feeds with partial-failure collection.

Every feed is fetched at the same time. A feed that times out or fails to
parse only drops its own contribution and is recorded in ``errors``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..core.types import CATEGORIES, Article
from .parser import FeedParser
from .sources import CURATED_FEEDS

logger = logging.getLogger(__name__)


@dataclass
class FeedFetchError:
    url: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "message": self.message}


@dataclass
class AggregatedResult:
    items: list[Article] = field(default_factory=list)
    errors: list[FeedFetchError] = field(default_factory=list)


async def fetch_aggregated_feed(
    categories: Iterable[str] | None = None,
    max_total: int = 50,
    parser: FeedParser | None = None,
    feeds: dict[str, list[str]] | None = None,
) -> AggregatedResult:
    """Fetch, merge, dedup and date-sort articles for the given categories.

    Args:
        categories: Categories to pull, defaults to every known category
        max_total: Maximum number of articles returned
        parser: Feed parser to use (a default one is built when omitted)
        feeds: Category -> feed URL mapping, defaults to CURATED_FEEDS

    Returns:
        AggregatedResult with deduplicated articles, newest first with
        undated articles last, and one error per failed feed
    """
    parser = parser or FeedParser()
    feeds = feeds if feeds is not None else CURATED_FEEDS
    wanted = list(categories) if categories is not None else list(CATEGORIES)

    work: list[tuple[str, str]] = [
        (url, category) for category in wanted for url in feeds.get(category, [])
    ]

    outcomes = await asyncio.gather(
        *(parser.parse_feed(url, category) for url, category in work),
        return_exceptions=True,
    )

    merged: list[Article] = []
    errors: list[FeedFetchError] = []
    for (url, category), outcome in zip(work, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            message = str(outcome) or type(outcome).__name__
            errors.append(FeedFetchError(url=url, message=message))
            logger.warning(
                "Feed fetch failed",
                extra={"event": "feed_failed", "url": url, "category": category, "error": message},
            )
            continue
        merged.extend(outcome)

    items = sort_by_published(dedup_by_url_hash(merged))[:max_total]
    logger.info(
        "Feed aggregation complete",
        extra={
            "event": "feed_aggregated",
            "feeds": len(work),
            "failed": len(errors),
            "merged": len(merged),
            "returned": len(items),
        },
    )
    return AggregatedResult(items=items, errors=errors)


def dedup_by_url_hash(articles: Iterable[Article]) -> list[Article]:
    """Keep the first article seen for each url_hash, preserving order."""
    seen: set[str] = set()
    kept: list[Article] = []
    for article in articles:
        if not article.url_hash or article.url_hash in seen:
            continue
        seen.add(article.url_hash)
        kept.append(article)
    return kept


def sort_by_published(articles: Iterable[Article]) -> list[Article]:
    """Stable sort, newest first, undated articles after every dated one."""
    articles = list(articles)
    dated = [a for a in articles if a.published_at is not None]
    undated = [a for a in articles if a.published_at is None]
    dated.sort(key=lambda a: _timestamp(a.published_at), reverse=True)
    return dated + undated


def get_source_stats(articles: Iterable[Article]) -> dict[str, int]:
    return dict(Counter(article.source for article in articles))


def _timestamp(value: datetime) -> float:
    return value.timestamp()
