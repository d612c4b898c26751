"""
RSS/Atom feed parsing into normalized Article records.

Fetching is done with an async httpx client (one timeout per feed) and the
document itself is parsed with feedparser, which handles RSS 0.9x/1.0/2.0
and Atom alike.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any

from bs4 import BeautifulSoup
import feedparser
import httpx

from ..core.types import Article
from ..core.urls import extract_source, normalize_url, url_hash
from ..errors import FeedError
from .categorize import infer_category

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class FeedParser:
    """Fetches one feed and turns its items into Articles.

    Attributes:
        timeout: Per-feed request timeout in seconds
        user_agent: User-Agent header sent to feed hosts
        trust_env: Whether to respect system proxy settings
        transport: Optional httpx transport, used to stub the network in tests
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = "Story Generator RSS Parser/1.0",
        trust_env: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.trust_env = trust_env
        self.transport = transport

    async def parse_feed(self, feed_url: str, forced_category: str | None = None) -> list[Article]:
        """Fetch and parse a feed.

        ``timeout`` bounds the whole fetch, not each network operation.

        Raises:
            FeedError: If the document cannot be fetched or parsed
        """
        try:
            body = await asyncio.wait_for(self._fetch(feed_url), self.timeout)
        except asyncio.TimeoutError as exc:
            raise FeedError(feed_url, f"timed out after {self.timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise FeedError(feed_url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FeedError(feed_url, f"{type(exc).__name__}: {exc}") from exc

        return self.parse_document(body, feed_url, forced_category)

    async def _fetch(self, feed_url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            trust_env=self.trust_env,
            transport=self.transport,
        ) as client:
            resp = await client.get(feed_url)
            resp.raise_for_status()
            return resp.content

    def parse_document(
        self,
        document: bytes | str,
        feed_url: str,
        forced_category: str | None = None,
    ) -> list[Article]:
        """Parse an already-fetched feed document."""
        parsed = feedparser.parse(document)
        if parsed.bozo and not parsed.entries:
            reason = str(parsed.get("bozo_exception") or "unreadable feed document")
            raise FeedError(feed_url, reason)
        # Well-formed documents that are not feeds (an HTML page served in
        # place of a moved feed) have no version and no entries.
        if not parsed.get("version") and not parsed.entries:
            raise FeedError(feed_url, "not a recognized RSS/Atom feed")

        articles: list[Article] = []
        for item in parsed.entries:
            article = self._to_article(item, forced_category)
            if article is not None:
                articles.append(article)

        logger.debug(
            "Parsed feed",
            extra={"event": "feed_parsed", "url": feed_url, "count": len(articles)},
        )
        return articles

    def _to_article(self, item: Any, forced_category: str | None) -> Article | None:
        link = item.get("link")
        title = item.get("title")
        if not link or not title:
            return None

        normalized = normalize_url(link)
        if normalized is None:
            return None

        source = extract_source(normalized)
        raw_content = _raw_content(item)
        category = forced_category or infer_category(title, raw_content, source)

        return Article(
            url=normalized,
            url_hash=url_hash(normalized),
            title=title.strip(),
            content=clean_content(raw_content),
            source=source,
            category=category,
            published_at=parse_published(item),
        )


def clean_content(content: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    if not content:
        return ""
    text = BeautifulSoup(content, "html.parser").get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def parse_published(item: Any) -> datetime | None:
    """Publish time of a feed item in UTC, or None when absent or unparseable."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = item.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _raw_content(item: Any) -> str:
    summary = item.get("summary")
    if summary:
        return summary
    content = item.get("content") or []
    if content:
        return content[0].get("value", "") or ""
    return ""
