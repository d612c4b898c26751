"""In-process store, the default backend and the one used by tests."""

from __future__ import annotations

import copy
from datetime import datetime
import threading
from typing import Any, Iterable
import uuid

from ..core.types import Article
from .base import ArticleStore, Conversion, SavedStory, recency_key, utcnow


class MemoryStore(ArticleStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._articles: dict[str, Article] = {}
        self._feed_cache: dict[str, tuple[dict[str, Any], datetime]] = {}
        self._conversions: dict[tuple[str, str], Conversion] = {}
        self._stories: dict[tuple[str, str], SavedStory] = {}

    def insert_articles(self, articles: Iterable[Article]) -> int:
        inserted = 0
        with self._lock:
            for article in articles:
                if article.url_hash in self._articles:
                    continue
                self._articles[article.url_hash] = article
                inserted += 1
        return inserted

    def get_recent_articles(
        self,
        category: str | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[Article]:
        with self._lock:
            rows = list(self._articles.values())
        if category:
            rows = [a for a in rows if a.category == category]
        if source:
            rows = [a for a in rows if a.source == source]
        rows.sort(key=recency_key)
        return rows[:limit] if limit else rows

    def get_feed_cache(self, key: str, now: datetime | None = None) -> dict[str, Any] | None:
        with self._lock:
            row = self._feed_cache.get(key)
        if row is None:
            return None
        payload, expires_at = row
        if (now or utcnow()) >= expires_at:
            return None
        return copy.deepcopy(payload)

    def upsert_feed_cache(self, key: str, payload: dict[str, Any], expires_at: datetime) -> None:
        with self._lock:
            self._feed_cache[key] = (copy.deepcopy(payload), expires_at)

    def mark_article_converted(self, device_id: str, article_hash: str, story_id: str) -> None:
        with self._lock:
            self._conversions.setdefault(
                (device_id, article_hash),
                Conversion(
                    id=str(uuid.uuid4()),
                    device_id=device_id,
                    article_hash=article_hash,
                    story_id=story_id,
                    converted_at=utcnow(),
                ),
            )

    def get_converted_hashes(self, device_id: str) -> set[str]:
        with self._lock:
            return {h for (dev, h) in self._conversions if dev == device_id}

    def get_conversion_history(self, device_id: str, limit: int = 50) -> list[Conversion]:
        with self._lock:
            rows = [c for c in reversed(self._conversions.values()) if c.device_id == device_id]
        rows.sort(key=lambda c: c.converted_at, reverse=True)
        return rows[:limit]

    def save_story(self, device_id: str, article_hash: str, reading_level: str, story: str) -> str:
        with self._lock:
            existing = self._stories.get((device_id, article_hash))
            story_id = existing.id if existing else str(uuid.uuid4())
            self._stories[(device_id, article_hash)] = SavedStory(
                id=story_id,
                device_id=device_id,
                article_hash=article_hash,
                reading_level=reading_level,
                story=story,
                created_at=existing.created_at if existing else utcnow(),
            )
        return story_id

    def list_stories(self, device_id: str, limit: int = 10) -> list[SavedStory]:
        with self._lock:
            rows = [s for s in reversed(self._stories.values()) if s.device_id == device_id]
        rows.sort(key=lambda s: s.created_at, reverse=True)
        return rows[:limit]
