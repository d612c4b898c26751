"""
Persistence interface for articles, feed snapshots, conversions and stories.

Stores are keyed the same way everywhere:
- articles by ``url_hash`` (duplicate inserts are no-ops)
- feed snapshots by cache key (``feed:<categories>:<limit>``), upserted
- conversions by (device_id, article_hash), first write wins
- saved stories by (device_id, article_hash), last write wins
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from ..core.types import Article


@dataclass
class Conversion:
    """Record that a device turned an article into a story."""

    id: str
    device_id: str
    article_hash: str
    story_id: str
    converted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deviceId": self.device_id,
            "articleHash": self.article_hash,
            "storyId": self.story_id,
            "convertedAt": self.converted_at.isoformat(),
        }


@dataclass
class SavedStory:
    id: str
    device_id: str
    article_hash: str
    reading_level: str
    story: str
    created_at: datetime

    def snippet(self, length: int = 160) -> str:
        if len(self.story) > length:
            return self.story[:length] + "..."
        return self.story


class ArticleStore(ABC):
    """Abstract store used by the refresh job and the stories endpoints."""

    @abstractmethod
    def insert_articles(self, articles: Iterable[Article]) -> int:
        """Insert articles not yet known by ``url_hash``.

        Returns:
            Number of rows actually inserted
        """

    @abstractmethod
    def get_recent_articles(
        self,
        category: str | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[Article]:
        """Newest first by publish time; undated articles sort last."""

    @abstractmethod
    def get_feed_cache(self, key: str, now: datetime | None = None) -> dict[str, Any] | None:
        """Return the cached payload for ``key`` unless missing or expired."""

    @abstractmethod
    def upsert_feed_cache(self, key: str, payload: dict[str, Any], expires_at: datetime) -> None:
        ...

    @abstractmethod
    def mark_article_converted(self, device_id: str, article_hash: str, story_id: str) -> None:
        """Record a conversion; an existing (device, article) pair is left as is."""

    @abstractmethod
    def get_converted_hashes(self, device_id: str) -> set[str]:
        ...

    @abstractmethod
    def get_conversion_history(self, device_id: str, limit: int = 50) -> list[Conversion]:
        ...

    @abstractmethod
    def save_story(self, device_id: str, article_hash: str, reading_level: str, story: str) -> str:
        """Upsert a story on (device_id, article_hash) and return its id."""

    @abstractmethod
    def list_stories(self, device_id: str, limit: int = 10) -> list[SavedStory]:
        """Most recent first."""

    def close(self) -> None:
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def recency_key(article: Article) -> tuple[int, float]:
    """Sort key placing newer articles first and undated ones last."""
    if article.published_at is None:
        return (1, 0.0)
    return (0, -article.published_at.timestamp())
