"""
Core data types for Story Weaver.

This module defines the fundamental data structures used by both pipelines:
- Article: A normalized feed item produced by the feed parser
- SafetyVerdict: Age-appropriateness verdict for one article
- DiversityResult: Output of the feed diversity engine
- StoryResult: A validated children's story with discussion questions
- CacheEntry: A story cache slot with its own TTL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


CATEGORIES: tuple[str, ...] = (
    "science",
    "nature",
    "sports",
    "arts",
    "education",
    "technology",
    "animals",
    "positive",
)

READING_LEVELS: tuple[str, ...] = ("preschool", "early-elementary", "elementary")

DEFAULT_READING_LEVEL = "elementary"

# Closed word-count ranges per reading level.
WORD_RANGES: dict[str, tuple[int, int]] = {
    "preschool": (60, 140),
    "early-elementary": (120, 220),
    "elementary": (180, 320),
}

SEVERITY_ORDER: tuple[str, ...] = ("low", "medium", "high")


@dataclass(frozen=True)
class Article:
    """A normalized article parsed from an RSS/Atom feed.

    Attributes:
        url: Canonical URL (lowercase host, no query or fragment)
        url_hash: SHA-256 hex digest of the canonical URL, the identity key
        title: Article headline
        content: HTML-stripped, whitespace-collapsed snippet
        source: Canonical domain without the ``www.`` prefix
        category: One of CATEGORIES
        published_at: Publish time (UTC) if the feed carried a parseable date
    """

    url: str
    url_hash: str
    title: str
    content: str
    source: str
    category: str
    published_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "urlHash": self.url_hash,
            "title": self.title,
            "content": self.content,
            "source": self.source,
            "category": self.category,
            "publishedAt": _isoformat(self.published_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        published = data.get("publishedAt")
        return cls(
            url=data["url"],
            url_hash=data["urlHash"],
            title=data["title"],
            content=data.get("content", ""),
            source=data["source"],
            category=data["category"],
            published_at=datetime.fromisoformat(published) if published else None,
        )


@dataclass
class SafetyVerdict:
    """Age-appropriateness verdict for a piece of feed content.

    ``age_score`` only grows while tiers are evaluated and severity only
    escalates (low -> medium -> high). An unsafe verdict always carries
    ``age_score >= 90``.
    """

    safe: bool = True
    reasons: list[str] = field(default_factory=list)
    age_score: int = 0
    severity: str = "low"

    def raise_severity(self, level: str) -> None:
        if SEVERITY_ORDER.index(level) > SEVERITY_ORDER.index(self.severity):
            self.severity = level

    def add_score(self, amount: int) -> None:
        self.age_score = min(100, max(0, self.age_score + amount))

    @property
    def age_bucket(self) -> str:
        if self.age_score < 60:
            return "kid"
        if self.age_score < 80:
            return "teen"
        return "adult"


@dataclass
class DiversityResult:
    articles: list[Article]
    applied_categories: list[str]
    diversity_applied: bool


@dataclass
class StoryResult:
    """A validated story with exactly two discussion questions.

    Attributes:
        story: The story text
        questions: Discussion questions (exactly two once validated)
        reading_level: Reading level the story targets
        word_count: Whitespace-delimited word count of ``story``
    """

    story: str
    questions: list[str]
    reading_level: str
    word_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "story": self.story,
            "questions": list(self.questions),
            "meta": {"readingLevel": self.reading_level, "wordCount": self.word_count},
        }


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
