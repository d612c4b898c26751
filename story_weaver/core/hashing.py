"""Content-addressed keys for story caching and conversion tracking."""

from __future__ import annotations

import hashlib

from .types import Article


def req_hash(article_text: str, reading_level: str) -> str:
    """Return the story cache key for an (article text, reading level) pair.

    No normalization is applied: any change to either input changes the key.
    """
    payload = f"{article_text}|{reading_level}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def hash_article(article: Article) -> str:
    """Stable key for an article: its URL, or ``source:title`` when it has none."""
    content = article.url or f"{article.source}:{article.title}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
