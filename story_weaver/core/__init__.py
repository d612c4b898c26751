"""
Core domain models and pure helpers.

This package contains data types, URL canonicalization and hashing that
are independent of any specific pipeline stage.
"""

from .types import (
    CATEGORIES,
    READING_LEVELS,
    WORD_RANGES,
    Article,
    CacheEntry,
    DiversityResult,
    SafetyVerdict,
    StoryResult,
)
from .urls import extract_source, normalize_url, url_hash
from .hashing import hash_article, req_hash

__all__ = [
    "CATEGORIES",
    "READING_LEVELS",
    "WORD_RANGES",
    "Article",
    "CacheEntry",
    "DiversityResult",
    "SafetyVerdict",
    "StoryResult",
    "extract_source",
    "normalize_url",
    "url_hash",
    "hash_article",
    "req_hash",
]
