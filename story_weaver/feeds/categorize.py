"""
Category inference for feed items.

Categories are decided by an ordered rule table. Source-domain rules run
before keyword rules, and the first matching rule wins. Keyword rules use
plain substring matching over the lowercased title and content.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


DEFAULT_CATEGORY = "science"


@dataclass(frozen=True)
class CategoryRule:
    """One row of the category decision table.

    Attributes:
        name: Human-readable rule identifier, used in logs and tests
        predicate: Called with (lowercased text, source domain)
        category: Category assigned when the predicate matches
    """

    name: str
    predicate: Callable[[str, str], bool]
    category: str


def _source_rule(fragment: str, category: str) -> CategoryRule:
    return CategoryRule(
        name=f"source:{fragment}",
        predicate=lambda text, source: fragment in source,
        category=category,
    )


def _keyword_rule(keywords: tuple[str, ...], category: str) -> CategoryRule:
    return CategoryRule(
        name=f"keywords:{category}",
        predicate=lambda text, source: any(word in text for word in keywords),
        category=category,
    )


CATEGORY_RULES: list[CategoryRule] = [
    _source_rule("sciencedaily", "science"),
    _source_rule("goodnewsnetwork", "positive"),
    _source_rule("edutopia", "education"),
    _source_rule("nationalgeographic", "nature"),
    _source_rule("si.com", "sports"),
    _keyword_rule(("science", "research", "study"), "science"),
    _keyword_rule(("nature", "animal", "environment"), "nature"),
    _keyword_rule(("sport", "game", "team"), "sports"),
    _keyword_rule(("art", "music", "creative"), "arts"),
    _keyword_rule(("school", "student", "learn"), "education"),
    _keyword_rule(("tech", "computer", "digital"), "technology"),
    _keyword_rule(("good news", "positive", "happy"), "positive"),
]


def infer_category(
    title: str,
    content: str,
    source: str,
    rules: list[CategoryRule] | None = None,
) -> str:
    """Return the category of the first matching rule, or the default."""
    text = f"{title or ''} {content or ''}".lower()
    source = (source or "").lower()
    for rule in rules if rules is not None else CATEGORY_RULES:
        if rule.predicate(text, source):
            return rule.category
    return DEFAULT_CATEGORY
