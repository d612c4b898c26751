"""
Post-safety feed re-ranking for source and category balance.

Steps, in order:
1. Score freshness (linear decay over a window, floored at 0.1 past it)
2. Stable sort by freshness, newest first
3. Cap articles per source
4. Round-robin across categories when more than one is present

Pure function of its inputs; ``now`` may be injected for tests.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
import math
from typing import Iterable

from .core.types import Article, DiversityResult

FRESHNESS_FLOOR = 0.1


def freshness_score(article: Article, now: datetime, decay_hours: float) -> float:
    """Linear freshness in (0, 1]; undated articles score 1.0.

    Articles at or past the decay window keep a 0.1 floor so they stay
    sortable instead of dropping to zero.
    """
    if article.published_at is None:
        return 1.0
    window = decay_hours * 3600.0
    age = (now - _aware(article.published_at)).total_seconds()
    if age < 0:
        return 1.0
    if age >= window:
        return FRESHNESS_FLOOR
    return 1.0 - age / window


def diversify(
    articles: Iterable[Article],
    max_per_source: int = 2,
    freshness_decay_hours: float = 48,
    category_rotation: bool = True,
    now: datetime | None = None,
) -> DiversityResult:
    """Apply freshness ordering, the per-source cap and category rotation.

    Args:
        articles: Safety-filtered articles
        max_per_source: Maximum articles admitted per source
        freshness_decay_hours: Width of the linear freshness window
        category_rotation: Whether to interleave categories round-robin
        now: Reference time for freshness, defaults to the current UTC time

    Returns:
        DiversityResult; ``diversity_applied`` is False only for empty input
    """
    articles = list(articles)
    if not articles:
        return DiversityResult(articles=[], applied_categories=[], diversity_applied=False)

    now = _aware(now or datetime.now(timezone.utc))
    scored = [(freshness_score(a, now, freshness_decay_hours), a) for a in articles]
    scored.sort(key=lambda pair: pair[0], reverse=True)

    capped = cap_per_source((article for _, article in scored), max_per_source)

    groups: dict[str, list[Article]] = {}
    for article in capped:
        groups.setdefault(article.category, []).append(article)
    applied_categories = list(groups)

    if category_rotation and len(groups) > 1:
        final = _round_robin(groups, len(capped))
    else:
        final = capped

    return DiversityResult(
        articles=final,
        applied_categories=applied_categories,
        diversity_applied=True,
    )


def cap_per_source(articles: Iterable[Article], max_per_source: int = 2) -> list[Article]:
    """Keep at most ``max_per_source`` articles per source, in input order."""
    source_counts: Counter[str] = Counter()
    capped: list[Article] = []
    for article in articles:
        if source_counts[article.source] < max_per_source:
            source_counts[article.source] += 1
            capped.append(article)
    return capped


def get_diversity_stats(articles: Iterable[Article]) -> dict:
    articles = list(articles)
    source_counts = Counter(a.source for a in articles)
    category_counts = Counter(a.category for a in articles)
    return {
        "sourceCounts": dict(source_counts),
        "categoryCounts": dict(category_counts),
        "totalSources": len(source_counts),
        "totalCategories": len(category_counts),
    }


def _round_robin(groups: dict[str, list[Article]], total: int) -> list[Article]:
    # Round count is ceil(total / categories); a group longer than that is cut.
    rounds = math.ceil(total / len(groups))
    rotated: list[Article] = []
    for i in range(rounds):
        for items in groups.values():
            if i < len(items):
                rotated.append(items[i])
    return rotated


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
