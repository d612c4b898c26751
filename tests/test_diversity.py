"""Tests for the feed diversity engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from story_weaver.core.types import Article
from story_weaver.diversity import (
    FRESHNESS_FLOOR,
    cap_per_source,
    diversify,
    freshness_score,
    get_diversity_stats,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_article(slug: str, source: str, category: str, hours_ago: float | None) -> Article:
    return Article(
        url=f"https://{source}/{slug}",
        url_hash=slug,
        title=slug,
        content="",
        source=source,
        category=category,
        published_at=None if hours_ago is None else NOW - timedelta(hours=hours_ago),
    )


def test_empty_input_is_not_marked_as_diversified():
    result = diversify([], now=NOW)
    assert result.articles == []
    assert result.applied_categories == []
    assert result.diversity_applied is False


def test_source_cap_keeps_freshest_two_per_source():
    articles = [make_article(f"a{i}", "same.com", "science", hours_ago=i + 1) for i in range(5)]
    result = diversify(articles, now=NOW)
    assert [a.url_hash for a in result.articles] == ["a0", "a1"]
    assert result.diversity_applied is True


def test_round_robin_alternates_categories():
    articles = [
        make_article("nat2", "n2.com", "nature", 4),
        make_article("sci1", "s1.com", "science", 1),
        make_article("nat1", "n1.com", "nature", 3),
        make_article("sci2", "s2.com", "science", 2),
    ]
    result = diversify(articles, now=NOW)

    assert [a.url_hash for a in result.articles] == ["sci1", "nat1", "sci2", "nat2"]
    assert result.applied_categories == ["science", "nature"]
    categories = [a.category for a in result.articles]
    assert all(x != y for x, y in zip(categories, categories[1:]))


def test_round_robin_rounds_are_ceil_of_total_over_categories():
    articles = [
        make_article("sci1", "s1.com", "science", 1),
        make_article("sci2", "s2.com", "science", 2),
        make_article("sci3", "s3.com", "science", 3),
        make_article("nat1", "n1.com", "nature", 4),
    ]
    result = diversify(articles, now=NOW)
    assert [a.url_hash for a in result.articles] == ["sci1", "nat1", "sci2"]


def test_rotation_can_be_disabled():
    articles = [
        make_article("sci1", "s1.com", "science", 1),
        make_article("sci2", "s2.com", "science", 2),
        make_article("nat1", "n1.com", "nature", 3),
    ]
    result = diversify(articles, category_rotation=False, now=NOW)
    assert [a.url_hash for a in result.articles] == ["sci1", "sci2", "nat1"]


def test_single_category_keeps_freshness_order():
    articles = [
        make_article("old", "a.com", "arts", 30),
        make_article("new", "b.com", "arts", 1),
    ]
    result = diversify(articles, now=NOW)
    assert [a.url_hash for a in result.articles] == ["new", "old"]


def test_freshness_score_shape():
    window = 48
    assert freshness_score(make_article("u", "a.com", "arts", None), NOW, window) == 1.0
    assert freshness_score(make_article("f", "a.com", "arts", -2), NOW, window) == 1.0
    assert freshness_score(make_article("h", "a.com", "arts", 24), NOW, window) == pytest.approx(0.5)
    assert freshness_score(make_article("e", "a.com", "arts", 48), NOW, window) == FRESHNESS_FLOOR
    assert freshness_score(make_article("o", "a.com", "arts", 500), NOW, window) == FRESHNESS_FLOOR


def test_articles_past_window_keep_stable_order():
    articles = [
        make_article("x", "x.com", "arts", 100),
        make_article("y", "y.com", "arts", 200),
    ]
    result = diversify(articles, now=NOW)
    assert [a.url_hash for a in result.articles] == ["x", "y"]


def test_cap_per_source_preserves_input_order():
    articles = [
        make_article("a", "one.com", "arts", 1),
        make_article("b", "two.com", "arts", 1),
        make_article("c", "one.com", "arts", 1),
        make_article("d", "one.com", "arts", 1),
    ]
    assert [a.url_hash for a in cap_per_source(articles, 2)] == ["a", "b", "c"]
    assert [a.url_hash for a in cap_per_source(articles, 1)] == ["a", "b"]


def test_diversity_stats():
    articles = [
        make_article("a", "one.com", "arts", 1),
        make_article("b", "two.com", "science", 1),
        make_article("c", "one.com", "science", 1),
    ]
    assert get_diversity_stats(articles) == {
        "sourceCounts": {"one.com": 2, "two.com": 1},
        "categoryCounts": {"arts": 1, "science": 2},
        "totalSources": 2,
        "totalCategories": 2,
    }
