"""Tests for feed content scoring and pre-generation refusal."""

from __future__ import annotations

from story_weaver.core.types import Article, SafetyVerdict
from story_weaver.safety import feed_content_filter, filter_unsafe, find_matches, maybe_refuse

BENIGN = "Kids planted trees. "


def make_article(title: str, content: str = "", slug: str = "a") -> Article:
    return Article(
        url=f"https://example.com/{slug}",
        url_hash=slug,
        title=title,
        content=content,
        source="example.com",
        category="science",
    )


def test_blocked_topic_short_circuits_even_with_safe_context():
    verdict = feed_content_filter("Community news report on domestic violence awareness and support")
    assert verdict.safe is False
    assert verdict.age_score == 100
    assert verdict.severity == "high"
    assert len(verdict.reasons) == 1
    assert "domestic violence" in verdict.reasons[0]


def test_benign_text_is_safe_with_zero_score():
    verdict = feed_content_filter("Scientists discover a colorful new species of frog")
    assert verdict.safe is True
    assert verdict.age_score == 0
    assert verdict.severity == "low"
    assert verdict.reasons == []
    assert verdict.age_bucket == "kid"


def test_hard_news_raises_score_and_severity_but_stays_safe():
    verdict = feed_content_filter("Diplomats met to discuss the ceasefire, the news report said.")
    assert verdict.safe is True
    assert verdict.age_score == 30
    assert verdict.severity == "medium"


def test_unsafe_terms_without_context_are_rejected():
    verdict = feed_content_filter("A man was arrested after a gun was found nearby.")
    assert verdict.safe is False
    assert verdict.age_score >= 90
    assert verdict.severity == "high"
    assert verdict.age_bucket == "adult"


def test_unsafe_terms_in_safe_context_only_add_score():
    verdict = feed_content_filter("The community held a fight prevention workshop.")
    assert verdict.safe is True
    assert verdict.age_score == 10
    assert verdict.severity == "medium"


def test_keywords_match_on_word_boundaries_with_inflections():
    assert find_matches("skilled cooks share a diet plan", ["kill", "die"]) == []
    assert find_matches("two robots were fighting", ["fight"]) == ["fight"]
    assert feed_content_filter("Skilled chefs share a diet plan for the studio.").safe is True


def test_keyword_suffixes_cover_past_tense_and_agent_forms():
    assert find_matches("Long ago the dinosaurs died out.", ["die"]) == ["die"]
    assert find_matches("Police caught the killer.", ["kill"]) == ["kill"]
    assert find_matches("Fans hated the rain.", ["hate"]) == ["hate"]
    assert find_matches("The hospital ward reopened.", ["war"]) == []
    assert feed_content_filter("Long ago the dinosaurs died out.").safe is False


def test_age_bucket_boundaries():
    assert SafetyVerdict(age_score=59).age_bucket == "kid"
    assert SafetyVerdict(age_score=60).age_bucket == "teen"
    assert SafetyVerdict(age_score=79).age_bucket == "teen"
    assert SafetyVerdict(age_score=80).age_bucket == "adult"


def test_score_is_clamped_and_severity_never_decreases():
    verdict = SafetyVerdict()
    verdict.add_score(150)
    assert verdict.age_score == 100
    verdict.raise_severity("high")
    verdict.raise_severity("medium")
    assert verdict.severity == "high"


def test_filter_unsafe_counts_removed_articles_and_is_idempotent():
    articles = [
        make_article("Frogs sing at dawn", slug="frogs"),
        make_article("Bomb found downtown", slug="bomb"),
        make_article("Robots learn to dance", slug="robots"),
    ]

    first = filter_unsafe(articles)
    assert [a.url_hash for a in first.articles] == ["frogs", "robots"]
    assert first.filtered_count == 1
    assert first.safety_applied is True

    second = filter_unsafe(first.articles)
    assert second.articles == first.articles
    assert second.filtered_count == 0


def test_refuses_text_one_char_under_minimum():
    text = (BENIGN * 3)[:49]
    refusal = maybe_refuse(text)
    assert refusal.refuse is True
    assert "too short" in refusal.reason


def test_accepts_benign_text_at_minimum_length():
    text = (BENIGN * 3)[:50]
    assert len(text) == 50
    assert maybe_refuse(text).refuse is False


def test_refuses_overlong_text():
    refusal = maybe_refuse(BENIGN * 501)
    assert refusal.refuse is True
    assert "too long" in refusal.reason


def test_unsafe_words_checked_before_length():
    refusal = maybe_refuse("gun")
    assert refusal.refuse is True
    assert "inappropriate topics: gun" in refusal.reason


def test_unsafe_words_allowed_in_safe_context():
    text = "The community news story covered a fight prevention program for local schools."
    assert maybe_refuse(text).refuse is False
