"""
Content-safety screening for feed articles and submitted article text.

Two entry points share the same keyword vocabulary:

1. ``feed_content_filter`` scores one feed article for age-appropriateness
   across four keyword tiers and decides whether it may be shown.
2. ``maybe_refuse`` screens user-submitted article text before any story
   generation is attempted.

Both are pure functions of their text input. Keywords match
case-insensitively on word boundaries, including simple inflections
("fight" matches "fights" and "fighting").
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import re
from typing import Iterable

from .core.types import Article, SafetyVerdict

MAX_INPUT_CHARS = 10000
MIN_INPUT_CHARS = 50

BLOCKED_KEYWORDS = (
    "domestic violence",
    "domestic abuse",
    "sexual assault",
    "sexual violence",
    "sexual abuse",
    "rape",
    "child abuse",
    "molestation",
    "human trafficking",
    "sex trafficking",
    "trafficking",
    "abuse",
)

HARD_NEWS_KEYWORDS = (
    "war",
    "conflict",
    "military",
    "troops",
    "invasion",
    "ceasefire",
    "diplomacy",
    "diplomatic",
    "sanctions",
    "refugee",
    "asylum",
    "displaced",
)

SEVERITY_KEYWORDS = (
    "killed",
    "massacre",
    "terrorist",
    "terrorism",
    "casualties",
    "genocide",
    "execution",
    "shooting",
    "bombing",
    "hostage",
    "slaughter",
    "death toll",
)

UNSAFE_KEYWORDS = (
    # violence
    "violence", "violent", "attack", "assault", "murder", "kill", "death", "die", "dead",
    "weapon", "gun", "knife", "bomb", "explosion", "war", "battle", "fight",
    # adult content
    "sex", "sexual", "porn", "adult", "nude", "naked", "intimate",
    # drugs and alcohol
    "drug", "cocaine", "heroin", "marijuana", "alcohol", "drunk", "drinking",
    # self-harm
    "suicide", "self-harm", "cutting", "overdose",
    # hate speech indicators
    "hate", "racist", "discrimination", "prejudice", "bigotry",
)

SAFE_CONTEXT_WORDS = (
    "news", "article", "story", "report", "event", "situation", "problem", "issue",
    "help", "support", "community", "education", "awareness", "prevention",
)

HARD_NEWS_SCORE = 30
SEVERITY_SCORE_PER_MATCH = 15
CONTEXT_SCORE_PER_MATCH = 10
UNSAFE_SCORE = 90


@dataclass
class Refusal:
    refuse: bool
    reason: str | None = None


@dataclass
class SafetyFilterResult:
    articles: list[Article] = field(default_factory=list)
    filtered_count: int = 0
    safety_applied: bool = True


def find_matches(text: str, keywords: Iterable[str]) -> list[str]:
    """Return the keywords found in ``text``, in vocabulary order."""
    lowered = (text or "").lower()
    return [word for word in keywords if _keyword_pattern(word).search(lowered)]


def has_safe_context(text: str) -> bool:
    return bool(find_matches(text, SAFE_CONTEXT_WORDS))


def feed_content_filter(item: Article | str) -> SafetyVerdict:
    """Score a feed article (or raw text) for age-appropriateness.

    Tiers are evaluated in order: blocked, hard news, severity, general
    unsafe vocabulary. The blocked tier short-circuits every other check.
    """
    text = _article_text(item)
    verdict = SafetyVerdict()

    blocked = find_matches(text, BLOCKED_KEYWORDS)
    if blocked:
        verdict.safe = False
        verdict.age_score = 100
        verdict.severity = "high"
        verdict.reasons.append(f"Blocked topic: {', '.join(blocked)}")
        return verdict

    hard_news = find_matches(text, HARD_NEWS_KEYWORDS)
    if hard_news:
        verdict.add_score(HARD_NEWS_SCORE)
        verdict.raise_severity("medium")
        verdict.reasons.append(
            f"Hard news topic ({', '.join(hard_news)}); may need adult context"
        )

    severe = find_matches(text, SEVERITY_KEYWORDS)
    if severe:
        verdict.add_score(SEVERITY_SCORE_PER_MATCH * len(severe))
        verdict.raise_severity("high")
        verdict.reasons.append(f"Graphic or severe terms: {', '.join(severe)}")

    unsafe = find_matches(text, UNSAFE_KEYWORDS)
    if unsafe:
        if has_safe_context(text):
            verdict.add_score(CONTEXT_SCORE_PER_MATCH * len(unsafe))
            verdict.raise_severity("medium")
            verdict.reasons.append(
                f"Sensitive terms in a news or educational context: {', '.join(unsafe)}"
            )
        else:
            verdict.safe = False
            verdict.age_score = max(verdict.age_score, UNSAFE_SCORE)
            verdict.raise_severity("high")
            verdict.reasons.append(f"Unsafe terms: {', '.join(unsafe)}")

    return verdict


def filter_unsafe(articles: Iterable[Article]) -> SafetyFilterResult:
    """Keep only articles whose verdict is safe."""
    articles = list(articles)
    kept = [article for article in articles if feed_content_filter(article).safe]
    return SafetyFilterResult(
        articles=kept,
        filtered_count=len(articles) - len(kept),
        safety_applied=True,
    )


def maybe_refuse(text: str) -> Refusal:
    """Screen submitted article text before story generation."""
    unsafe = find_matches(text, UNSAFE_KEYWORDS)
    if unsafe and not has_safe_context(text):
        return Refusal(
            refuse=True,
            reason=(
                f"Content contains potentially inappropriate topics: {', '.join(unsafe)}. "
                "Please provide a different news article."
            ),
        )

    if len(text) > MAX_INPUT_CHARS:
        return Refusal(
            refuse=True,
            reason="Article text is too long. Please provide a shorter, more focused news article.",
        )

    if len(text.strip()) < MIN_INPUT_CHARS:
        return Refusal(
            refuse=True,
            reason="Article text is too short. Please provide a more detailed news article.",
        )

    return Refusal(refuse=False)


def _article_text(item: Article | str) -> str:
    if isinstance(item, Article):
        return f"{item.title} {item.content}"
    return item or ""


@lru_cache(maxsize=None)
def _keyword_pattern(word: str) -> re.Pattern[str]:
    # A trailing "e" is dropped before suffixes (hate -> hated, hating).
    if word.endswith("e"):
        stem = re.escape(word[:-1])
        return re.compile(rf"\b{stem}(?:e|es|ed|er|ers|ing)\b")
    return re.compile(rf"\b{re.escape(word)}(?:s|es|ed|er|ers|ing)?\b")
