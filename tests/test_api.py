"""Tests for the HTTP API."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
import json

from fastapi.testclient import TestClient
import httpx

from story_weaver.cache import StoryCache
from story_weaver.config import AppConfig
from story_weaver.core.types import Article
from story_weaver.core.urls import url_hash
from story_weaver.api import create_app
from story_weaver.storage import MemoryStore
from story_weaver.story.pipeline import StoryGenerator

ARTICLE = "Otters returned to the river this spring after volunteers cleaned the muddy banks."
QUESTIONS = ["Why did the otters come back?", "How can you help keep rivers clean?"]

FEEDS = {
    "science": ["https://science.example/feed"],
    "nature": ["https://nature.example/feed"],
    "arts": ["https://arts.example/feed"],
}


def make_article(slug: str, source: str, category: str, title: str | None = None, hours_ago: float = 1) -> Article:
    url = f"https://{source}/{slug}"
    return Article(
        url=url,
        url_hash=url_hash(url),
        title=title or slug.title(),
        content="",
        source=source,
        category=category,
        published_at=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
    )


class FakeParser:
    def __init__(self):
        self.calls = 0
        self.responses = {
            "https://science.example/feed": [
                make_article("stars", "sci-a.com", "science", hours_ago=1),
                make_article("bomb", "sci-b.com", "science", title="Bomb found downtown", hours_ago=2),
                make_article("comets", "sci-c.com", "science", hours_ago=3),
            ],
            "https://nature.example/feed": [
                make_article("otters", "nat-a.com", "nature", hours_ago=1.5),
                make_article("bees", "nat-b.com", "nature", hours_ago=4),
            ],
            "https://arts.example/feed": [make_article("mural", "arts-a.com", "arts", hours_ago=5)],
        }

    async def parse_feed(self, feed_url, forced_category=None):
        self.calls += 1
        await asyncio.sleep(0)
        return list(self.responses[feed_url])


class FakeClient:
    def __init__(self, outputs, model: str = "test-model"):
        self.outputs = list(outputs)
        self.model = model

    async def chat_completions_create(self, messages, temperature=None, max_tokens=None):
        outcome = self.outputs.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def story_json(words: int = 100) -> str:
    return json.dumps({"story": " ".join(["otter"] * words), "questions": QUESTIONS})


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
    return httpx.HTTPStatusError("upstream", request=request, response=httpx.Response(code, request=request))


def build_client(outputs=(), store=None, parser=None) -> TestClient:
    cfg = AppConfig()
    cfg.feed.feeds = FEEDS
    generator = StoryGenerator(FakeClient(list(outputs)), StoryCache())
    app = create_app(cfg, store=store or MemoryStore(), generator=generator, parser=parser or FakeParser())
    return TestClient(app)


# Feed


def test_feed_rejects_invalid_categories_by_name():
    client = build_client()
    resp = client.get("/api/feed", params={"categories": "science,bogus,weird"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "BAD_REQUEST"
    assert "bogus" in body["message"]
    assert "weird" in body["message"]


def test_feed_rejects_out_of_range_limit():
    client = build_client()
    for value in ("0", "51", "abc"):
        resp = client.get("/api/feed", params={"limit": value})
        assert resp.status_code == 400
        assert "between 1 and 50" in resp.json()["message"]


def test_feed_filters_diversifies_and_caches():
    parser = FakeParser()
    client = build_client(parser=parser)

    resp = client.get("/api/feed", params={"categories": "science,nature", "limit": "10"})
    assert resp.status_code == 200
    assert resp.headers["X-Cache"] == "MISS"
    assert resp.headers["Cache-Control"] == "public, s-maxage=300, stale-while-revalidate=60"
    assert "Last-Modified" in resp.headers

    body = resp.json()
    titles = [a["title"] for a in body["articles"]]
    assert "Bomb found downtown" not in titles
    categories = [a["category"] for a in body["articles"]]
    assert all(x != y for x, y in zip(categories, categories[1:]))
    assert body["meta"]["cache_hit"] is False
    assert body["meta"]["appliedCategories"] == ["science", "nature"]
    assert body["meta"]["safety_applied"] is True
    assert body["meta"]["safety_filtered"] == 1
    assert body["meta"]["diversity_applied"] is True
    assert body["meta"]["total"] == len(body["articles"])
    calls_after_first = parser.calls

    again = client.get("/api/feed", params={"categories": "nature,science", "limit": "10"})
    assert again.status_code == 200
    assert again.headers["X-Cache"] == "HIT"
    assert again.json()["meta"]["cache_hit"] is True
    assert again.json()["articles"] == body["articles"]
    assert parser.calls == calls_after_first


def test_feed_limit_truncates():
    client = build_client()
    body = client.get("/api/feed", params={"limit": "2"}).json()
    assert len(body["articles"]) == 2
    assert body["meta"]["total"] == 2


def test_feed_conditional_request_returns_304_for_recent_copy():
    client = build_client()
    first = client.get("/api/feed")
    assert first.status_code == 200

    resp = client.get("/api/feed", headers={"If-Modified-Since": first.headers["Last-Modified"]})
    assert resp.status_code == 304
    assert resp.content == b""

    stale = format_datetime(datetime.now(timezone.utc) - timedelta(hours=1), usegmt=True)
    resp = client.get("/api/feed", headers={"If-Modified-Since": stale})
    assert resp.status_code == 200


# Refresh


def test_refresh_requires_matching_key_when_configured(monkeypatch):
    monkeypatch.setenv("FEED_REFRESH_KEY", "secret")
    client = build_client()

    assert client.get("/api/feed/refresh").status_code == 401
    assert client.get("/api/feed/refresh", headers={"x-refresh-key": "wrong"}).status_code == 401
    resp = client.get("/api/feed/refresh", params={"category": "science"}, headers={"x-refresh-key": "secret"})
    assert resp.status_code == 200
    assert resp.json() == {"refreshed": ["science"], "counts": {"science": 3}}


def test_refresh_open_without_key_and_warms_store(monkeypatch):
    monkeypatch.delenv("FEED_REFRESH_KEY", raising=False)
    store = MemoryStore()
    client = build_client(store=store)

    resp = client.get("/api/feed/refresh", params={"category": "science", "limit": "20"})
    assert resp.status_code == 200
    # Refresh applies the source cap but not the safety filter.
    assert resp.json()["counts"] == {"science": 3}
    assert len(store.get_recent_articles(category="science")) == 3

    feed = client.get("/api/feed", params={"categories": "science", "limit": "20"})
    assert feed.headers["X-Cache"] == "HIT"
    titles = [a["title"] for a in feed.json()["articles"]]
    assert "Bomb found downtown" not in titles
    assert feed.json()["meta"]["safety_filtered"] == 1


def test_refresh_insert_is_idempotent(monkeypatch):
    monkeypatch.delenv("FEED_REFRESH_KEY", raising=False)
    client = build_client()
    client.get("/api/feed/refresh", params={"category": "nature"})
    resp = client.get("/api/feed/refresh", params={"category": "nature"})
    assert resp.json() == {"refreshed": ["nature"], "counts": {"nature": 0}}


def test_refresh_failing_category_does_not_stop_siblings(monkeypatch):
    monkeypatch.delenv("FEED_REFRESH_KEY", raising=False)

    class FlakyStore(MemoryStore):
        def insert_articles(self, articles):
            articles = list(articles)
            if any(a.category == "arts" for a in articles):
                raise RuntimeError("disk full")
            return super().insert_articles(articles)

    client = build_client(store=FlakyStore())
    body = client.get("/api/feed/refresh").json()

    assert "arts" not in body["refreshed"]
    assert "science" in body["refreshed"]
    assert "nature" in body["refreshed"]
    assert body["counts"]["nature"] == 2


def test_refresh_counts_only_categories_whose_cache_write_succeeded(monkeypatch):
    monkeypatch.delenv("FEED_REFRESH_KEY", raising=False)

    class CacheWriteFailsStore(MemoryStore):
        def upsert_feed_cache(self, key, payload, expires_at):
            if key.startswith("feed:science:"):
                raise RuntimeError("cache unavailable")
            return super().upsert_feed_cache(key, payload, expires_at)

    client = build_client(store=CacheWriteFailsStore())
    body = client.get("/api/feed/refresh").json()

    assert "science" not in body["refreshed"]
    assert "science" not in body["counts"]
    assert "nature" in body["refreshed"]
    assert body["counts"]["nature"] == 2


def test_refresh_rejects_unknown_category(monkeypatch):
    monkeypatch.delenv("FEED_REFRESH_KEY", raising=False)
    resp = build_client().get("/api/feed/refresh", params={"category": "bogus"})
    assert resp.status_code == 400


# Generate


def test_generate_returns_story_with_headers_then_cache_hit():
    client = build_client([story_json(100)])

    resp = client.post("/api/generate", json={"articleText": ARTICLE, "readingLevel": "preschool"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["questions"] == QUESTIONS
    assert body["meta"] == {"readingLevel": "preschool", "wordCount": 100}
    assert resp.headers["X-Cache"] == "MISS"
    assert resp.headers["X-Model"] == "test-model"
    assert len(resp.headers["X-Request"]) == 64

    again = client.post("/api/generate", json={"articleText": ARTICLE, "readingLevel": "preschool"})
    assert again.headers["X-Cache"] == "HIT"
    assert again.headers["X-Request"] == resp.headers["X-Request"]
    assert again.json() == body


def test_generate_defaults_to_elementary():
    client = build_client([story_json(200)])
    resp = client.post("/api/generate", json={"articleText": ARTICLE})
    assert resp.status_code == 200
    assert resp.json()["meta"]["readingLevel"] == "elementary"


def test_generate_validation_errors_carry_issues():
    client = build_client()

    resp = client.post("/api/generate", json={"articleText": "x" * 49, "readingLevel": "preschool"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "BAD_REQUEST"
    assert body["issues"][0]["path"] == "articleText"
    assert "too short" in body["issues"][0]["message"]

    resp = client.post("/api/generate", json={"articleText": ARTICLE, "readingLevel": "college"})
    assert resp.status_code == 400
    assert resp.json()["issues"][0]["path"] == "readingLevel"

    resp = client.post("/api/generate", content=b"not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400


def test_generate_refuses_unsafe_text():
    client = build_client()
    resp = client.post(
        "/api/generate",
        json={"articleText": "A bomb went off downtown and many people were hurt badly.", "readingLevel": "preschool"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "BAD_REQUEST"
    assert "inappropriate topics" in resp.json()["message"]


def test_generate_maps_upstream_errors():
    resp = build_client([status_error(429)]).post("/api/generate", json={"articleText": ARTICLE})
    assert resp.status_code == 429
    assert resp.json()["code"] == "RATE_LIMITED"

    resp = build_client([status_error(502)]).post("/api/generate", json={"articleText": ARTICLE})
    assert resp.status_code == 503
    assert resp.json()["code"] == "INTERNAL_ERROR"

    resp = build_client([status_error(400)]).post("/api/generate", json={"articleText": ARTICLE})
    assert resp.status_code == 400
    assert resp.json()["code"] == "BAD_REQUEST"


def test_generate_second_validation_failure_is_internal_error():
    client = build_client([story_json(5), story_json(5)])
    resp = client.post("/api/generate", json={"articleText": ARTICLE, "readingLevel": "preschool"})
    assert resp.status_code == 500
    assert resp.json() == {
        "message": "Unable to generate story at this time. Please try again.",
        "code": "INTERNAL_ERROR",
    }
    assert resp.headers["X-Cache"] == "BYPASS"


def test_generate_other_methods_not_allowed():
    client = build_client()
    for method in ("GET", "PUT", "DELETE"):
        resp = client.request(method, "/api/generate")
        assert resp.status_code == 405
        assert resp.json()["code"] == "BAD_REQUEST"


def test_generate_without_credentials_reports_unconfigured(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = TestClient(create_app(AppConfig(), store=MemoryStore(), parser=FakeParser()))
    resp = client.post("/api/generate", json={"articleText": ARTICLE})
    assert resp.status_code == 500
    assert resp.json()["code"] == "INTERNAL_ERROR"


# Stories


def test_save_and_list_stories_for_device():
    client = build_client()

    resp = client.post(
        "/api/stories/save",
        json={"articleHash": "hash-a", "readingLevel": "preschool", "story": "s" * 200},
    )
    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    assert "deviceId" in resp.cookies
    assert resp.headers["X-Request-Id"]
    assert resp.headers["X-Duration"].endswith("ms")

    listed = client.get("/api/stories")
    assert listed.status_code == 200
    stories = listed.json()
    assert len(stories) == 1
    assert stories[0]["id"] == resp.json()["id"]
    assert stories[0]["articleHash"] == "hash-a"
    assert stories[0]["snippet"] == "s" * 160 + "..."

    stranger = TestClient(client.app)
    assert stranger.get("/api/stories").json() == []


def test_save_story_validation():
    resp = build_client().post("/api/stories/save", json={"articleHash": "", "readingLevel": "preschool", "story": "x"})
    assert resp.status_code == 400
    assert resp.json()["issues"][0]["path"] == "articleHash"


class LoopRecordingStore(MemoryStore):
    """Records whether each store call ran on a thread with a running event loop."""

    def __init__(self):
        super().__init__()
        self.on_loop: list[tuple[str, bool]] = []

    def _record(self, name: str) -> None:
        try:
            asyncio.get_running_loop()
            self.on_loop.append((name, True))
        except RuntimeError:
            self.on_loop.append((name, False))

    def get_feed_cache(self, key, now=None):
        self._record("get_feed_cache")
        return super().get_feed_cache(key, now)

    def upsert_feed_cache(self, key, payload, expires_at):
        self._record("upsert_feed_cache")
        return super().upsert_feed_cache(key, payload, expires_at)

    def insert_articles(self, articles):
        self._record("insert_articles")
        return super().insert_articles(articles)

    def save_story(self, device_id, article_hash, reading_level, story):
        self._record("save_story")
        return super().save_story(device_id, article_hash, reading_level, story)

    def mark_article_converted(self, device_id, article_hash, story_id):
        self._record("mark_article_converted")
        return super().mark_article_converted(device_id, article_hash, story_id)

    def list_stories(self, device_id, limit=10):
        self._record("list_stories")
        return super().list_stories(device_id, limit)


def test_store_calls_run_off_the_event_loop(monkeypatch):
    monkeypatch.delenv("FEED_REFRESH_KEY", raising=False)
    store = LoopRecordingStore()
    client = build_client(store=store)

    assert client.get("/api/feed").status_code == 200
    assert client.get("/api/feed/refresh", params={"category": "nature"}).status_code == 200
    saved = client.post(
        "/api/stories/save",
        json={"articleHash": "hash-a", "readingLevel": "preschool", "story": "A calm story."},
    )
    assert saved.status_code == 200
    assert client.get("/api/stories").status_code == 200

    called = {name for name, _ in store.on_loop}
    assert called == {
        "get_feed_cache",
        "upsert_feed_cache",
        "insert_articles",
        "save_story",
        "mark_article_converted",
        "list_stories",
    }
    assert [name for name, on_loop in store.on_loop if on_loop] == []
