"""
SQLite-backed store.

Each operation opens its own connection so the store can be shared between
the event loop and worker threads. Timestamps are stored as ISO-8601 UTC
strings, which sort correctly as text.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import json
import logging
from pathlib import Path
import sqlite3
from typing import Any, Iterable, Iterator
import uuid

from ..core.types import Article
from ..utils.logging import log_event
from .base import ArticleStore, Conversion, SavedStory, utcnow

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS articles (
    url_hash TEXT PRIMARY KEY,
    url TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    source TEXT NOT NULL,
    category TEXT NOT NULL,
    published_at TEXT,
    extracted_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_articles_category ON articles (category);
CREATE TABLE IF NOT EXISTS feed_cache (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS converted_articles (
    id TEXT PRIMARY KEY,
    device_id TEXT NOT NULL,
    article_hash TEXT NOT NULL,
    story_id TEXT NOT NULL,
    converted_at TEXT NOT NULL,
    UNIQUE (device_id, article_hash)
);
CREATE TABLE IF NOT EXISTS stories (
    id TEXT PRIMARY KEY,
    device_id TEXT NOT NULL,
    article_hash TEXT NOT NULL,
    reading_level TEXT NOT NULL,
    story TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (device_id, article_hash)
);
"""


class SqliteStore(ArticleStore):
    """Store backed by a single SQLite database file.

    Attributes:
        path: Database file path; parent directories are created on init
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def insert_articles(self, articles: Iterable[Article]) -> int:
        extracted_at = utcnow().isoformat()
        rows = [
            (
                a.url_hash,
                a.url,
                a.title,
                a.content,
                a.source,
                a.category,
                _to_text(a.published_at),
                extracted_at,
            )
            for a in articles
        ]
        if not rows:
            return 0
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany(
                """
                INSERT OR IGNORE INTO articles
                    (url_hash, url, title, content, source, category, published_at, extracted_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            inserted = conn.total_changes - before
        log_event(logger, "Articles stored", level=logging.DEBUG, event="articles_inserted", count=inserted)
        return inserted

    def get_recent_articles(
        self,
        category: str | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[Article]:
        query = "SELECT * FROM articles"
        clauses: list[str] = []
        params: list[Any] = []
        if category:
            clauses.append("category = ?")
            params.append(category)
        if source:
            clauses.append("source = ?")
            params.append(source)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY published_at IS NULL, published_at DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            Article(
                url=row["url"],
                url_hash=row["url_hash"],
                title=row["title"],
                content=row["content"],
                source=row["source"],
                category=row["category"],
                published_at=_from_text(row["published_at"]),
            )
            for row in rows
        ]

    def get_feed_cache(self, key: str, now: datetime | None = None) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload, expires_at FROM feed_cache WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        if (now or utcnow()) >= datetime.fromisoformat(row["expires_at"]):
            return None
        return json.loads(row["payload"])

    def upsert_feed_cache(self, key: str, payload: dict[str, Any], expires_at: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO feed_cache (key, payload, updated_at, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at,
                    expires_at = excluded.expires_at
                """,
                (key, json.dumps(payload), utcnow().isoformat(), expires_at.isoformat()),
            )

    def mark_article_converted(self, device_id: str, article_hash: str, story_id: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO converted_articles
                    (id, device_id, article_hash, story_id, converted_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (str(uuid.uuid4()), device_id, article_hash, story_id, utcnow().isoformat()),
            )
        if cursor.rowcount == 0:
            log_event(
                logger,
                "Article already converted by device",
                level=logging.DEBUG,
                event="conversion_exists",
                device_id=device_id,
            )

    def get_converted_hashes(self, device_id: str) -> set[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT article_hash FROM converted_articles WHERE device_id = ?",
                (device_id,),
            ).fetchall()
        return {row["article_hash"] for row in rows}

    def get_conversion_history(self, device_id: str, limit: int = 50) -> list[Conversion]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM converted_articles
                WHERE device_id = ?
                ORDER BY converted_at DESC, rowid DESC
                LIMIT ?
                """,
                (device_id, limit),
            ).fetchall()
        return [
            Conversion(
                id=row["id"],
                device_id=row["device_id"],
                article_hash=row["article_hash"],
                story_id=row["story_id"],
                converted_at=datetime.fromisoformat(row["converted_at"]),
            )
            for row in rows
        ]

    def save_story(self, device_id: str, article_hash: str, reading_level: str, story: str) -> str:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO stories (id, device_id, article_hash, reading_level, story, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(device_id, article_hash) DO UPDATE SET
                    reading_level = excluded.reading_level,
                    story = excluded.story
                """,
                (str(uuid.uuid4()), device_id, article_hash, reading_level, story, utcnow().isoformat()),
            )
            row = conn.execute(
                "SELECT id FROM stories WHERE device_id = ? AND article_hash = ?",
                (device_id, article_hash),
            ).fetchone()
        return row["id"]

    def list_stories(self, device_id: str, limit: int = 10) -> list[SavedStory]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM stories
                WHERE device_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (device_id, limit),
            ).fetchall()
        return [
            SavedStory(
                id=row["id"],
                device_id=row["device_id"],
                article_hash=row["article_hash"],
                reading_level=row["reading_level"],
                story=row["story"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
