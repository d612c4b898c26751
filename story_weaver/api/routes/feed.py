"""Feed endpoints: the diversified kid-safe feed and the refresh job."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from ...config import AppConfig, get_refresh_key
from ...core.types import CATEGORIES
from ...errors import BAD_REQUEST, ApiError
from ...feeds.parser import FeedParser
from ...feeds.service import build_feed, feed_cache_key, refresh_feeds, screen_snapshot
from ...storage.base import ArticleStore
from ..deps import get_feed_parser, get_settings, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["feed"])

DEFAULT_LIMIT = 20
MAX_LIMIT = 50
NOT_MODIFIED_WINDOW = timedelta(minutes=5)
CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=60"


def parse_categories(raw: str | None) -> list[str]:
    """Split a comma-separated list; unknown names raise a 400 naming them."""
    if not raw:
        return []
    categories = [c.strip().lower() for c in raw.split(",") if c.strip()]
    invalid = [c for c in categories if c not in CATEGORIES]
    if invalid:
        raise ApiError(
            f"Invalid categories: {', '.join(invalid)}. Must be one of: {', '.join(CATEGORIES)}",
            BAD_REQUEST,
            400,
        )
    return categories


def parse_limit(raw: str | None) -> int:
    if raw is None or raw == "":
        return DEFAULT_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        limit = 0
    if not 1 <= limit <= MAX_LIMIT:
        raise ApiError(f"Limit must be a number between 1 and {MAX_LIMIT}", BAD_REQUEST, 400)
    return limit


def is_not_modified(if_modified_since: str | None, last_updated: datetime) -> bool:
    """True when the snapshot is less than five minutes newer than the client's copy."""
    if not if_modified_since:
        return False
    try:
        since = parsedate_to_datetime(if_modified_since)
    except (TypeError, ValueError):
        return False
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return last_updated - since < NOT_MODIFIED_WINDOW


@router.get("/feed")
async def get_feed(
    request: Request,
    cfg: Annotated[AppConfig, Depends(get_settings)],
    store: Annotated[ArticleStore, Depends(get_store)],
    parser: Annotated[FeedParser, Depends(get_feed_parser)],
    categories: Annotated[str | None, Query(description="Comma-separated categories")] = None,
    limit: Annotated[str | None, Query(description="Max articles (1-50)")] = None,
):
    """Return a safety-screened, source- and category-balanced feed.

    Responses are served from the feed cache when a fresh snapshot exists,
    and a conditional request gets a 304 when its copy is recent enough.
    """
    applied = parse_categories(categories)
    limit_value = parse_limit(limit)
    key = feed_cache_key(applied, limit_value)

    cached = await run_in_threadpool(store.get_feed_cache, key)
    if cached is not None:
        payload = screen_snapshot(cached)
    else:
        snapshot = await build_feed(
            applied,
            limit_value,
            parser=parser,
            feeds=cfg.feed.feeds,
            diversity_cfg=cfg.diversity,
        )
        payload = snapshot.to_payload(cache_hit=False)
        await run_in_threadpool(
            store.upsert_feed_cache,
            key,
            payload,
            snapshot.last_updated + timedelta(seconds=cfg.cache.feed_ttl_seconds),
        )

    last_updated = datetime.fromisoformat(payload["meta"]["lastUpdated"])
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    headers = {
        "Cache-Control": CACHE_CONTROL,
        "Last-Modified": format_datetime(last_updated.astimezone(timezone.utc), usegmt=True),
        "X-Cache": "HIT" if payload["meta"]["cache_hit"] else "MISS",
    }
    if is_not_modified(request.headers.get("if-modified-since"), last_updated):
        return Response(status_code=304, headers=headers)
    return JSONResponse(payload, headers=headers)


@router.get("/feed/refresh")
async def refresh_feed(
    cfg: Annotated[AppConfig, Depends(get_settings)],
    store: Annotated[ArticleStore, Depends(get_store)],
    parser: Annotated[FeedParser, Depends(get_feed_parser)],
    category: Annotated[str | None, Query(description="Category or 'all'")] = None,
    limit: Annotated[str | None, Query(description="Articles kept per category (1-50)")] = None,
    x_refresh_key: Annotated[str | None, Header()] = None,
):
    """Pre-warm the article store and per-category feed cache."""
    expected = get_refresh_key(cfg.api)
    if expected and x_refresh_key != expected:
        raise ApiError("Invalid refresh key", BAD_REQUEST, 401)

    if not category or category == "all":
        categories = list(CATEGORIES)
    elif category in CATEGORIES:
        categories = [category]
    else:
        raise ApiError(
            f"Invalid category. Must be one of: {', '.join(CATEGORIES)} or 'all'",
            BAD_REQUEST,
            400,
        )

    result = await refresh_feeds(
        store,
        categories=categories,
        limit=parse_limit(limit),
        parser=parser,
        feeds=cfg.feed.feeds,
        max_per_source=cfg.diversity.max_per_source,
        ttl_hours=cfg.cache.refresh_ttl_hours,
    )
    return result.to_dict()
