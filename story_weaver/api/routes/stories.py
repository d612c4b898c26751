"""Saved stories for the calling device."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from ...storage.base import ArticleStore
from ...utils.logging import log_event
from ..deps import get_device_id, get_store
from ..schemas import SaveStoryRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stories", tags=["stories"])

MAX_STORIES = 50
SNIPPET_CHARS = 160


@router.get("")
async def list_stories(
    store: Annotated[ArticleStore, Depends(get_store)],
    device_id: Annotated[str, Depends(get_device_id)],
    limit: Annotated[int, Query(ge=1, description="Max stories (capped at 50)")] = 10,
):
    stories = await run_in_threadpool(store.list_stories, device_id, min(limit, MAX_STORIES))
    return [
        {
            "id": s.id,
            "articleHash": s.article_hash,
            "readingLevel": s.reading_level,
            "createdAt": s.created_at.isoformat(),
            "snippet": s.snippet(SNIPPET_CHARS),
        }
        for s in stories
    ]


@router.post("/save")
async def save_story(
    body: SaveStoryRequest,
    store: Annotated[ArticleStore, Depends(get_store)],
    device_id: Annotated[str, Depends(get_device_id)],
):
    """Upsert the device's story for an article and record the conversion."""
    story_id = await run_in_threadpool(
        store.save_story, device_id, body.articleHash, body.readingLevel, body.story
    )
    await run_in_threadpool(store.mark_article_converted, device_id, body.articleHash, story_id)
    log_event(logger, "Story saved", event="story_saved", story_id=story_id, reading_level=body.readingLevel)
    return {"ok": True, "id": story_id}
