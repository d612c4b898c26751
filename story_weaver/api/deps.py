"""Request-scoped dependencies resolved from ``app.state``."""

from __future__ import annotations

import logging
import uuid

from fastapi import Request, Response

from ..config import AppConfig
from ..errors import INTERNAL_ERROR, ApiError
from ..feeds.parser import FeedParser
from ..storage.base import ArticleStore
from ..story.pipeline import StoryGenerator, build_generator
from ..utils.logging import log_event

logger = logging.getLogger(__name__)

DEVICE_ID_COOKIE = "deviceId"
DEVICE_COOKIE_MAX_AGE = 400 * 24 * 60 * 60


def get_settings(request: Request) -> AppConfig:
    return request.app.state.cfg


def get_store(request: Request) -> ArticleStore:
    return request.app.state.store


def get_feed_parser(request: Request) -> FeedParser:
    return request.app.state.parser


def resolve_generator(request: Request) -> StoryGenerator:
    """Return the app's generator, building it on first use.

    Built lazily so the feed endpoints work without model credentials.
    """
    state = request.app.state
    if state.generator is None:
        try:
            state.generator = build_generator(state.cfg)
        except ValueError as exc:
            log_event(logger, "Story generator unavailable", level=logging.ERROR, event="generator_unavailable", error=str(exc))
            raise ApiError("Story generation is not configured on this server", INTERNAL_ERROR, 500) from exc
    return state.generator


def get_device_id(request: Request, response: Response) -> str:
    """Read the device id cookie, issuing a new one when absent."""
    device_id = request.cookies.get(DEVICE_ID_COOKIE)
    if device_id:
        return device_id
    device_id = str(uuid.uuid4())
    response.set_cookie(
        DEVICE_ID_COOKIE,
        device_id,
        max_age=DEVICE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=get_settings(request).api.secure_cookies,
    )
    return device_id
