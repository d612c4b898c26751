"""
FastAPI application factory.

All errors leave the API as ``{"message": ..., "code": ...}``; request
validation errors also carry field-level ``issues``. Every response is
stamped with ``X-Request-Id`` and ``X-Duration``.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import AppConfig
from ..errors import BAD_REQUEST, INTERNAL_ERROR, ApiError, error_code_for_status
from ..feeds.parser import FeedParser
from ..storage import ArticleStore, create_store
from ..story.pipeline import StoryGenerator
from ..utils.logging import log_event
from .routes import feed, generate, stories

logger = logging.getLogger(__name__)


def create_app(
    cfg: AppConfig | None = None,
    store: ArticleStore | None = None,
    generator: StoryGenerator | None = None,
    parser: FeedParser | None = None,
) -> FastAPI:
    """Build the API with its collaborators.

    Args:
        cfg: Runtime configuration, defaults to ``AppConfig()``
        store: Article/story store, built from ``cfg.storage`` when omitted
        generator: Story generator, built lazily from ``cfg`` when omitted
        parser: Feed parser, built from ``cfg.feed`` when omitted
    """
    cfg = cfg or AppConfig()
    app = FastAPI(
        title="Story Weaver API",
        description="Kid-safe news feed and children's story generation",
        version=__version__,
    )
    app.state.cfg = cfg
    app.state.store = store or create_store(cfg.storage)
    app.state.generator = generator
    app.state.parser = parser or FeedParser(
        timeout=cfg.feed.timeout_seconds,
        user_agent=cfg.feed.user_agent,
        trust_env=cfg.feed.trust_env,
    )

    app.include_router(feed.router)
    app.include_router(generate.router)
    app.include_router(stories.router)
    _register_handlers(app)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        started = time.perf_counter()
        request_id = str(uuid.uuid4())
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - started) * 1000)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Duration"] = f"{duration_ms}ms"
        log_event(
            logger,
            "Request handled",
            level=logging.DEBUG,
            event="http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            request_id=request_id,
        )
        return response

    @app.get("/")
    async def root():
        return {"name": "Story Weaver API", "version": __version__, "docs": "/docs"}

    return app


def _register_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        issues = [
            {
                "path": ".".join(str(part) for part in err.get("loc", ())[1:]),
                "message": err.get("msg", ""),
                "code": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        error = ApiError("Invalid request data", BAD_REQUEST, 400, issues=issues)
        return JSONResponse(error.to_dict(), status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        error = ApiError(str(exc.detail), error_code_for_status(exc.status_code), exc.status_code)
        return JSONResponse(error.to_dict(), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse({"message": "Internal server error", "code": INTERNAL_ERROR}, status_code=500)
