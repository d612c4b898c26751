"""Story generation endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
import httpx

from ...errors import (
    BAD_REQUEST,
    INTERNAL_ERROR,
    ApiError,
    ContentRefusedError,
    GenerationError,
    StoryValidationError,
    error_code_for_status,
)
from ...utils.logging import log_event
from ..deps import resolve_generator
from ..schemas import GenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])

GENERIC_FAILURE = "Unable to generate story at this time. Please try again."


def upstream_error(exc: httpx.HTTPStatusError) -> ApiError:
    """Translate a final upstream failure into a public error."""
    status = exc.response.status_code
    code = error_code_for_status(status)
    if status == 401:
        return ApiError("Invalid API key for the story model", code, 401)
    if status == 429:
        return ApiError("Rate limit exceeded. Please try again later.", code, 429)
    if status >= 500:
        return ApiError("Story model service is currently unavailable", code, 503)
    if status == 400:
        return ApiError("The story model rejected the request", code, 400)
    return ApiError(GENERIC_FAILURE, code, 500, headers={"X-Cache": "BYPASS"})


@router.post("/generate")
async def generate_story(request: Request, body: GenerateRequest):
    """Turn one news article into a children's story with two questions."""
    generator = resolve_generator(request)
    try:
        outcome = await generator.generate(body.articleText, body.readingLevel, body.styleHints)
    except ContentRefusedError as exc:
        raise ApiError(exc.reason, BAD_REQUEST, 400) from exc
    except (StoryValidationError, GenerationError) as exc:
        log_event(logger, "Story generation failed", level=logging.ERROR, event="generate_failed", error=str(exc))
        raise ApiError(GENERIC_FAILURE, INTERNAL_ERROR, 500, headers={"X-Cache": "BYPASS"}) from exc
    except httpx.HTTPStatusError as exc:
        log_event(
            logger,
            "Upstream model call failed",
            level=logging.ERROR,
            event="generate_upstream_failed",
            status_code=exc.response.status_code,
        )
        raise upstream_error(exc) from exc
    except httpx.HTTPError as exc:
        log_event(logger, "Upstream model unreachable", level=logging.ERROR, event="generate_upstream_failed", error=str(exc))
        raise ApiError("Story model service is currently unavailable", INTERNAL_ERROR, 503) from exc

    headers = {
        "X-Cache": "HIT" if outcome.cache_hit else "MISS",
        "X-Model": outcome.model,
        "X-Request": outcome.request_hash,
    }
    return JSONResponse(outcome.result.to_dict(), headers=headers)


@router.api_route("/generate", methods=["GET", "PUT", "DELETE"], include_in_schema=False)
async def generate_method_not_allowed():
    raise ApiError("Method not allowed. Use POST to generate a story.", BAD_REQUEST, 405)
