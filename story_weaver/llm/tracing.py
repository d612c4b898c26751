"""
Langfuse tracing helpers for story generation.

Spans are emitted around each generation attempt when tracing is enabled.
When it is disabled every helper is a no-op and ``start_span`` yields None.
"""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import os
from typing import Any, Iterator

from ..config import LangfuseConfig
from ..utils.logging import truncate_text

logger = logging.getLogger(__name__)

_TRACER = None
_CFG: LangfuseConfig | None = None


def setup_langfuse(cfg: LangfuseConfig) -> None:
    """Initialize Langfuse tracing if enabled."""
    global _TRACER, _CFG  # noqa: PLW0603
    _CFG = cfg
    if not cfg.enabled:
        _TRACER = None
        return

    from langfuse import Langfuse

    _TRACER = Langfuse(
        public_key=cfg.public_key or os.getenv("LANGFUSE_PUBLIC_KEY"),
        secret_key=cfg.secret_key or os.getenv("LANGFUSE_SECRET_KEY"),
        host=cfg.host or os.getenv("LANGFUSE_HOST"),
    )


@contextmanager
def start_span(
    name: str,
    kind: str,
    input_value: Any | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Any | None]:
    """Start a Langfuse span if tracing is enabled."""
    tracer = _TRACER
    if tracer is None:
        yield None
        return

    attrs = _clean_attributes(attributes or {})
    attrs.setdefault("span.kind", kind)

    try:
        cm = tracer.start_as_current_span(
            name=name,
            input=_normalize_text(input_value),
            metadata=attrs,
        )
        span = cm.__enter__()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Langfuse span %s could not start: %s", name, exc)
        yield None
        return

    try:
        yield span
    finally:
        try:
            cm.__exit__(None, None, None)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Langfuse span %s could not end: %s", name, exc)


def set_span_output(span: Any | None, output_value: Any) -> None:
    if span is None:
        return
    payload = _normalize_text(output_value)
    if payload is None:
        return
    _safe_update(span, output=payload)


def record_span_error(span: Any | None, exc: BaseException) -> None:
    if span is None:
        return
    _safe_update(span, level="ERROR", status_message=str(exc))


def flush() -> None:
    """Flush pending traces; call before process exit."""
    tracer = _TRACER
    if tracer is None:
        return
    tracer.flush()


def _normalize_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, ensure_ascii=True, default=str)
    max_chars = _CFG.max_text_chars if _CFG is not None else 20000
    return truncate_text(text, max_chars)


def _clean_attributes(attrs: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in attrs.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def _safe_update(span: Any, **kwargs: Any) -> None:
    # Tracing must never break generation.
    try:
        span.update(**kwargs)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Span update failed: %s", exc)
