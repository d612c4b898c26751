"""Logging setup and structured event helpers."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from ..config import LoggingConfig


ROOT_LOGGER = "story_weaver"


def setup_logging(cfg: LoggingConfig) -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_level_from_string(cfg.level))
    logger.handlers = []
    logger.propagate = False

    if cfg.console:
        console_handler = RichHandler(rich_tracebacks=True, show_time=False, show_level=True)
        console_handler.setLevel(_level_from_string(cfg.level))
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)

    if cfg.file:
        file_path = Path(cfg.file)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setLevel(_level_from_string(cfg.level))
        file_handler.setFormatter(_build_file_formatter(cfg.format))
        logger.addHandler(file_handler)

    return logger


def log_event(logger: logging.Logger | None, message: str, level: int = logging.INFO, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, message, extra=fields)


def truncate_text(text: str, max_chars: int = 20000) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "...(truncated)"


class JsonlFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_extract_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def _extract_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED}


def _build_file_formatter(fmt: str) -> logging.Formatter:
    if fmt == "jsonl":
        return JsonlFormatter()
    return logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
