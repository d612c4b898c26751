"""
Shared utility functions.

This package contains utility code used across both pipelines.
"""

from .logging import (
    JsonlFormatter,
    log_event,
    setup_logging,
    truncate_text,
)

__all__ = [
    "setup_logging",
    "log_event",
    "truncate_text",
    "JsonlFormatter",
]
