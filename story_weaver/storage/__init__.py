"""Article, feed snapshot and story persistence."""

from __future__ import annotations

from ..config import StorageConfig
from .base import ArticleStore, Conversion, SavedStory
from .memory import MemoryStore
from .sqlite import SqliteStore


def create_store(cfg: StorageConfig) -> ArticleStore:
    """Build the configured store backend."""
    backend = cfg.backend.strip().lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "sqlite":
        return SqliteStore(cfg.path)
    raise ValueError(f"Unsupported storage backend: {cfg.backend}. Available: memory, sqlite")


__all__ = [
    "ArticleStore",
    "Conversion",
    "SavedStory",
    "MemoryStore",
    "SqliteStore",
    "create_store",
]
