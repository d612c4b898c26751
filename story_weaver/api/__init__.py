"""HTTP API: feed, story generation and saved stories."""

from .app import create_app

__all__ = ["create_app"]
