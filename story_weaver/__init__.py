"""
Story Weaver - kid-safe news feed and story generator.

This package aggregates curated RSS feeds into a safety-screened,
diversified news feed, and turns a single news article into an
age-appropriate children's story with two discussion questions.

Main entry points are the HTTP API (`story-weaver serve`) and the
`story-weaver feed` / `story-weaver story` CLI commands.

Example:
    $ story-weaver feed --categories science,animals --limit 10
"""

__all__ = ["__version__", "normalize_url", "req_hash", "diversify", "StoryCache"]
__version__ = "0.1.0"

from .cache import StoryCache
from .core.hashing import req_hash
from .core.urls import normalize_url
from .diversity import diversify
