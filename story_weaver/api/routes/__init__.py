from . import feed, generate, stories

__all__ = ["feed", "generate", "stories"]
