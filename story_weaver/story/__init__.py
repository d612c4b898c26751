"""Children's story generation: validation contracts and the pipeline."""

from .pipeline import StoryGenerator, StoryOutcome, build_generator
from .validator import (
    DEFAULT_QUESTIONS,
    ParsedStory,
    build_story_result,
    count_words,
    parse_generation,
    post_check,
)

__all__ = [
    "StoryGenerator",
    "StoryOutcome",
    "build_generator",
    "DEFAULT_QUESTIONS",
    "ParsedStory",
    "build_story_result",
    "count_words",
    "parse_generation",
    "post_check",
]
