"""
Parsing and contract checks for generated stories.

Raw model output moves through Generated -> Parsed -> Validated | Rejected.
Unparseable output is not an error: the raw text becomes the story and two
generic questions are supplied, and the normal checks still apply.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import re
from typing import Any

from ..core.types import WORD_RANGES, StoryResult
from ..errors import StoryValidationError

DEFAULT_QUESTIONS = (
    "What lesson did you learn from this story?",
    "How can you apply this lesson in your own life?",
)

MIN_QUESTION_CHARS = 10
REQUIRED_QUESTIONS = 2

_FENCE_RE = re.compile(r"```[a-zA-Z]*\n?")


@dataclass
class ParsedStory:
    story: str
    questions: list[str] = field(default_factory=list)
    degraded: bool = False


def strip_code_fences(content: str) -> str:
    return _FENCE_RE.sub("", content).strip()


def parse_generation(raw: str) -> ParsedStory:
    """Parse model output into a story and its questions."""
    obj = _load_json_object(strip_code_fences(raw or ""))
    if obj is None or not isinstance(obj.get("story"), str) or not obj["story"].strip():
        return ParsedStory(story=(raw or "").strip(), questions=list(DEFAULT_QUESTIONS), degraded=True)

    questions = obj.get("questions")
    if not isinstance(questions, list):
        questions = []
    return ParsedStory(
        story=obj["story"].strip(),
        questions=[str(q).strip() for q in questions],
    )


def count_words(text: str) -> int:
    return len(text.split())


def build_story_result(parsed: ParsedStory, reading_level: str) -> StoryResult:
    return StoryResult(
        story=parsed.story,
        questions=list(parsed.questions),
        reading_level=reading_level,
        word_count=count_words(parsed.story),
    )


def post_check(result: StoryResult, reading_level: str) -> None:
    """Enforce the two-question and word-count contracts.

    Raises:
        StoryValidationError: With a message describing the first violation
    """
    if len(result.questions) != REQUIRED_QUESTIONS:
        raise StoryValidationError(
            f"Expected exactly {REQUIRED_QUESTIONS} questions, got {len(result.questions)}"
        )

    low, high = WORD_RANGES[reading_level]
    if not low <= result.word_count <= high:
        raise StoryValidationError(
            f"Story word count ({result.word_count}) is outside the acceptable range for "
            f"{reading_level} ({low}-{high} words)"
        )

    for idx, question in enumerate(result.questions, start=1):
        if len(question) < MIN_QUESTION_CHARS:
            raise StoryValidationError(
                f"Question {idx} is too short ({len(question)} chars); "
                f"questions need at least {MIN_QUESTION_CHARS} characters"
            )
        if not question.endswith("?"):
            raise StoryValidationError(f"Question {idx} should end with a question mark")


def _load_json_object(content: str) -> dict[str, Any] | None:
    if not content:
        return None
    try:
        obj = json.loads(content)
    except json.JSONDecodeError:
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            obj = json.loads(content[start : end + 1])
        except json.JSONDecodeError:
            return None
    return obj if isinstance(obj, dict) else None
