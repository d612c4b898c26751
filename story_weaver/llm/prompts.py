"""Prompt loading and rendering helpers for story generation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re

from ..core.types import WORD_RANGES

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"

_STYLE_BLOCK_RE = re.compile(r"\{\{#if styleHints\}\}[\s\S]*?\{\{/if\}\}")
_STYLE_TAGS_RE = re.compile(r"\{\{#if styleHints\}\}|\{\{/if\}\}")

SYSTEM_TEMPLATE = "system.story"
USER_TEMPLATE = "user.story"


@dataclass
class PromptVariables:
    reading_level: str
    article_text: str
    style_hints: str | None = None


def load_prompt(
    template_name: str,
    variables: PromptVariables,
    prompt_dir: Path | None = None,
) -> str:
    """Render a named template, falling back to a built-in prompt if missing."""
    path = (prompt_dir or _PROMPT_DIR) / f"{template_name}.md"
    try:
        template = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning(
            "Failed to load prompt template %s, using fallback",
            template_name,
            extra={"event": "prompt_fallback", "template": template_name, "error": str(exc)},
        )
        return fallback_prompt(template_name, variables)
    return render_template(template, variables)


def render_template(template: str, variables: PromptVariables) -> str:
    """Substitute ``{{...}}`` placeholders literally, without escaping."""
    result = template.replace("{{readingLevel}}", variables.reading_level)
    result = result.replace("{{articleText}}", variables.article_text)
    if variables.style_hints:
        result = _STYLE_TAGS_RE.sub("", result)
        result = result.replace("{{styleHints}}", variables.style_hints)
    else:
        result = _STYLE_BLOCK_RE.sub("", result)
    return result


def fallback_prompt(template_name: str, variables: PromptVariables) -> str:
    level = variables.reading_level
    if template_name == SYSTEM_TEMPLATE:
        return (
            "You are a skilled children's storyteller who creates engaging, educational "
            "allegorical stories based on real-world events. You are specifically adapting "
            f"stories for {level} children. Your stories are always age-appropriate, positive, "
            "and include valuable life lessons tailored to the reading level.\n\n"
            "Return a JSON object with exactly this structure:\n"
            "{\n"
            '  "story": "Your complete story here...",\n'
            '  "questions": ["First discussion question?", "Second discussion question?"]\n'
            "}"
        )
    if template_name == USER_TEMPLATE:
        return (
            f'Based on this news story: "{variables.article_text}"\n\n'
            f"Create an allegorical story for {level} children that transforms the real-world "
            "events into an age-appropriate animal story or fantasy scenario. Include exactly 2 "
            "discussion questions that help children think about the story's themes."
        )
    return f"Create a story for {level} children based on: {variables.article_text}"


def build_corrective_system_prompt(variables: PromptVariables, prompt_dir: Path | None = None) -> str:
    """System prompt for the single corrective retry, naming the exact bounds."""
    low, high = WORD_RANGES[variables.reading_level]
    limits = ", ".join(
        f"{name} ({lo}-{hi} words)" for name, (lo, hi) in WORD_RANGES.items()
    )
    return (
        load_prompt(SYSTEM_TEMPLATE, variables, prompt_dir)
        + f"\n\nCRITICAL: The story MUST be between {low} and {high} words for the "
        f"{variables.reading_level} level. Current limits: {limits}. Count your words "
        "carefully and be concise while maintaining quality. Include exactly 2 discussion "
        "questions, each a full sentence ending with a question mark."
    )
