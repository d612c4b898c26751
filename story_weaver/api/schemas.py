"""Request bodies for the HTTP API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from ..safety import MIN_INPUT_CHARS

ReadingLevel = Literal["preschool", "early-elementary", "elementary"]


class GenerateRequest(BaseModel):
    articleText: str
    readingLevel: ReadingLevel = "elementary"
    styleHints: str | None = None

    @field_validator("articleText")
    @classmethod
    def _full_paragraph(cls, value: str) -> str:
        if len(value) < MIN_INPUT_CHARS:
            raise PydanticCustomError(
                "too_short",
                "Article text is too short. Provide at least a full paragraph of article text.",
            )
        return value


class SaveStoryRequest(BaseModel):
    articleHash: str = Field(min_length=1)
    readingLevel: ReadingLevel
    story: str = Field(min_length=1)
