"""Exception hierarchy shared by the feed and story pipelines."""

from __future__ import annotations


BAD_REQUEST = "BAD_REQUEST"
RATE_LIMITED = "RATE_LIMITED"
INTERNAL_ERROR = "INTERNAL_ERROR"


class StoryWeaverError(Exception):
    """Base class for all package errors."""


class FeedError(StoryWeaverError):
    """A single feed could not be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to parse RSS feed {url}: {reason}")


class ContentRefusedError(StoryWeaverError):
    """Submitted article text was refused by the pre-generation screen."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StoryValidationError(StoryWeaverError):
    """Generated story broke the word-count or question contract."""


class GenerationError(StoryWeaverError):
    """The model returned no usable content."""


class ApiError(StoryWeaverError):
    """An error with a user-visible message, a code and an HTTP status."""

    def __init__(
        self,
        message: str,
        code: str = INTERNAL_ERROR,
        status_code: int = 500,
        issues: list[dict] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.issues = issues
        self.headers = headers
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"message": self.message, "code": self.code}
        if self.issues:
            payload["issues"] = self.issues
        return payload


def error_code_for_status(status: int | None) -> str:
    """Map an upstream HTTP status to a public error code."""
    if status == 429:
        return RATE_LIMITED
    if status == 400:
        return BAD_REQUEST
    return INTERNAL_ERROR
