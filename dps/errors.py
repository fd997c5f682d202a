"""Exceptions raised across the studio and the user-facing error mapping."""
from __future__ import annotations

from typing import Optional

from .constants import ERROR_MESSAGE_LIMIT


class StudioError(Exception):
    """Base exception for studio errors."""


class InputValidationError(StudioError):
    """Raised when user input is rejected before any network call."""


class ImageLoadError(StudioError):
    """Raised when an image cannot be decoded or encoded."""


class InvalidTransitionError(StudioError):
    """Raised when an event is not accepted by the current workflow step."""


class QuotaExceededError(StudioError):
    """Raised when the usage ledger refuses a project completion or AI call."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Monthly {reason} limit reached")
        self.reason = reason


class CollaboratorError(StudioError):
    """Raised when the generative collaborator fails or returns bad data."""


class VideoTimeoutError(CollaboratorError):
    """Raised when a video job does not finish within the polling budget."""


class StageFailedError(StudioError):
    """Raised when a pipeline stage with an abort policy fails."""

    def __init__(self, stage: str, cause: Optional[BaseException] = None) -> None:
        message = str(cause) if cause is not None else f"Stage '{stage}' failed"
        super().__init__(message)
        self.stage = stage
        self.cause = cause


def friendly_error_message(raw: str) -> str:
    """Map raw collaborator error text to a short user-facing string."""
    lowered = raw.lower()
    if "api_key" in lowered or "api key" in lowered:
        return "Please check your Gemini API key in .env"
    if "quota" in lowered or "limit" in lowered:
        return "API quota reached. Try again later."
    if "model" in lowered or "not found" in lowered:
        return "This feature may be unavailable. Try again later."
    if len(raw) > ERROR_MESSAGE_LIMIT:
        return raw[:ERROR_MESSAGE_LIMIT] + "…"
    return raw
