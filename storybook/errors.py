# storybook/errors.py
from __future__ import annotations

from typing import List


class StoryError(Exception):
    """Base class for every failure the story pipeline knows how to report."""


class ConfigurationError(StoryError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


class StoryTextError(StoryError):
    """The text model returned nothing usable. Never retried at this layer."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to generate story text: {reason}")


class StoreConnectionError(StoryError):
    def __init__(self, reason: str):
        super().__init__(f"Store connection failed: {reason}")


class StoreWriteError(StoryError):
    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Failed to save story {key}: {reason}")


class MediaFetchError(StoryError):
    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Failed to fetch image {url}: {reason}")


class ImageGenerationError(StoryError):
    """One illustration attempt produced no usable image."""


class StoryIdeaError(StoryError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to suggest story idea: {reason}")


class ImageUploadError(StoryError):
    def __init__(self, object_name: str):
        self.object_name = object_name
        super().__init__(f"Failed to upload image {object_name}")


_FRIENDLY_MESSAGES = (
    ("OOM command not allowed",
     "Memory limit exceeded when storing the story. This might be due to large image sizes."),
    ("Failed to generate story text",
     "Failed to generate the story text. Please try again or modify your description."),
    ("Store connection failed",
     "Database connection error. Please try again later."),
    ("Failed to upload image",
     "Part of the story generation failed (image upload). The story might be incomplete."),
)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred during story generation"


def friendly_error_message(exc: BaseException) -> str:
    """Map a stage-fatal error to the message shown to the reader."""
    text = str(exc)
    for needle, message in _FRIENDLY_MESSAGES:
        if needle in text:
            return message
    return UNEXPECTED_ERROR_MESSAGE
