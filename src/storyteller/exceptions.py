"""Error taxonomy shared by the API and the player."""

from __future__ import annotations


class StorytellerError(Exception):
    """Base class for every error surfaced to a user."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(StorytellerError):
    """Input rejected before any remote call."""

    status_code = 400


class PayloadTooLargeError(ValidationError):
    status_code = 413


class UpstreamError(StorytellerError):
    """Remote generation or synthesis failed or returned garbage."""

    status_code = 500


class UpstreamRateLimitError(UpstreamError):
    status_code = 429


class PlaybackError(StorytellerError):
    """Playback attempt could not complete."""


class PlaybackCapabilityError(PlaybackError):
    """The device lacks speech synthesis or an audio output."""


class SpeechSynthesisError(PlaybackError):
    """The speech engine reported an error other than a requested cancel."""
