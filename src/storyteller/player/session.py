"""Listening session: upload a book, render its script, hand it to the controller."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

import httpx
from pydantic import ValidationError as PydanticValidationError

from storyteller.exceptions import (
    PayloadTooLargeError,
    UpstreamError,
    UpstreamRateLimitError,
    ValidationError,
)
from storyteller.models import Script
from storyteller.player.controller import PlaybackController
from storyteller.player.devices import AudioPlayer, Pyttsx3Engine
from storyteller.player.settings import PlayerSettings
from storyteller.player.speech import (
    LocalSpeechBackend,
    RemoteSpeechBackend,
    SpeechBackend,
    error_message,
)
from storyteller.player.state import PlaybackState
from storyteller.player.view import PlaybackView
from storyteller.services.script_renderer import RenderedScript, render

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def validate_pdf(path: Path, max_size: int) -> None:
    """Reject files the server would refuse, before uploading them."""
    if not path.is_file():
        raise ValidationError(f"File not found: {path}")
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type != PDF_MIME_TYPE:
        raise ValidationError("Please choose a PDF file")
    if path.stat().st_size > max_size:
        raise PayloadTooLargeError(f"File too large, maximum size is {format_file_size(max_size)}")


def create_speech_backend(
    settings: PlayerSettings, client: httpx.AsyncClient, state: PlaybackState
) -> SpeechBackend:
    """Select the speech backend named by *settings*."""
    if settings.speech_backend == "local":
        return LocalSpeechBackend(Pyttsx3Engine(), language=settings.language)
    return RemoteSpeechBackend(
        client, AudioPlayer(settings.ffplay_path), cache=state.audio_cache
    )


class ListeningSession:
    """One page session: current book, its script, and the playback controller."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        controller: PlaybackController,
        *,
        max_file_size: int = 25 * 1024 * 1024,
    ) -> None:
        self.client = client
        self.controller = controller
        self.max_file_size = max_file_size
        self.script: Script | None = None
        self.rendered: RenderedScript | None = None

    @classmethod
    def from_settings(cls, settings: PlayerSettings, view: PlaybackView) -> ListeningSession:
        client = httpx.AsyncClient(
            base_url=settings.api_base, timeout=httpx.Timeout(settings.request_timeout)
        )
        state = PlaybackState()
        backend = create_speech_backend(settings, client, state)
        controller = PlaybackController(
            backend, view, state=state, pacing_delay=settings.pacing_delay
        )
        return cls(client, controller, max_file_size=settings.max_file_size)

    @property
    def view(self) -> PlaybackView:
        return self.controller.view

    async def summarize(self, path: Path) -> Script:
        """Upload *path* and return the generated script."""
        validate_pdf(path, self.max_file_size)

        self.view.show_progress(20, "📤 Got it", "Opening the book...")
        with path.open("rb") as f:
            self.view.show_progress(40, "📖 Reading", "Dad is reading the book carefully...")
            try:
                response = await self.client.post(
                    "/api/summarize-book",
                    files={"file": (path.name, f, PDF_MIME_TYPE)},
                )
            except httpx.HTTPError as e:
                logger.error(f"Upload of {path.name} failed: {e}")
                raise UpstreamError("Could not reach the storyteller service") from e

        self.view.show_progress(80, "✨ Thinking", "Making the story more fun...")
        try:
            result = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Unexpected response from the storyteller service ({response.status_code})",
                status_code=response.status_code,
            ) from e

        if response.is_error or not isinstance(result, dict) or not result.get("success"):
            message = error_message(response, "Processing failed")
            if response.status_code == 429:
                raise UpstreamRateLimitError(message)
            raise UpstreamError(message, status_code=response.status_code if response.is_error else 500)

        try:
            script = Script.model_validate(result.get("data") or {})
        except PydanticValidationError as e:
            raise UpstreamError("The generated script has an unexpected format") from e

        self.view.show_progress(100, "🌙 Ready", "The story is about to begin...")
        return script

    def load_script(self, script: Script) -> RenderedScript:
        """Render *script* and make its segments playable."""
        self.controller.reset()
        rendered = render(script)
        self.script = script
        self.rendered = rendered
        self.controller.load(rendered.segments)
        self.view.show_script(rendered)
        return rendered

    async def open_book(self, path: Path) -> RenderedScript:
        """Upload, generate and render a book.

        On failure the session keeps its previous book, so the user can retry.
        """
        logger.info(f"Opening {path}")
        try:
            script = await self.summarize(path)
        except (ValidationError, UpstreamError) as e:
            self.view.notify(e.message or "Processing failed, please retry", "error")
            raise
        return self.load_script(script)

    def start_new_book(self) -> None:
        self.controller.reset()
        self.script = None
        self.rendered = None

    async def aclose(self) -> None:
        self.controller.stop()
        await self.controller.backend.aclose()
        await self.client.aclose()
