"""Speech backends: turn a segment's text into audio and play it."""

from __future__ import annotations

import logging
import shutil
import tempfile
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

from storyteller.exceptions import (
    PlaybackCapabilityError,
    UpstreamError,
    UpstreamRateLimitError,
)
from storyteller.infrastructure.tts import MIME_TYPES
from storyteller.player.devices import AudioPlayer, SpeechEngine, SpeechVoice, Utterance
from storyteller.player.state import AudioClip

logger = logging.getLogger(__name__)

AudioHandle = Utterance | AudioClip

# Cache entries are keyed by this many leading characters of the text
CACHE_KEY_CHARS = 100
# Requests stay under the server's 4096 character limit
MAX_TTS_CHARS = 4000

_EXTENSIONS = {mime: ext for ext, mime in MIME_TYPES.items()}


def error_message(response: httpx.Response, default: str) -> str:
    """Extract the ``error`` field of a JSON error envelope."""
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return default


class SpeechBackend(ABC):
    """Contract shared by on-device and remote speech."""

    name: str

    @abstractmethod
    async def synthesize(self, text: str) -> AudioHandle:
        """Return a playable handle for *text*."""

    @abstractmethod
    async def play(self, handle: AudioHandle) -> None:
        """Play *handle*; return once finished or stopped."""

    @abstractmethod
    def stop(self) -> None:
        """Stop any output. Idempotent."""

    def clear_cache(self) -> None:
        """Forget synthesized audio (no-op unless the backend caches)."""

    async def aclose(self) -> None:
        self.stop()


def match_voice(voices: list[SpeechVoice], language: str) -> SpeechVoice | None:
    """Return the first voice whose locale shares *language*'s primary subtag."""
    primary = language.split("-")[0].lower()
    for voice in voices:
        for lang in voice.languages:
            if lang.split("-")[0].lower() == primary:
                return voice
    return None


class LocalSpeechBackend(SpeechBackend):
    """On-device synthesis: no network, depends on the device's speech engine."""

    name = "local"

    def __init__(self, engine: SpeechEngine | None, *, language: str = "zh-CN") -> None:
        self.engine = engine
        self.language = language

    def _require_engine(self) -> SpeechEngine:
        if self.engine is None:
            raise PlaybackCapabilityError("Speech synthesis is not supported on this device")
        return self.engine

    async def synthesize(self, text: str) -> Utterance:
        engine = self._require_engine()
        voice = match_voice(await engine.voices(), self.language)
        if voice is None:
            logger.debug(f"No {self.language} voice installed, using engine default")
        return Utterance(text=text, lang=self.language, rate=1.0, pitch=1.0, volume=1.0, voice=voice)

    async def play(self, handle: AudioHandle) -> None:
        await self._require_engine().speak(handle)

    def stop(self) -> None:
        if self.engine is not None:
            self.engine.cancel()

    async def aclose(self) -> None:
        if self.engine is not None:
            self.engine.close()


class RemoteSpeechBackend(SpeechBackend):
    """Synthesis through the service's ``/api/tts`` endpoint, cached per session."""

    name = "remote"

    def __init__(
        self,
        client: httpx.AsyncClient,
        player: AudioPlayer,
        *,
        cache: dict[str, AudioClip] | None = None,
        audio_dir: Path | None = None,
    ) -> None:
        self.client = client
        self.player = player
        self.cache: dict[str, AudioClip] = cache if cache is not None else {}
        self._audio_dir = audio_dir
        self._owns_audio_dir = audio_dir is None

    @property
    def audio_dir(self) -> Path:
        if self._audio_dir is None:
            self._audio_dir = Path(tempfile.mkdtemp(prefix="storyteller-audio-"))
        return self._audio_dir

    async def synthesize(self, text: str) -> AudioClip:
        cache_key = text[:CACHE_KEY_CHARS]
        clip = self.cache.get(cache_key)
        if clip is not None:
            logger.debug(f"TTS cache hit ({len(self.cache)} cached)")
            return clip

        logger.info(f"Requesting TTS for {min(len(text), MAX_TTS_CHARS)} characters")
        try:
            response = await self.client.post("/api/tts", json={"text": text[:MAX_TTS_CHARS]})
        except httpx.HTTPError as e:
            logger.error(f"TTS request failed: {e}")
            raise UpstreamError("TTS request failed") from e

        if response.is_error:
            message = error_message(response, "TTS conversion failed")
            logger.error(f"TTS returned {response.status_code}: {message}")
            if response.status_code == 429:
                raise UpstreamRateLimitError(message)
            raise UpstreamError(message, status_code=response.status_code)

        clip = self._store(response.content, response.headers.get("content-type", "audio/mpeg"))
        self.cache[cache_key] = clip
        return clip

    def _store(self, audio: bytes, content_type: str) -> AudioClip:
        content_type = content_type.split(";")[0].strip() or "audio/mpeg"
        path = self.audio_dir / f"{uuid.uuid4().hex}.{_EXTENSIONS.get(content_type, 'mp3')}"
        path.write_bytes(audio)
        return AudioClip(path=path, content_type=content_type, size=len(audio))

    async def play(self, handle: AudioHandle) -> None:
        await self.player.play(handle.path)

    def stop(self) -> None:
        self.player.stop()

    def clear_cache(self) -> None:
        for clip in self.cache.values():
            clip.path.unlink(missing_ok=True)
        self.cache.clear()

    async def aclose(self) -> None:
        self.stop()
        self.clear_cache()
        if self._owns_audio_dir and self._audio_dir is not None:
            shutil.rmtree(self._audio_dir, ignore_errors=True)
            self._audio_dir = None
