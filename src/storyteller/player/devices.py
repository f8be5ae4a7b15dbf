"""Audio output devices driven by the speech backends.

Both devices expose completion as an awaitable and accept a ``stop``/``cancel``
at any time. A stop that lands between "start requested" and "output
started" is caught with an epoch counter so no stale output ever begins.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import pyttsx3

from storyteller.exceptions import PlaybackCapabilityError, PlaybackError, SpeechSynthesisError

logger = logging.getLogger(__name__)


class AudioPlayer:
    """Plays audio files through ``ffplay``, one at a time."""

    def __init__(self, ffplay_path: str = "ffplay") -> None:
        self.ffplay_path = ffplay_path
        self._process: asyncio.subprocess.Process | None = None
        self._epoch = 0

    @property
    def is_playing(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def play(self, path: Path) -> None:
        """Play *path* and return when it finished or was stopped."""
        epoch = self._epoch
        cmd = [self.ffplay_path, "-nodisp", "-autoexit", "-loglevel", "error", str(path)]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PlaybackCapabilityError(
                f"Audio playback is not supported: cannot run '{self.ffplay_path}' ({e})"
            ) from e

        if epoch != self._epoch:
            # stopped while the process was starting
            self._terminate(process)
            await process.wait()
            return

        self._process = process
        try:
            _, stderr = await process.communicate()
        finally:
            if self._process is process:
                self._process = None

        if epoch != self._epoch:
            return
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[:200]
            raise PlaybackError(f"Audio playback failed: {detail or process.returncode}")

    def stop(self) -> None:
        """Stop the current file, if any. Safe to call at any time."""
        self._epoch += 1
        if self._process is not None:
            self._terminate(self._process)

    @staticmethod
    def _terminate(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()


@dataclass(frozen=True)
class SpeechVoice:
    """A voice offered by the on-device speech engine."""

    id: str
    name: str
    languages: tuple[str, ...] = ()


@dataclass(frozen=True)
class Utterance:
    """Text plus the voice parameters to speak it with."""

    text: str
    lang: str
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    voice: SpeechVoice | None = None


class SpeechEngine(ABC):
    """On-device speech synthesis."""

    @abstractmethod
    async def voices(self) -> list[SpeechVoice]:
        """Return the voices installed on the device."""

    @abstractmethod
    async def speak(self, utterance: Utterance) -> None:
        """Speak *utterance*; return once finished or cancelled.

        Raises SpeechSynthesisError for any failure other than a cancel.
        """

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the current utterance, if any."""

    def close(self) -> None:
        pass


def _normalize_language(value: object) -> str:
    # espeak reports languages as bytes with a leading priority byte
    if isinstance(value, bytes):
        value = value[1:].decode(errors="ignore") if value[:1] < b" " else value.decode(errors="ignore")
    return str(value).replace("_", "-")


class Pyttsx3Engine(SpeechEngine):
    """Speech engine backed by the operating system through pyttsx3.

    pyttsx3 is not thread safe, so every engine call except ``stop()`` runs on
    one dedicated worker thread. ``stop()`` has to reach the engine while that
    thread is blocked in ``runAndWait()``, so ``cancel`` calls it from the
    caller's thread, and only while an utterance is running. Pitch stays at
    the engine default.
    """

    def __init__(self, driver_name: str | None = None) -> None:
        self.driver_name = driver_name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="speech")
        self._engine = None
        self._base_rate: int | None = None
        self._lock = threading.Lock()
        self._epoch = 0
        self._speaking = False

    def _ensure_engine(self):
        if self._engine is None:
            try:
                self._engine = pyttsx3.init(self.driver_name)
            except Exception as e:
                logger.error(f"Speech engine unavailable: {e}")
                raise PlaybackCapabilityError("Speech synthesis is not supported on this device") from e
            self._base_rate = self._engine.getProperty("rate")
        return self._engine

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _list_voices(self) -> list[SpeechVoice]:
        engine = self._ensure_engine()
        return [
            SpeechVoice(
                id=v.id,
                name=v.name or v.id,
                languages=tuple(_normalize_language(lang) for lang in (v.languages or [])),
            )
            for v in engine.getProperty("voices") or []
        ]

    async def voices(self) -> list[SpeechVoice]:
        return await self._run(self._list_voices)

    def _speak_blocking(self, utterance: Utterance, epoch: int) -> None:
        engine = self._ensure_engine()
        errors: list[Exception] = []

        def on_error(name, exception):
            errors.append(exception)

        token = engine.connect("error", on_error)
        try:
            with self._lock:
                if epoch != self._epoch:
                    return
                self._speaking = True
                if utterance.voice is not None:
                    engine.setProperty("voice", utterance.voice.id)
                engine.setProperty("rate", int((self._base_rate or 200) * utterance.rate))
                engine.setProperty("volume", utterance.volume)
                engine.say(utterance.text)
            engine.runAndWait()
        finally:
            with self._lock:
                self._speaking = False
            engine.disconnect(token)

        # a cancel shows up as an unfinished utterance, not an error
        if errors and epoch == self._epoch:
            raise SpeechSynthesisError(str(errors[0]) or "Speech synthesis failed")

    async def speak(self, utterance: Utterance) -> None:
        await self._run(self._speak_blocking, utterance, self._epoch)

    def cancel(self) -> None:
        with self._lock:
            self._epoch += 1
            speaking = self._speaking
        if speaking and self._engine is not None:
            self._engine.stop()

    def close(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=False)
