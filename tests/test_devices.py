import asyncio
import shutil
import threading
from types import SimpleNamespace

import pyttsx3
import pytest

from conftest import wait_for
from storyteller.exceptions import PlaybackCapabilityError, PlaybackError, SpeechSynthesisError
from storyteller.player.devices import (
    AudioPlayer,
    Pyttsx3Engine,
    SpeechVoice,
    Utterance,
    _normalize_language,
)


@pytest.mark.asyncio
async def test_missing_player_binary_is_capability_error(tmp_path):
    player = AudioPlayer(str(tmp_path / "no-such-ffplay"))

    with pytest.raises(PlaybackCapabilityError):
        await player.play(tmp_path / "a.mp3")


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("true") is None, reason="needs coreutils")
async def test_successful_playback(tmp_path):
    player = AudioPlayer(shutil.which("true"))

    await player.play(tmp_path / "a.mp3")

    assert not player.is_playing


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("false") is None, reason="needs coreutils")
async def test_failed_playback(tmp_path):
    player = AudioPlayer(shutil.which("false"))

    with pytest.raises(PlaybackError):
        await player.play(tmp_path / "a.mp3")


def test_stop_without_playback_is_safe():
    player = AudioPlayer()

    player.stop()
    player.stop()

    assert not player.is_playing


@pytest.mark.parametrize(
    "value,expected",
    [
        (b"\x05en-us", "en-us"),
        (b"zh", "zh"),
        ("zh_CN", "zh-CN"),
        ("en-US", "en-US"),
    ],
)
def test_normalize_language(value, expected):
    assert _normalize_language(value) == expected


@pytest.mark.asyncio
async def test_stop_during_playback_returns_quietly(tmp_path):
    script = tmp_path / "slow-player"
    script.write_text("#!/bin/sh\nexec sleep 5\n")
    script.chmod(0o755)
    player = AudioPlayer(str(script))

    task = asyncio.create_task(player.play(tmp_path / "a.mp3"))
    await wait_for(lambda: player.is_playing)
    player.stop()

    await asyncio.wait_for(task, timeout=2)
    assert not player.is_playing


@pytest.mark.asyncio
async def test_non_executable_player_is_capability_error(tmp_path):
    script = tmp_path / "not-executable"
    script.write_text("#!/bin/sh\n")
    script.chmod(0o644)

    with pytest.raises(PlaybackCapabilityError):
        await AudioPlayer(str(script)).play(tmp_path / "a.mp3")


class FakeDriverEngine:
    """Stands in for the object returned by ``pyttsx3.init``."""

    def __init__(self, *, error=None, block=False, voices=()):
        self.error = error
        self.block = block
        self.properties = {"rate": 200, "volume": 1.0, "voices": list(voices)}
        self.callbacks = {}
        self.said = []
        self.started = threading.Event()
        self.stopped = threading.Event()

    def connect(self, topic, callback):
        token = object()
        self.callbacks[token] = (topic, callback)
        return token

    def disconnect(self, token):
        del self.callbacks[token]

    def _fire_error(self, exception):
        for topic, callback in list(self.callbacks.values()):
            if topic == "error":
                callback(name=None, exception=exception)

    def getProperty(self, name):
        return self.properties[name]

    def setProperty(self, name, value):
        self.properties[name] = value

    def say(self, text):
        self.said.append(text)

    def runAndWait(self):
        self.started.set()
        if self.block:
            self.stopped.wait(timeout=2)
            # some drivers report the interrupted utterance as an error
            self._fire_error(RuntimeError("interrupted"))
        elif self.error:
            self._fire_error(RuntimeError(self.error))

    def stop(self):
        self.stopped.set()


@pytest.fixture
def driver(monkeypatch):
    def install(**kwargs):
        fake = FakeDriverEngine(**kwargs)
        monkeypatch.setattr(pyttsx3, "init", lambda driver_name=None: fake)
        return fake

    return install


@pytest.mark.asyncio
async def test_engine_speaks_with_voice_and_rate(driver):
    fake = driver(voices=[SimpleNamespace(id="zh-voice", name="Chinese", languages=[b"\x05zh"])])
    engine = Pyttsx3Engine()
    try:
        voices = await engine.voices()
        await engine.speak(Utterance(text="你好", lang="zh-CN", rate=1.5, voice=voices[0]))
    finally:
        engine.close()

    assert voices == [SpeechVoice(id="zh-voice", name="Chinese", languages=("zh",))]
    assert fake.said == ["你好"]
    assert fake.properties["voice"] == "zh-voice"
    assert fake.properties["rate"] == 300
    assert fake.callbacks == {}


@pytest.mark.asyncio
async def test_engine_error_raises_synthesis_error(driver):
    driver(error="audio device busy")
    engine = Pyttsx3Engine()
    try:
        with pytest.raises(SpeechSynthesisError, match="audio device busy"):
            await engine.speak(Utterance(text="hello", lang="en-US"))
    finally:
        engine.close()


@pytest.mark.asyncio
async def test_cancel_mid_utterance_completes_normally(driver):
    fake = driver(block=True)
    engine = Pyttsx3Engine()
    try:
        task = asyncio.create_task(engine.speak(Utterance(text="hello", lang="en-US")))
        await wait_for(fake.started.is_set)
        engine.cancel()

        await asyncio.wait_for(task, timeout=2)
    finally:
        engine.close()

    assert fake.stopped.is_set()


@pytest.mark.asyncio
async def test_cancel_before_start_skips_utterance(driver):
    fake = driver()
    engine = Pyttsx3Engine()
    gate = threading.Event()
    try:
        # keep the worker thread busy so the utterance is queued behind it
        engine._executor.submit(gate.wait, 2)
        task = asyncio.create_task(engine.speak(Utterance(text="hello", lang="en-US")))
        await asyncio.sleep(0)
        engine.cancel()
        gate.set()

        await asyncio.wait_for(task, timeout=2)
    finally:
        engine.close()

    assert fake.said == []
    assert not fake.started.is_set()


@pytest.mark.asyncio
async def test_missing_driver_is_capability_error(monkeypatch):
    def broken_init(driver_name=None):
        raise RuntimeError("no speech driver")

    monkeypatch.setattr(pyttsx3, "init", broken_init)
    engine = Pyttsx3Engine()
    try:
        with pytest.raises(PlaybackCapabilityError):
            await engine.voices()
    finally:
        engine.close()
