"""Tests for the local and remote speech backends."""

import json

import httpx
import pytest

from storyteller.exceptions import (
    PlaybackCapabilityError,
    UpstreamError,
    UpstreamRateLimitError,
)
from storyteller.player.devices import SpeechEngine, SpeechVoice
from storyteller.player.speech import (
    CACHE_KEY_CHARS,
    MAX_TTS_CHARS,
    LocalSpeechBackend,
    RemoteSpeechBackend,
    match_voice,
)
from storyteller.player.state import AudioClip


class FakePlayer:
    def __init__(self):
        self.played = []
        self.stops = 0

    async def play(self, path):
        self.played.append(path)

    def stop(self):
        self.stops += 1


class FakeEngine(SpeechEngine):
    def __init__(self, voices=()):
        self._voices = list(voices)
        self.spoken = []
        self.cancels = 0
        self.closed = False

    async def voices(self):
        return self._voices

    async def speak(self, utterance):
        self.spoken.append(utterance)

    def cancel(self):
        self.cancels += 1

    def close(self):
        self.closed = True


def tts_transport(requests, status=200, body=b"ID3audio", content_type="audio/mpeg"):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        if status != 200:
            return httpx.Response(status, json={"success": False, "error": "Text too long"})
        return httpx.Response(200, content=body, headers={"content-type": content_type})

    return httpx.MockTransport(handler)


@pytest.fixture
def requests():
    return []


@pytest.fixture
def player():
    return FakePlayer()


def remote_backend(transport, player, tmp_path, cache=None):
    client = httpx.AsyncClient(base_url="http://test", transport=transport)
    return RemoteSpeechBackend(client, player, cache=cache, audio_dir=tmp_path)


class TestRemoteSpeechBackend:
    @pytest.mark.asyncio
    async def test_same_prefix_is_fetched_once(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests), player, tmp_path)
        prefix = "x" * CACHE_KEY_CHARS

        first = await backend.synthesize(prefix + " first ending")
        second = await backend.synthesize(prefix + " another ending")

        assert len(requests) == 1
        assert first is second
        assert first.path.read_bytes() == b"ID3audio"
        assert first.content_type == "audio/mpeg"

    @pytest.mark.asyncio
    async def test_different_prefixes_are_fetched_separately(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests), player, tmp_path)

        await backend.synthesize("Once upon a time")
        await backend.synthesize("Good night")

        assert [r["text"] for r in requests] == ["Once upon a time", "Good night"]
        assert len(backend.cache) == 2

    @pytest.mark.asyncio
    async def test_long_text_is_truncated(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests), player, tmp_path)

        await backend.synthesize("a" * 5000)

        assert len(requests[0]["text"]) == MAX_TTS_CHARS
        assert set(requests[0]) == {"text"}

    @pytest.mark.asyncio
    async def test_shares_session_cache(self, requests, player, tmp_path):
        cache = {}
        backend = remote_backend(tts_transport(requests), player, tmp_path, cache=cache)

        await backend.synthesize("hello")

        assert list(cache) == ["hello"]

    @pytest.mark.asyncio
    async def test_format_extension_follows_content_type(self, requests, player, tmp_path):
        transport = tts_transport(requests, content_type="audio/wav")
        backend = remote_backend(transport, player, tmp_path)

        clip = await backend.synthesize("hello")

        assert clip.path.suffix == ".wav"

    @pytest.mark.asyncio
    async def test_error_response_message_is_surfaced(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests, status=400), player, tmp_path)

        with pytest.raises(UpstreamError) as exc_info:
            await backend.synthesize("hello")

        assert exc_info.value.message == "Text too long"
        assert backend.cache == {}

    @pytest.mark.asyncio
    async def test_rate_limited_response(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests, status=429), player, tmp_path)

        with pytest.raises(UpstreamRateLimitError):
            await backend.synthesize("hello")

    @pytest.mark.asyncio
    async def test_transport_failure_is_generic(self, player, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = remote_backend(httpx.MockTransport(handler), player, tmp_path)

        with pytest.raises(UpstreamError) as exc_info:
            await backend.synthesize("hello")

        assert exc_info.value.message == "TTS request failed"

    @pytest.mark.asyncio
    async def test_play_and_stop_use_player(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests), player, tmp_path)
        clip = await backend.synthesize("hello")

        await backend.play(clip)
        backend.stop()

        assert player.played == [clip.path]
        assert player.stops == 1

    @pytest.mark.asyncio
    async def test_clear_cache_removes_files(self, requests, player, tmp_path):
        backend = remote_backend(tts_transport(requests), player, tmp_path)
        clip = await backend.synthesize("hello")

        backend.clear_cache()

        assert backend.cache == {}
        assert not clip.path.exists()

        await backend.synthesize("hello")
        assert len(requests) == 2


class TestLocalSpeechBackend:
    @pytest.mark.asyncio
    async def test_prefers_voice_matching_language(self):
        english = SpeechVoice(id="en", name="English", languages=("en-US",))
        chinese = SpeechVoice(id="zh", name="Chinese", languages=("zh-CN",))
        engine = FakeEngine([english, chinese])
        backend = LocalSpeechBackend(engine, language="zh-CN")

        utterance = await backend.synthesize("你好")

        assert utterance.voice == chinese
        assert utterance.lang == "zh-CN"
        assert (utterance.rate, utterance.pitch, utterance.volume) == (1.0, 1.0, 1.0)

    @pytest.mark.asyncio
    async def test_falls_back_to_engine_default_voice(self):
        engine = FakeEngine([SpeechVoice(id="en", name="English", languages=("en-US",))])
        backend = LocalSpeechBackend(engine, language="zh-CN")

        utterance = await backend.synthesize("你好")

        assert utterance.voice is None

    @pytest.mark.asyncio
    async def test_play_speaks_and_stop_cancels(self):
        engine = FakeEngine()
        backend = LocalSpeechBackend(engine)

        utterance = await backend.synthesize("hello")
        await backend.play(utterance)
        backend.stop()
        await backend.aclose()

        assert engine.spoken == [utterance]
        assert engine.cancels == 1
        assert engine.closed

    @pytest.mark.asyncio
    async def test_missing_engine_is_capability_error(self):
        backend = LocalSpeechBackend(None)

        with pytest.raises(PlaybackCapabilityError):
            await backend.synthesize("hello")

        backend.stop()


def test_match_voice_uses_primary_subtag():
    voices = [
        SpeechVoice(id="1", name="Swiss German", languages=("de-CH",)),
        SpeechVoice(id="2", name="Taiwanese Mandarin", languages=("zh-TW",)),
    ]

    assert match_voice(voices, "zh-CN").id == "2"
    assert match_voice(voices, "fr-FR") is None


def test_audio_clip_defaults(tmp_path):
    clip = AudioClip(path=tmp_path / "a.mp3")

    assert clip.content_type == "audio/mpeg"
    assert clip.size == 0
