"""Shared fakes for the playback tests."""

import asyncio

import pytest

from storyteller.exceptions import SpeechSynthesisError
from storyteller.models import Script, Segment, SegmentType
from storyteller.player.speech import SpeechBackend
from storyteller.player.view import PlaybackView
from storyteller.services.script_renderer import DEFAULT_NOW_PLAYING


class RecordingView(PlaybackView):
    """View that records what the controller told it."""

    def __init__(self):
        self.now_playing = DEFAULT_NOW_PLAYING
        self.highlighted = None
        self.highlights = []
        self.playing = False
        self.notices = []
        self.progress = []
        self.shown = None

    def set_now_playing(self, label):
        self.now_playing = label

    def highlight(self, index):
        self.highlighted = index
        self.highlights.append(index)

    def clear_highlight(self):
        self.highlighted = None

    def set_playing(self, playing):
        self.playing = playing

    def notify(self, message, level="info"):
        self.notices.append((level, message))

    def show_progress(self, percent, title, detail=""):
        self.progress.append(percent)

    def show_script(self, rendered):
        self.shown = rendered


class FakeBackend(SpeechBackend):
    """Speech backend whose playback either finishes at once or waits for stop/finish."""

    name = "fake"

    def __init__(self, *, blocking=False, fail_on=()):
        self.blocking = blocking
        self.fail_on = set(fail_on)
        self.synthesized = []
        self.played = []
        self.stop_calls = 0
        self.cache_clears = 0
        self.active = 0
        self.max_active = 0
        self.synth_gates: dict[str, asyncio.Event] = {}
        self._done: asyncio.Event | None = None

    async def synthesize(self, text):
        self.synthesized.append(text)
        gate = self.synth_gates.get(text)
        if gate is not None:
            await gate.wait()
        if text in self.fail_on:
            raise SpeechSynthesisError(f"cannot speak {text}")
        return text

    async def play(self, handle):
        self.played.append(handle)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.blocking:
                self._done = asyncio.Event()
                await self._done.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.active -= 1

    def finish(self):
        if self._done is not None:
            self._done.set()

    def stop(self):
        self.stop_calls += 1
        if self._done is not None:
            self._done.set()

    def clear_cache(self):
        self.cache_clears += 1


async def wait_for(condition, timeout=2.0):
    """Yield to the loop until *condition()* holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


def make_segments(*texts):
    return tuple(Segment(type=SegmentType.TAKEAWAY, text=t, index=i) for i, t in enumerate(texts))


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def sample_script():
    return Script(
        title="The Little Habit",
        hook="Tonight I have a special story for you.",
        summary="A boy learns that small steps add up.",
        story=[
            {"section": "The first pebble", "content": "Once upon a time..."},
            {"section": "The mountain", "content": "Years later..."},
        ],
        key_takeaways=["Small steps count.", "Be patient."],
        actionable_steps=["Read one page tomorrow."],
        bedtime_wisdom="Good night, sleep tight.",
        duration_estimate="12 minutes",
    )
