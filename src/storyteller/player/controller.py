"""Sequential segment playback with highlighting, auto-advance and cancellation.

States: Idle (index -1, not playing) -> Playing(i) -> Paused(i) -> Playing(i)
-> ... -> Idle after the last segment or an explicit stop.

Every playback run carries the generation number it was started with. Any
operation that changes what should be heard bumps the generation and stops
the current output first, so at most one output is ever active. A run checks
its generation after each suspension point (synthesis, playback, pacing
delay) and quietly ends once it is no longer current.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from storyteller.exceptions import StorytellerError
from storyteller.models import Segment
from storyteller.player.speech import SpeechBackend
from storyteller.player.state import PlaybackState
from storyteller.player.view import PlaybackView
from storyteller.services.script_renderer import DEFAULT_NOW_PLAYING, segment_label

logger = logging.getLogger(__name__)

END_OF_STORY_MESSAGE = "🌙 That's the end of the story. Good night!"


class PlaybackController:
    """Drives segment playback for one listening session."""

    def __init__(
        self,
        backend: SpeechBackend,
        view: PlaybackView,
        *,
        state: PlaybackState | None = None,
        pacing_delay: float = 1.0,
    ) -> None:
        self.backend = backend
        self.view = view
        self.state = state or PlaybackState()
        self.pacing_delay = pacing_delay
        self.segments: tuple[Segment, ...] = ()
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def task(self) -> asyncio.Task | None:
        """The task driving the most recent playback run."""
        return self._task

    def load(self, segments: Sequence[Segment]) -> None:
        """Replace the segment list; playback state is reset first."""
        self.stop()
        self.segments = tuple(segments)

    def reset(self) -> None:
        """Forget everything for a new book, including cached audio."""
        self.stop()
        self.segments = ()
        self.backend.clear_cache()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def play_segment(self, index: int) -> asyncio.Task | None:
        """Start playing at *index* and continue through the following segments.

        Returns the task driving playback, or None when *index* is out of
        range (the controller is then Idle).
        """
        if not self._begin(index):
            return None
        self._task = asyncio.create_task(self._run(index, self._generation))
        return self._task

    def toggle_play_pause(self) -> asyncio.Task | None:
        if not self.state.is_playing:
            index = self.state.current_segment_index
            return self.play_segment(0 if index < 0 else index)

        self._generation += 1
        self.state.is_playing = False
        self._stop_output()
        self.view.set_playing(False)
        logger.info(f"Paused at segment {self.state.current_segment_index}")
        return None

    def play_previous(self) -> asyncio.Task | None:
        return self.play_segment(max(0, self.state.current_segment_index - 1))

    def play_next(self) -> asyncio.Task | None:
        next_index = self.state.current_segment_index + 1
        if next_index < len(self.segments):
            return self.play_segment(next_index)
        self.stop()
        self.view.notify(END_OF_STORY_MESSAGE, "success")
        return None

    def stop(self) -> None:
        """Stop playback and return to Idle. Safe in every state."""
        self._generation += 1
        self._stop_output()
        self.state.set_idle()
        self.view.clear_highlight()
        self.view.set_playing(False)
        self.view.set_now_playing(DEFAULT_NOW_PLAYING)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _stop_output(self) -> None:
        self.backend.stop()

    def _is_active(self, generation: int) -> bool:
        return generation == self._generation and self.state.is_playing

    def _begin(self, index: int) -> bool:
        """Enter Playing(index) and update the view; False (and Idle) if out of range."""
        if not 0 <= index < len(self.segments):
            self.stop()
            return False

        self._stop_output()
        self._generation += 1
        self.state.current_segment_index = index
        self.state.is_playing = True

        segment = self.segments[index]
        self.view.set_playing(True)
        self.view.set_now_playing(segment_label(segment))
        self.view.highlight(index)
        logger.info(f"Playing segment {index} ({segment.type.value})")
        return True

    async def _run(self, index: int, generation: int) -> None:
        while True:
            segment = self.segments[index]
            try:
                handle = await self.backend.synthesize(segment.text)
                if not self._is_active(generation):
                    return
                await self.backend.play(handle)
            except StorytellerError as e:
                logger.error(f"Playback of segment {index} failed: {e}")
                if generation == self._generation:
                    self.view.notify(f"Playback failed: {e}", "error")
                    self.stop()
                return
            except Exception as e:
                logger.error(f"Unexpected error playing segment {index}: {e}", exc_info=e)
                if generation == self._generation:
                    self.view.notify("Playback failed, please try again", "error")
                    self.stop()
                return

            if not self._is_active(generation):
                return
            await asyncio.sleep(self.pacing_delay)
            if not self._is_active(generation):
                return

            index += 1
            if not self._begin(index):
                logger.info("Reached the end of the story")
                return
            generation = self._generation

