"""UI surface updated by the playback controller."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from storyteller.models import Segment
from storyteller.services.script_renderer import DEFAULT_NOW_PLAYING, RenderedScript, segment_label

NoticeLevel = Literal["info", "success", "error"]


class PlaybackView(ABC):
    """What the user sees: label, highlight, play/pause indicator, notices."""

    @abstractmethod
    def set_now_playing(self, label: str) -> None: ...

    @abstractmethod
    def highlight(self, index: int) -> None:
        """Highlight block *index* and bring it into view."""

    @abstractmethod
    def clear_highlight(self) -> None: ...

    @abstractmethod
    def set_playing(self, playing: bool) -> None: ...

    @abstractmethod
    def notify(self, message: str, level: NoticeLevel = "info") -> None: ...

    def show_progress(self, percent: int, title: str, detail: str = "") -> None:
        pass

    def show_script(self, rendered: RenderedScript) -> None:
        pass


_STYLES: dict[str, str] = {"info": "cyan", "success": "green", "error": "bold red"}


class ConsoleView(PlaybackView):
    """Terminal rendition of the script view using rich."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.segments: tuple[Segment, ...] = ()
        self.now_playing = DEFAULT_NOW_PLAYING
        self.highlighted: int | None = None
        self.playing = False

    def show_script(self, rendered: RenderedScript) -> None:
        self.segments = rendered.segments
        self.highlighted = None
        self.console.rule(Text(rendered.title or "Story", style="bold"))
        if rendered.duration:
            self.console.print(f"About {rendered.duration}", style="dim")
        for segment in rendered.segments:
            self.console.print(
                Text.assemble((f"[{segment.index}] ", "bold"), (segment_label(segment), "magenta"))
            )
        self.console.print(
            "Commands: [bold]p[/] play/pause  [bold]n[/] next  [bold]b[/] back  "
            "[bold]s[/] stop  [bold]<number>[/] jump  [bold]q[/] quit",
            style="dim",
        )

    def set_now_playing(self, label: str) -> None:
        self.now_playing = label

    def highlight(self, index: int) -> None:
        self.highlighted = index
        if 0 <= index < len(self.segments):
            segment = self.segments[index]
            self.console.print(
                Panel(
                    Text(segment.text),
                    title=f"▶ {self.now_playing}",
                    subtitle=f"{index + 1}/{len(self.segments)}",
                    border_style="yellow",
                )
            )

    def clear_highlight(self) -> None:
        self.highlighted = None

    def set_playing(self, playing: bool) -> None:
        if playing != self.playing:
            self.playing = playing
            if not playing:
                self.console.print("⏸  paused" if self.highlighted is not None else "⏹  stopped", style="dim")

    def notify(self, message: str, level: NoticeLevel = "info") -> None:
        self.console.print(message, style=_STYLES.get(level, "cyan"))

    def show_progress(self, percent: int, title: str, detail: str = "") -> None:
        self.console.print(f"{percent:3d}% {title} {detail}".rstrip(), style="dim")
