"""Flatten a storyteller Script into playable segments and an HTML display document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape

from storyteller.models import Script, Segment, SegmentType

logger = logging.getLogger(__name__)

DEFAULT_NOW_PLAYING = "Ready"

SEGMENT_LABELS: dict[SegmentType, str] = {
    SegmentType.HOOK: "🌙 Opening",
    SegmentType.SUMMARY: "📖 Tonight's story",
    SegmentType.STORY: "Story",
    SegmentType.TAKEAWAY: "💝 Dad's reminders",
    SegmentType.ACTION: "🌟 Try it tomorrow",
    SegmentType.WISDOM: "🌙 Goodnight words",
}


@dataclass(frozen=True)
class RenderedScript:
    """Segments in play order plus the markup that displays them."""

    segments: tuple[Segment, ...]
    html: str
    title: str = ""
    duration: str | None = None


def segment_label(segment: Segment) -> str:
    """Return the "now playing" label for *segment*."""
    if segment.type is SegmentType.STORY and segment.title:
        return segment.title
    return SEGMENT_LABELS.get(segment.type, "Now playing")


def build_segments(script: Script) -> tuple[Segment, ...]:
    """Derive the ordered playable segments of *script*."""
    segments: list[Segment] = []

    def add(type_: SegmentType, text: str | None, title: str | None = None) -> None:
        # blank text has nothing to speak
        if not text or not text.strip():
            return
        segments.append(Segment(type=type_, text=text, index=len(segments), title=title))

    add(SegmentType.HOOK, script.hook)
    add(SegmentType.SUMMARY, script.summary)
    for section in script.story:
        add(SegmentType.STORY, section.content, title=section.section)
    for item in script.key_takeaways:
        add(SegmentType.TAKEAWAY, item)
    for item in script.actionable_steps:
        add(SegmentType.ACTION, item)
    add(SegmentType.WISDOM, script.bedtime_wisdom)

    return tuple(segments)


def _block(segment: Segment, css_class: str, inner: str) -> str:
    return f'<div class="{css_class}" data-segment="{segment.index}">{inner}</div>'


def render(script: Script) -> RenderedScript:
    """Render *script* to its segments and display document.

    Every piece of script text is escaped; nothing in it is treated as markup.
    """
    segments = build_segments(script)
    by_type: dict[SegmentType, list[Segment]] = {}
    for segment in segments:
        by_type.setdefault(segment.type, []).append(segment)

    parts = [f'<h1 class="script-title">{escape(script.title)}</h1>']

    for segment in by_type.get(SegmentType.HOOK, []):
        parts.append(_block(segment, "script-hook", f"🌙 {escape(segment.text)}"))

    for segment in by_type.get(SegmentType.SUMMARY, []):
        parts.append(
            _block(
                segment,
                "script-summary",
                f'<div class="script-summary-label">{SEGMENT_LABELS[SegmentType.SUMMARY]}</div>'
                f"<div>{escape(segment.text)}</div>",
            )
        )

    for number, segment in enumerate(by_type.get(SegmentType.STORY, []), start=1):
        parts.append(
            _block(
                segment,
                "story-section",
                '<div class="section-header">'
                f'<span class="section-number">{number}</span>'
                f'<span class="section-title">{escape(segment.title or "")}</span>'
                "</div>"
                f'<div class="section-content">{escape(segment.text)}</div>',
            )
        )

    for segment_type, wrapper, item_class, icon in (
        (SegmentType.TAKEAWAY, "takeaways-section", "takeaway-item", "💫"),
        (SegmentType.ACTION, "actions-section", "action-item", "✨"),
    ):
        items = by_type.get(segment_type, [])
        if not items:
            continue
        parts.append(f'<div class="{wrapper}">')
        parts.append(f'<div class="section-label">{SEGMENT_LABELS[segment_type]}</div>')
        for segment in items:
            parts.append(
                _block(
                    segment,
                    item_class,
                    f'<span class="item-icon">{icon}</span>'
                    f'<span class="item-text">{escape(segment.text)}</span>',
                )
            )
        parts.append("</div>")

    for segment in by_type.get(SegmentType.WISDOM, []):
        parts.append(
            _block(
                segment,
                "bedtime-wisdom",
                '<div class="wisdom-icon">🌙</div>'
                f'<div class="wisdom-text">{escape(segment.text)}</div>',
            )
        )

    if script.glossary:
        parts.append('<div class="glossary-section">')
        parts.append('<div class="section-label">📖 Little facts</div>')
        for item in script.glossary:
            parts.append(
                '<div class="glossary-item">'
                f'<div class="glossary-term">{escape(item.term)}</div>'
                f'<div class="glossary-explanation">{escape(item.explanation)}</div>'
                "</div>"
            )
        parts.append("</div>")

    if script.duration_estimate:
        parts.append(f'<div class="duration">About {escape(script.duration_estimate)}</div>')

    logger.debug(f"Rendered '{script.title}' into {len(segments)} segments")
    return RenderedScript(
        segments=segments,
        html="\n".join(parts),
        title=script.title,
        duration=script.duration_estimate,
    )


def render_page(rendered: RenderedScript) -> str:
    """Wrap a rendered script in a standalone HTML page."""
    return (
        "<!DOCTYPE html>\n"
        '<html>\n<head>\n<meta charset="utf-8">\n'
        f"<title>{escape(rendered.title)}</title>\n"
        "</head>\n<body>\n"
        f'<main id="scriptContent">\n{rendered.html}\n</main>\n'
        "</body>\n</html>\n"
    )
