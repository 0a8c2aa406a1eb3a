# src/captions/builder.py — v1
"""ASS subtitle builder for burned-in captions.

Word timings are grouped into short on-screen segments (a pause longer than
0.5 s or six words ends a segment) and each word gets its own event with the
spoken word highlighted. Without word timings, one event per scene is
written from the scene timeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from shortrender.core.models import SceneTiming, WordTiming
from shortrender.core.niche_packs import CaptionStyle

logger = logging.getLogger(__name__)

PAUSE_BREAK_SEC = 0.5
MAX_SEGMENT_WORDS = 6
HIGHLIGHT_CHUNK = 4


@dataclass
class CaptionSegment:
    text: str
    start: float
    end: float
    words: list[WordTiming] = field(default_factory=list)


def format_ass_time(seconds: float) -> str:
    """Seconds to ASS ``h:mm:ss.cc`` (centiseconds truncated)."""
    total_cs = int(max(seconds, 0.0) * 100 + 1e-6)
    cs = total_cs % 100
    total_s = total_cs // 100
    return f"{total_s // 3600}:{(total_s % 3600) // 60:02d}:{total_s % 60:02d}.{cs:02d}"


def hex_to_ass(color: str) -> str:
    """``#RRGGBB`` to ASS ``&H00BBGGRR&``."""
    hex_digits = color.lstrip("#")
    if len(hex_digits) != 6:
        raise ValueError(f"expected #RRGGBB color, got {color!r}")
    r, g, b = hex_digits[0:2], hex_digits[2:4], hex_digits[4:6]
    return f"&H00{b}{g}{r}&".upper()


def escape_ass_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace("\n", "\\N")
        .replace("{", "\\{")
        .replace("}", "\\}")
    )


def _header(style: CaptionStyle) -> str:
    primary = hex_to_ass(style.primary_color)
    outline = hex_to_ass(style.outline_color)
    highlight = hex_to_ass(style.highlight_color)
    margins = f"{style.margin_horizontal},{style.margin_horizontal},{style.margin_bottom}"
    common = (
        f"&H80000000&,1,0,0,0,100,100,0,0,1,{style.outline_width},0,2,{margins},1"
    )
    return (
        "[Script Info]\n"
        "Title: Short Captions\n"
        "ScriptType: v4.00+\n"
        "PlayResX: 1080\n"
        "PlayResY: 1920\n"
        "WrapStyle: 0\n"
        "\n"
        "[V4+ Styles]\n"
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, "
        "OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, "
        "ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, "
        "MarginR, MarginV, Encoding\n"
        f"Style: Default,{style.font_family},{style.font_size},{primary},{highlight},{outline},{common}\n"
        f"Style: Highlight,{style.font_family},{style.font_size},{highlight},{primary},{outline},{common}\n"
        "\n"
        "[Events]\n"
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
    )


def _dialogue(start: float, end: float, text: str) -> str:
    return f"Dialogue: 0,{format_ass_time(start)},{format_ass_time(end)},Default,,0,0,0,,{text}\n"


def _highlight_events(words: list[WordTiming], highlight_color: str) -> list[str]:
    color = hex_to_ass(highlight_color)
    events: list[str] = []
    for i in range(0, len(words), HIGHLIGHT_CHUNK):
        chunk = words[i:i + HIGHLIGHT_CHUNK]
        for j, current in enumerate(chunk):
            parts = [
                f"{{\\c{color}}}{escape_ass_text(w.word)}{{\\c}}" if k == j else escape_ass_text(w.word)
                for k, w in enumerate(chunk)
            ]
            events.append(_dialogue(current.start, current.end, " ".join(parts)))
    return events


def group_words(words: list[WordTiming]) -> list[CaptionSegment]:
    """Split words into segments on long pauses or every six words."""
    segments: list[CaptionSegment] = []
    current: list[WordTiming] = []
    for i, word in enumerate(words):
        current.append(word)
        is_last = i == len(words) - 1
        long_pause = not is_last and words[i + 1].start - word.end > PAUSE_BREAK_SEC
        if long_pause or len(current) >= MAX_SEGMENT_WORDS or is_last:
            segments.append(
                CaptionSegment(
                    text=" ".join(w.word for w in current),
                    start=current[0].start,
                    end=current[-1].end,
                    words=current,
                )
            )
            current = []
    return segments


def build_ass(segments: list[CaptionSegment], style: CaptionStyle) -> str:
    """Render segments as a complete ASS document."""
    lines = [_header(style)]
    for segment in segments:
        if segment.words:
            lines.extend(_highlight_events(segment.words, style.highlight_color))
        else:
            lines.append(_dialogue(segment.start, segment.end, escape_ass_text(segment.text)))
    return "".join(lines)


def _write(content: str, output: Path | str) -> Path:
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def write_captions_from_words(
    words: list[WordTiming], style: CaptionStyle, output: Path | str
) -> Path:
    segments = group_words(words)
    logger.debug("Built %d caption segments from %d words", len(segments), len(words))
    return _write(build_ass(segments, style), output)


def write_captions_from_scenes(
    timings: list[SceneTiming], style: CaptionStyle, output: Path | str
) -> Path:
    segments = [CaptionSegment(text=t.text, start=t.start_sec, end=t.end_sec) for t in timings]
    return _write(build_ass(segments, style), output)
