"""Estimated word timings and karaoke-style ASS captions.

There is no forced alignment: spoken duration is estimated from a fixed
speaking rate and spread over the words in proportion to their length, so
long words stay on screen longer. Orientation only changes the layout.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import pysubs2

from models.generation import Orientation, Scene
from pipeline.models import CaptionLine, WordTiming, layout_for

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 150
SPEECH_SHARE_OF_TARGET = 0.95
WORDS_PER_LINE = 3
LINE_TRAILING_BUFFER = 0.2


def caption_text_for(narration: Optional[str], scenes: Sequence[Scene]) -> str:
    """Narration when present, otherwise the scene captions joined."""
    if narration and narration.strip():
        return narration
    return " ".join(scene.text or "" for scene in scenes).strip()


def estimate_spoken_duration(text: str, target_duration: float) -> float:
    """Seconds the text takes at 150 wpm, capped at 95% of the target."""
    word_count = len(text.split())
    estimate = word_count * 60 / WORDS_PER_MINUTE
    return min(target_duration * SPEECH_SHARE_OF_TARGET, estimate)


def estimate_word_timings(text: str, start: float, duration: float) -> list[WordTiming]:
    """Split ``duration`` across the words proportionally to character count."""
    words = text.split()
    if not words:
        return []

    total_chars = sum(len(word) for word in words)
    timings: list[WordTiming] = []
    current = start
    for word in words:
        word_duration = len(word) / total_chars * duration
        timings.append(WordTiming(word=word, start=current, end=current + word_duration))
        current += word_duration
    return timings


def group_caption_lines(
    timings: Sequence[WordTiming], words_per_line: int = WORDS_PER_LINE
) -> list[CaptionLine]:
    """Group consecutive words into caption lines."""
    return [
        CaptionLine(words=list(timings[i : i + words_per_line]), trailing_buffer=LINE_TRAILING_BUFFER)
        for i in range(0, len(timings), words_per_line)
    ]


def escape_caption_word(word: str) -> str:
    """Escape characters ASS would read as override blocks."""
    return word.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}")


def karaoke_text(line: CaptionLine) -> str:
    """Uppercase line text with a ``\\k`` reveal tag (centiseconds) per word."""
    parts = []
    for timing in line.words:
        centiseconds = round(timing.duration * 100)
        parts.append(f"{{\\k{centiseconds}}}{escape_caption_word(timing.word.upper())}")
    return " ".join(parts)


def _caption_style(font_size: int, margin: int, highlight: bool) -> pysubs2.SSAStyle:
    white = pysubs2.Color(255, 255, 255, 0)
    yellow = pysubs2.Color(255, 255, 0, 0)
    return pysubs2.SSAStyle(
        fontname="Arial",
        fontsize=font_size,
        bold=True,
        primarycolor=yellow if highlight else white,
        secondarycolor=white if highlight else yellow,
        outlinecolor=pysubs2.Color(0, 0, 0, 0),
        backcolor=pysubs2.Color(0, 0, 0, 128),
        outline=3.0,
        shadow=2.0,
        borderstyle=1,
        alignment=pysubs2.Alignment.BOTTOM_CENTER,
        marginl=20,
        marginr=20,
        marginv=margin,
    )


def build_subtitles(
    narration: Optional[str],
    scenes: Sequence[Scene],
    total_duration: float,
    orientation: Orientation = Orientation.PORTRAIT,
) -> pysubs2.SSAFile:
    """Build the caption track for a video.

    Args:
        narration: Narration text; scene captions are used when empty
        scenes: Script scenes
        total_duration: Target video duration in seconds
        orientation: Output orientation, which selects canvas and margins

    Returns:
        SSAFile with ``Default`` and ``Highlight`` styles and one event per line
    """
    layout = layout_for(orientation)

    subs = pysubs2.SSAFile()
    subs.info["Title"] = "Generated captions"
    subs.info["PlayResX"] = str(layout.width)
    subs.info["PlayResY"] = str(layout.height)
    subs.info["WrapStyle"] = "0"
    subs.styles["Default"] = _caption_style(layout.caption_font_size, layout.caption_margin, False)
    subs.styles["Highlight"] = _caption_style(layout.caption_font_size, layout.caption_margin, True)

    text = caption_text_for(narration, scenes)
    if not text:
        return subs

    spoken = estimate_spoken_duration(text, total_duration)
    for line in group_caption_lines(estimate_word_timings(text, 0.0, spoken)):
        subs.events.append(
            pysubs2.SSAEvent(
                start=int(round(line.start * 1000)),
                end=int(round(line.end * 1000)),
                text=karaoke_text(line),
                style="Default",
            )
        )

    logger.info(f"Built {len(subs.events)} caption lines over {spoken:.1f}s")
    return subs


def write_subtitles(
    output_path: Path,
    narration: Optional[str],
    scenes: Sequence[Scene],
    total_duration: float,
    orientation: Orientation = Orientation.PORTRAIT,
) -> Path:
    """Build the caption track and save it as an ASS file."""
    subs = build_subtitles(narration, scenes, total_duration, orientation)
    output_path.write_text(subs.to_string("ass"), encoding="utf-8")
    return output_path
