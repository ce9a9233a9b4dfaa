"""FFmpeg-based composition of acquired footage into the final video.

Stages, in order:
1. Encode every clip to the same size, frame rate and length (in parallel)
2. Concatenate the encoded clips with the concat demuxer (stream copy)
3. Apply the style grade, title and captions in a single re-encode
4. Loop the render when narration outlasts it
5. Mix voice and/or music into the final file

Each stage is an ``FFmpegCommand``; the blocking process runs in a worker
thread via ``asyncio.to_thread``.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional, Sequence

from models.generation import Orientation
from pipeline.ffmpeg import (
    DEFAULT_TIMEOUT,
    FFmpegCommand,
    FFmpegError,
    FFmpegInput,
    escape_drawtext,
    escape_filter_path,
    probe_duration,
    run_ffmpeg,
)
from pipeline.models import FrameLayout, layout_for

logger = logging.getLogger(__name__)

# Encoding defaults
DEFAULT_FPS = 30
DEFAULT_CRF = 23
CLIP_PRESET = "fast"
RENDER_PRESET = "veryfast"

# Audio mixing
MUSIC_FADE_SECONDS = 2.0
AUDIO_SAMPLE_RATE = 44100
AUDIO_BITRATE = "192k"

TITLE_DISPLAY_SECONDS = 3.0

# Color/contrast grade per visual style; unknown styles get no filter
STYLE_FILTERS = {
    "cyberpunk": [
        "eq=contrast=1.2:saturation=1.3",
        "colorbalance=bs=0.1:bm=0.1:bh=0.2",
    ],
    "cinematic": [
        "eq=contrast=1.1:brightness=0.02",
        "colorbalance=rs=-0.05:gs=-0.02:bs=0.1",
    ],
    "anime": ["eq=saturation=1.4:contrast=1.2"],
    "documentary": ["eq=saturation=0.9:contrast=1.05"],
    "minimal": ["eq=saturation=0.7:contrast=1.1"],
}


class VideoComposerError(Exception):
    """Raised when an FFmpeg operation fails during composition."""

    pass


def style_filters(style: Optional[str]) -> list[str]:
    """Filter chain for a visual style tag (empty for unknown styles)."""
    return list(STYLE_FILTERS.get((style or "").lower(), []))


def clamp_volume(volume: float) -> float:
    return max(0.0, min(1.0, float(volume)))


def wrap_title(title: str, max_chars: int) -> list[str]:
    """Uppercase a title and wrap it into lines of at most ``max_chars``."""
    lines: list[str] = []
    current = ""
    for word in title.upper().split():
        candidate = f"{current} {word}".strip()
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


class VideoComposer:
    """Builds and runs the FFmpeg stages of a generation job.

    The composer holds no per-job state; every method works on paths passed
    in, so one instance can serve concurrent jobs.
    """

    def __init__(
        self,
        extension_tolerance: float = 0.5,
        timeout: int = DEFAULT_TIMEOUT,
        title_overlay: bool = False,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
    ):
        self.extension_tolerance = extension_tolerance
        self.timeout = timeout
        self.title_overlay = title_overlay
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary

    # ------------------------------------------------------------------
    # Clip normalization
    # ------------------------------------------------------------------

    @staticmethod
    def clip_durations(total_duration: float, clip_count: int) -> list[float]:
        """Equal share of the total duration for each clip."""
        if clip_count <= 0:
            return []
        share = total_duration / clip_count
        return [share] * clip_count

    def build_clip_command(
        self,
        input_path: Path,
        output_path: Path,
        duration: float,
        layout: FrameLayout,
    ) -> FFmpegCommand:
        return FFmpegCommand(
            inputs=[FFmpegInput(input_path)],
            output=output_path,
            duration=duration,
            output_options=[
                "-c:v", "libx264",
                "-preset", CLIP_PRESET,
                "-crf", str(DEFAULT_CRF),
                "-r", str(DEFAULT_FPS),
                "-s", layout.size,
                "-an",
            ],
            description=f"encode clip {input_path.name} ({duration:.2f}s)",
            binary=self.ffmpeg_binary,
        )

    async def process_clips(
        self,
        clips: Sequence[Path],
        workspace: Path,
        total_duration: float,
        orientation: Orientation,
    ) -> list[Path]:
        """Encode all clips concurrently and wait for every one to finish.

        Raises:
            VideoComposerError: If any clip fails to encode
        """
        if not clips:
            raise VideoComposerError("No clips to process")

        layout = layout_for(orientation)
        durations = self.clip_durations(total_duration, len(clips))
        commands = [
            self.build_clip_command(clip, workspace / f"processed_{i}.mp4", duration, layout)
            for i, (clip, duration) in enumerate(zip(clips, durations))
        ]

        logger.info(
            f"Encoding {len(commands)} clips at {layout.size}, {durations[0]:.2f}s each"
        )
        await asyncio.gather(*(self._run(command) for command in commands))
        return [command.output for command in commands]

    # ------------------------------------------------------------------
    # Concatenation
    # ------------------------------------------------------------------

    def build_concat_command(self, list_file: Path, output_path: Path) -> FFmpegCommand:
        return FFmpegCommand(
            inputs=[FFmpegInput(list_file, ["-f", "concat", "-safe", "0"])],
            output=output_path,
            output_options=["-c", "copy"],
            description="concatenate clips (stream copy)",
            binary=self.ffmpeg_binary,
        )

    async def concatenate(self, clips: Sequence[Path], workspace: Path) -> Path:
        """Join encoded clips in order without re-encoding."""
        if not clips:
            raise VideoComposerError("No clips to concatenate")

        output_path = workspace / "merged.mp4"
        if len(clips) == 1:
            await asyncio.to_thread(shutil.copy2, clips[0], output_path)
            return output_path

        list_file = workspace / "concat.txt"
        list_file.write_text("\n".join(f"file '{clip.resolve()}'" for clip in clips))

        await self._run(self.build_concat_command(list_file, output_path))
        return output_path

    # ------------------------------------------------------------------
    # Style, title and caption pass
    # ------------------------------------------------------------------

    def build_render_command(
        self,
        input_path: Path,
        output_path: Path,
        style: Optional[str],
        subtitle_path: Optional[Path],
        layout: FrameLayout,
        title: Optional[str] = None,
    ) -> FFmpegCommand:
        filters = style_filters(style)

        if title and self.title_overlay:
            filters.append(self._title_filter(title, layout))

        if subtitle_path is not None:
            filters.append(f"ass='{escape_filter_path(subtitle_path)}'")

        return FFmpegCommand(
            inputs=[FFmpegInput(input_path)],
            output=output_path,
            video_filters=filters,
            output_options=[
                "-c:v", "libx264",
                "-preset", RENDER_PRESET,
                "-crf", str(DEFAULT_CRF),
                "-an",
            ],
            description=f"render style={style or 'default'}",
            binary=self.ffmpeg_binary,
        )

    @staticmethod
    def _title_filter(title: str, layout: FrameLayout) -> str:
        text = "\n".join(wrap_title(title, layout.title_max_chars))
        return (
            f"drawtext=text='{escape_drawtext(text)}'"
            f":fontsize={layout.title_font_size}"
            ":fontcolor=yellow:borderw=1.5:bordercolor=white"
            ":x=(w-text_w)/2:y=(h-text_h)/2"
            f":enable='between(t,0,{TITLE_DISPLAY_SECONDS:g})'"
        )

    async def render(
        self,
        input_path: Path,
        output_path: Path,
        style: Optional[str],
        subtitle_path: Optional[Path],
        orientation: Orientation,
        title: Optional[str] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> Path:
        """Grade, title and caption the merged video in one encode.

        ``on_progress`` receives percentages on the event loop thread.
        """
        command = self.build_render_command(
            input_path, output_path, style, subtitle_path, layout_for(orientation), title
        )

        relay = None
        if on_progress is not None:
            loop = asyncio.get_running_loop()

            def relay(percent: int) -> None:
                loop.call_soon_threadsafe(on_progress, percent)

        await self._run(command, relay)
        return output_path

    # ------------------------------------------------------------------
    # Duration reconciliation
    # ------------------------------------------------------------------

    def build_extend_command(
        self, input_path: Path, output_path: Path, target_duration: float
    ) -> FFmpegCommand:
        return FFmpegCommand(
            inputs=[FFmpegInput(input_path, ["-stream_loop", "-1"])],
            output=output_path,
            duration=target_duration,
            output_options=[
                "-c:v", "libx264",
                "-preset", CLIP_PRESET,
                "-crf", str(DEFAULT_CRF),
                "-an",
            ],
            description=f"extend video to {target_duration:.2f}s",
            binary=self.ffmpeg_binary,
        )

    async def probe_duration(self, path: Path) -> float:
        return await asyncio.to_thread(probe_duration, path, self.ffprobe_binary)

    async def extend_to(self, video_path: Path, target_duration: float, workspace: Path) -> Path:
        """Loop the video up to ``target_duration`` when it is too short.

        Gaps up to ``extension_tolerance`` seconds are left alone. Returns the
        input path unchanged when no extension is needed.
        """
        try:
            current = await self.probe_duration(video_path)
        except FFmpegError as e:
            raise VideoComposerError(f"Could not read rendered duration: {e}") from e

        if current >= target_duration - self.extension_tolerance:
            return video_path

        logger.info(f"Extending video from {current:.2f}s to {target_duration:.2f}s")
        output_path = workspace / "extended.mp4"
        await self._run(self.build_extend_command(video_path, output_path, target_duration))
        return output_path

    # ------------------------------------------------------------------
    # Audio mixing
    # ------------------------------------------------------------------

    def build_mix_command(
        self,
        video_path: Path,
        output_path: Path,
        target_duration: float,
        voice_path: Optional[Path] = None,
        music_path: Optional[Path] = None,
        music_volume: float = 0.05,
    ) -> FFmpegCommand:
        """Audio mix for the four voice/music combinations."""
        volume = clamp_volume(music_volume)
        fade_start = max(0.0, target_duration - MUSIC_FADE_SECONDS)
        music_chain = f"volume={volume},afade=t=out:st={fade_start:.3f}:d={MUSIC_FADE_SECONDS:g}"
        audio_options = ["-c:v", "copy", "-c:a", "aac", "-b:a", AUDIO_BITRATE, "-shortest"]
        inputs = [FFmpegInput(video_path)]

        if voice_path and music_path:
            inputs += [FFmpegInput(voice_path), FFmpegInput(music_path)]
            audio_format = (
                f"aformat=sample_fmts=fltp:sample_rates={AUDIO_SAMPLE_RATE}"
                ":channel_layouts=stereo"
            )
            graph = [
                f"[1:a]{audio_format}[voice]",
                f"[2:a]{audio_format},{music_chain}[music]",
                "[voice][music]amix=inputs=2:duration=first:dropout_transition=2[aout]",
            ]
            return FFmpegCommand(
                inputs=inputs,
                output=output_path,
                filter_complex=graph,
                maps=["0:v", "[aout]"],
                output_options=audio_options,
                description="mix voice and music",
                binary=self.ffmpeg_binary,
            )

        if voice_path:
            inputs.append(FFmpegInput(voice_path))
            return FFmpegCommand(
                inputs=inputs,
                output=output_path,
                maps=["0:v", "1:a"],
                output_options=audio_options,
                description="add voice track",
                binary=self.ffmpeg_binary,
            )

        if music_path:
            inputs.append(FFmpegInput(music_path))
            return FFmpegCommand(
                inputs=inputs,
                output=output_path,
                filter_complex=[f"[1:a]{music_chain}[aout]"],
                maps=["0:v", "[aout]"],
                output_options=audio_options,
                description="add music track",
                binary=self.ffmpeg_binary,
            )

        return FFmpegCommand(
            inputs=inputs,
            output=output_path,
            output_options=["-c:v", "copy", "-an"],
            description="finalize without audio",
            binary=self.ffmpeg_binary,
        )

    async def mix_audio(
        self,
        video_path: Path,
        output_path: Path,
        target_duration: float,
        voice_path: Optional[Path] = None,
        music_path: Optional[Path] = None,
        music_volume: float = 0.05,
    ) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        command = self.build_mix_command(
            video_path, output_path, target_duration, voice_path, music_path, music_volume
        )
        await self._run(command)
        return output_path

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    async def _run(
        self, command: FFmpegCommand, on_progress: Optional[Callable[[int], None]] = None
    ) -> None:
        try:
            await asyncio.to_thread(run_ffmpeg, command, self.timeout, on_progress)
        except FFmpegError as e:
            raise VideoComposerError(str(e)) from e

        if not command.output.exists():
            raise VideoComposerError(
                f"FFmpeg produced no output for '{command.description}': {command.output}"
            )
