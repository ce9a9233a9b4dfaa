"""Typed FFmpeg invocations.

Every media operation is described as an ``FFmpegCommand`` (inputs, filter
chain, stream maps, output options) that is validated before it is turned
into an argument list. Commands run synchronously and are meant to be called
through ``asyncio.to_thread``.
"""

import json
import logging
import re
import subprocess
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600
PROBE_TIMEOUT = 30

DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
TIME_PATTERN = re.compile(r"time=\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_LABEL_PATTERN = re.compile(r"\[([^\[\]]+)\]")


class FFmpegError(Exception):
    """Raised when an FFmpeg/FFprobe process fails or a command is invalid."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


@dataclass
class FFmpegInput:
    """One ``-i`` input with the options that precede it."""

    path: Path
    options: list[str] = field(default_factory=list)


@dataclass
class FFmpegCommand:
    """A single FFmpeg invocation.

    Use ``video_filters`` for a simple ``-vf`` chain or ``filter_complex``
    for labelled multi-input graphs, never both.
    """

    inputs: list[FFmpegInput]
    output: Path
    video_filters: list[str] = field(default_factory=list)
    filter_complex: list[str] = field(default_factory=list)
    maps: list[str] = field(default_factory=list)
    output_options: list[str] = field(default_factory=list)
    duration: Optional[float] = None
    description: str = ""
    binary: str = "ffmpeg"

    def validate(self) -> None:
        """Check the command is well formed.

        Raises:
            FFmpegError: On missing inputs, mixed filter styles, bad durations
                or maps referring to unknown inputs or labels
        """
        if not self.inputs:
            raise FFmpegError(f"No inputs for '{self.description}'")
        if self.video_filters and self.filter_complex:
            raise FFmpegError("Use either video_filters or filter_complex, not both")
        if self.duration is not None and self.duration <= 0:
            raise FFmpegError(f"Invalid duration {self.duration} for '{self.description}'")
        if any(not f for f in self.video_filters + self.filter_complex):
            raise FFmpegError(f"Empty filter in '{self.description}'")

        labels = set()
        for graph in self.filter_complex:
            labels.update(_LABEL_PATTERN.findall(graph))

        for stream_map in self.maps:
            if stream_map.startswith("["):
                if stream_map.strip("[]") not in labels:
                    raise FFmpegError(f"Map {stream_map} refers to an unknown filter label")
                continue
            input_index = stream_map.split(":", 1)[0]
            if not input_index.isdigit() or int(input_index) >= len(self.inputs):
                raise FFmpegError(f"Map {stream_map} refers to a missing input")

    def to_args(self) -> list[str]:
        """Serialize to an argument list (validates first)."""
        self.validate()
        args = [self.binary, "-y"]
        for ffmpeg_input in self.inputs:
            args += [*ffmpeg_input.options, "-i", str(ffmpeg_input.path)]
        if self.video_filters:
            args += ["-vf", ",".join(self.video_filters)]
        if self.filter_complex:
            args += ["-filter_complex", ";".join(self.filter_complex)]
        for stream_map in self.maps:
            args += ["-map", stream_map]
        if self.duration is not None:
            args += ["-t", f"{self.duration:.3f}"]
        args += self.output_options
        args.append(str(self.output))
        return args


def escape_filter_path(path: Path | str) -> str:
    """Escape a file path for use inside a quoted filter argument."""
    return str(path).replace("\\", "/").replace(":", "\\:").replace("'", "")


def escape_drawtext(text: str) -> str:
    """Escape text for a quoted drawtext ``text=`` argument."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "’")
        .replace(":", "\\:")
        .replace("%", "\\%")
    )


def parse_timestamp(hours: str, minutes: str, seconds: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class FFmpegProgress:
    """Turns FFmpeg stderr lines into completion percentages.

    The total comes from the ``Duration:`` banner of the input (or an explicit
    expected duration); progress comes from ``time=`` status lines. Values are
    capped at 99 until the process exits successfully.
    """

    def __init__(self, expected_duration: Optional[float] = None):
        self.total: Optional[float] = expected_duration
        self.percent = 0

    def feed(self, line: str) -> Optional[int]:
        """Consume one stderr line; return a new percentage when it advanced."""
        if self.total is None:
            match = DURATION_PATTERN.search(line)
            if match:
                self.total = parse_timestamp(*match.groups())
            return None

        match = TIME_PATTERN.search(line)
        if not match or not self.total:
            return None

        current = parse_timestamp(*match.groups())
        percent = min(99, int(current / self.total * 100))
        if percent <= self.percent:
            return None
        self.percent = percent
        return percent


def run_ffmpeg(
    command: FFmpegCommand,
    timeout: int = DEFAULT_TIMEOUT,
    on_progress: Optional[Callable[[int], None]] = None,
    expected_duration: Optional[float] = None,
) -> None:
    """Run an FFmpeg command, optionally reporting progress.

    Raises:
        FFmpegError: If the command is invalid, times out or exits non-zero
    """
    args = command.to_args()
    logger.info(f"FFmpeg: {command.description}")
    logger.debug(f"Command: {' '.join(args)}")

    if on_progress is None:
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise FFmpegError(f"FFmpeg timed out ({command.description})") from e

        if result.returncode != 0:
            logger.error(f"FFmpeg stderr: {result.stderr[-1000:]}")
            raise FFmpegError(
                f"FFmpeg failed ({command.description}): {result.stderr[-500:]}",
                result.stderr,
            )
        return

    _run_with_progress(args, command.description, timeout, on_progress, expected_duration)


def _run_with_progress(
    args: list[str],
    description: str,
    timeout: int,
    on_progress: Callable[[int], None],
    expected_duration: Optional[float],
) -> None:
    progress = FFmpegProgress(expected_duration)
    tail: deque[str] = deque(maxlen=40)

    # Text mode splits on "\r" as well, so each status update is its own line
    process = subprocess.Popen(
        args,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
    )

    # Reading stderr blocks until FFmpeg exits, so the deadline is enforced
    # by killing the process from a timer thread
    timed_out = threading.Event()

    def kill_on_timeout() -> None:
        timed_out.set()
        process.kill()

    timer = threading.Timer(timeout, kill_on_timeout)
    timer.daemon = True
    timer.start()
    try:
        for line in process.stderr:
            tail.append(line)
            percent = progress.feed(line)
            if percent is not None:
                on_progress(percent)
        returncode = process.wait()
    except BaseException:
        process.kill()
        process.wait()
        raise
    finally:
        timer.cancel()

    if timed_out.is_set():
        raise FFmpegError(f"FFmpeg timed out after {timeout}s ({description})", "".join(tail))

    stderr_tail = "".join(tail)
    if returncode != 0:
        logger.error(f"FFmpeg stderr: {stderr_tail[-1000:]}")
        raise FFmpegError(f"FFmpeg failed ({description}): {stderr_tail[-500:]}", stderr_tail)

    on_progress(100)


def probe_duration(path: Path, binary: str = "ffprobe") -> float:
    """Duration of a media file in seconds.

    Raises:
        FFmpegError: If ffprobe fails or reports no duration
    """
    cmd = [
        binary,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        str(path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, timeout=PROBE_TIMEOUT)
    if result.returncode != 0:
        raise FFmpegError(f"ffprobe failed for {path}: {result.stderr[:300]}", result.stderr)
    try:
        return float(json.loads(result.stdout)["format"]["duration"])
    except (ValueError, KeyError, TypeError) as e:
        raise FFmpegError(f"ffprobe returned no duration for {path}") from e


def probe_video_metadata(path: Path, binary: str = "ffprobe") -> dict:
    """Width, height and duration of the first video stream.

    Raises:
        FFmpegError: If ffprobe fails or the file has no video stream
    """
    cmd = [
        binary,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height:format=duration",
        "-of", "json",
        str(path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, timeout=PROBE_TIMEOUT)
    if result.returncode != 0:
        raise FFmpegError(f"ffprobe failed for {path}: {result.stderr[:300]}", result.stderr)

    data = json.loads(result.stdout or "{}")
    streams = data.get("streams") or []
    if not streams:
        raise FFmpegError(f"No video stream in {path}")

    return {
        "width": int(streams[0].get("width") or 0),
        "height": int(streams[0].get("height") or 0),
        "duration": float((data.get("format") or {}).get("duration") or 0.0),
    }
