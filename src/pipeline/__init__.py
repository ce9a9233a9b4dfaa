"""Pipeline - prompt-to-video generation and media composition."""

from .caption_engine import build_subtitles, write_subtitles
from .ffmpeg import FFmpegCommand, FFmpegError, FFmpegInput
from .generator import GenerationError, VideoGenerator
from .script_generator import ScriptGenerationError, ScriptGenerator
from .video_composer import VideoComposer, VideoComposerError

__all__ = [
    "FFmpegCommand",
    "FFmpegInput",
    "FFmpegError",
    "build_subtitles",
    "write_subtitles",
    "ScriptGenerator",
    "ScriptGenerationError",
    "VideoComposer",
    "VideoComposerError",
    "VideoGenerator",
    "GenerationError",
]
