"""Stock footage providers used by the acquisition cascade."""

from services.video_sources.base import VideoSource, VideoSourceError
from services.video_sources.pexels import PexelsVideoSource

__all__ = ["VideoSource", "VideoSourceError", "PexelsVideoSource"]
