"""Download-once storage for stock footage clips.

A provider clip is downloaded into the shared clip cache directory at most
once. Later discoveries of the same provider ID only merge their search term
into the stored record. Records are written only after the file is on disk.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from models.generation import Orientation
from models.media import CachedFootageClip
from models.video import StockVideo
from services.record_store import RecordStore
from services.video_sources.base import VideoSource, VideoSourceError

logger = logging.getLogger(__name__)


def link_or_copy(source: Path, dest: Path) -> Path:
    """Hard-link ``source`` to ``dest``, copying when linking is not possible."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    if dest.exists():
        dest.unlink()
    try:
        os.link(source, dest)
    except OSError:
        shutil.copy2(source, dest)
    return dest


class FootageStore:
    """Shared cache of downloaded provider clips."""

    def __init__(
        self,
        record_store: RecordStore,
        provider: VideoSource,
        cache_dir: str | Path,
        quality: str = "hd",
    ):
        self.record_store = record_store
        self.provider = provider
        self.cache_dir = Path(cache_dir)
        self.quality = quality
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def cache_path_for(self, video: StockVideo) -> Path:
        return self.cache_dir / f"{video.source}_{video.provider_id}.mp4"

    async def fetch(
        self,
        video: StockVideo,
        search_term: Optional[str],
        orientation: Optional[Orientation],
    ) -> CachedFootageClip:
        """Return the cached clip for ``video``, downloading it if needed.

        Args:
            video: Provider search result
            search_term: Query that found the clip; merged into its term set
            orientation: Orientation the clip was searched for. None (an
                orientation-free search) derives it from the video dimensions.

        Raises:
            VideoSourceError: If the video has no downloadable mp4 rendition
        """
        existing = await self.record_store.get_clip(video.provider_id)
        if existing and Path(existing.file_path).exists():
            if search_term and search_term.lower() not in existing.search_terms:
                await self.record_store.add_search_term(video.provider_id, search_term)
                existing.search_terms.append(search_term.lower())
            logger.info(f"Using cached clip {video.provider_id}")
            return existing

        video_file = video.select_file(self.quality)
        if video_file is None:
            raise VideoSourceError(f"No mp4 rendition for video {video.provider_id}")

        cache_path = self.cache_path_for(video)
        if not cache_path.exists():
            await self.provider.download(video_file.link, cache_path)

        if orientation is None:
            orientation = Orientation.from_dimensions(
                video_file.width or video.width, video_file.height or video.height
            )

        clip = CachedFootageClip(
            provider_id=video.provider_id,
            source=video.source,
            file_path=str(cache_path),
            search_terms=[search_term] if search_term else [],
            duration=float(video.duration),
            orientation=orientation,
            quality=video_file.quality or self.quality,
            width=video_file.width or video.width,
            height=video_file.height or video.height,
        )
        return await self.record_store.save_clip(clip)

    async def link_into(self, source: str | Path, workspace: Path, name: str) -> Path:
        """Place a cached file into a job workspace without blocking the loop."""
        return await asyncio.to_thread(link_or_copy, Path(source), workspace / name)
