"""Pexels video source for royalty-free stock footage."""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiohttp

from models.generation import Orientation
from models.video import StockVideo, StockVideoFile
from services.video_sources.base import VideoSource, VideoSourceError
from utils.retry import (
    APIRateLimitError,
    ConfigurationError,
    NetworkError,
    TemporaryServiceError,
    retry_api_call,
)

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT_SECONDS = 30
DOWNLOAD_TIMEOUT_SECONDS = 300
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class PexelsVideoSource(VideoSource):
    """Pexels video source.

    API Documentation: https://www.pexels.com/api/documentation/

    To get an API key:
    1. Create a free account at https://www.pexels.com
    2. Go to https://www.pexels.com/api/new/ to generate an API key
    """

    BASE_URL = "https://api.pexels.com/videos/search"

    def __init__(self, api_key: Optional[str] = None):
        """Initialize Pexels video source.

        Args:
            api_key: Pexels API key. Falls back to the PEXELS_API_KEY env var.
        """
        self.api_key = api_key if api_key is not None else os.getenv("PEXELS_API_KEY", "")

        if not self.api_key:
            logger.warning(
                "[Pexels] No API key configured. Set PEXELS_API_KEY to enable footage search."
            )

    def get_source_name(self) -> str:
        return "pexels"

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @retry_api_call(max_retries=3, base_delay=1.0)
    async def search(
        self,
        query: str,
        orientation: Optional[Orientation] = None,
        max_duration: Optional[int] = None,
        per_page: int = 10,
    ) -> list[StockVideo]:
        """Search Pexels for videos matching the query.

        Raises:
            ConfigurationError: If no API key is configured
            APIRateLimitError: On HTTP 429 (retried)
            TemporaryServiceError: On HTTP 5xx (retried)
            NetworkError: On connection failures (retried)
            VideoSourceError: On any other non-200 response
        """
        if not self.api_key:
            raise ConfigurationError("PEXELS_API_KEY is not set")

        if not query.strip():
            return []

        headers = {"Authorization": self.api_key}
        params = {"query": query, "per_page": str(min(per_page, 80))}
        if orientation is not None:
            params["orientation"] = Orientation(orientation).value
        if max_duration is not None:
            params["max_duration"] = str(max_duration)

        logger.info(f"[Pexels] Searching for: '{query}' ({params.get('orientation', 'any')})")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.BASE_URL,
                    headers=headers,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=SEARCH_TIMEOUT_SECONDS),
                ) as response:
                    if response.status == 429:
                        logger.warning("[Pexels] Rate limit exceeded")
                        raise APIRateLimitError("Pexels rate limit exceeded")

                    if response.status >= 500:
                        raise TemporaryServiceError(
                            f"Pexels API returned status {response.status}"
                        )

                    if response.status != 200:
                        raise VideoSourceError(
                            f"Pexels API returned status {response.status}"
                        )

                    data = await response.json()

        except aiohttp.ClientError as e:
            logger.error(f"[Pexels] Network error: {e}")
            raise NetworkError(f"Pexels network error: {e}") from e

        results = []
        for video in data.get("videos", []):
            result = self._parse_video(video)
            if result is None:
                continue
            # The API treats max_duration as a hint; enforce it here too
            if max_duration is not None and result.duration > max_duration:
                continue
            results.append(result)

        logger.info(f"[Pexels] Found {len(results)} videos for '{query}'")
        return results

    async def download(self, url: str, dest: Path) -> Path:
        """Stream a video file to ``dest``.

        Bytes are written to a unique temporary file next to ``dest`` and
        renamed into place only once the download completed, so a reader
        never observes a partial file.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        part_path = dest.with_name(f"{dest.name}.{uuid.uuid4().hex[:8]}.part")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=DOWNLOAD_TIMEOUT_SECONDS)
                ) as response:
                    if response.status != 200:
                        raise VideoSourceError(
                            f"Download failed with status {response.status}: {url}"
                        )
                    with open(part_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)

            os.replace(part_path, dest)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Pexels download error: {e}") from e
        finally:
            part_path.unlink(missing_ok=True)

        logger.info(f"[Pexels] Downloaded {dest.name}")
        return dest

    def _parse_video(self, video: dict) -> Optional[StockVideo]:
        """Parse a Pexels API video entry into a StockVideo.

        Returns:
            StockVideo or None if the entry has no id or no files
        """
        video_id = video.get("id")
        if not video_id:
            return None

        files = [
            StockVideoFile(
                link=f.get("link", ""),
                quality=f.get("quality"),
                file_type=f.get("file_type", ""),
                width=f.get("width") or 0,
                height=f.get("height") or 0,
            )
            for f in video.get("video_files", [])
            if f.get("link")
        ]
        if not files:
            return None

        return StockVideo(
            provider_id=int(video_id),
            url=video.get("url", f"https://www.pexels.com/video/{video_id}/"),
            duration=int(video.get("duration") or 0),
            width=video.get("width") or 0,
            height=video.get("height") or 0,
            files=files,
            source=self.get_source_name(),
            author=(video.get("user") or {}).get("name"),
        )
