"""Music Service - mood-keyed background tracks, downloaded once and reused."""

import asyncio
import logging
import os
import uuid
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

MOOD_TRACKS = {
    "epic": "https://cdn.pixabay.com/download/audio/2022/01/18/audio_d0a13f69d2.mp3",
    "lofi": (
        "https://files.freemusicarchive.org/storage-freemusicarchive-org/music/WFMU/"
        "Broke_For_Free/Directionless_EP/Broke_For_Free_-_01_-_Night_Owl.mp3"
    ),
    "upbeat": (
        "https://files.freemusicarchive.org/storage-freemusicarchive-org/music/no_curator/"
        "Tours/Enthusiast/Tours_-_01_-_Enthusiast.mp3"
    ),
    "dark": "https://cdn.pixabay.com/download/audio/2022/08/02/audio_884fe92c21.mp3",
    "ambient": "https://ia801603.us.archive.org/21/items/ambient-music-collection/Ambient_01.mp3",
}
DEFAULT_MOOD = "ambient"


class MusicServiceError(Exception):
    """Error from Music service."""

    pass


def resolve_mood(mood: str | None) -> str:
    """Map a requested mood onto the closed mood set."""
    mood = (mood or "").strip().lower()
    return mood if mood in MOOD_TRACKS else DEFAULT_MOOD


class MusicService:
    """Local cache of one background track per mood."""

    def __init__(self, music_dir: str | Path):
        """Initialize Music service.

        Args:
            music_dir: Directory holding ``<mood>.mp3`` files
        """
        self.music_dir = Path(music_dir)
        self.music_dir.mkdir(parents=True, exist_ok=True)
        self.client = httpx.AsyncClient(timeout=120.0, follow_redirects=True)

    def track_path(self, mood: str) -> Path:
        return self.music_dir / f"{resolve_mood(mood)}.mp3"

    async def get_track(self, mood: str | None) -> Path:
        """Return the local track for ``mood``, downloading it on first use.

        Unknown moods resolve to ``ambient``.

        Raises:
            MusicServiceError: If the track is not cached and the download fails
        """
        mood = resolve_mood(mood)
        path = self.track_path(mood)
        if path.exists() and path.stat().st_size > 0:
            logger.debug(f"Music track '{mood}' already cached")
            return path

        url = MOOD_TRACKS[mood]
        logger.info(f"Downloading music track: {mood}")
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise MusicServiceError(f"Failed to download {mood} music: {e}") from e

        if not response.content:
            raise MusicServiceError(f"Empty response downloading {mood} music")

        # Unique temp name so concurrent downloads of one mood never interleave
        part_path = path.with_name(f"{path.name}.{uuid.uuid4().hex[:8]}.part")
        try:
            await asyncio.to_thread(part_path.write_bytes, response.content)
            os.replace(part_path, path)
        finally:
            part_path.unlink(missing_ok=True)

        logger.info(f"Cached music track '{mood}' ({len(response.content)} bytes)")
        return path

    async def prefetch_all(self) -> dict[str, bool]:
        """Download every mood track that is not cached yet.

        Returns:
            Mapping of mood to whether a track is now available
        """
        available = {}
        for mood in MOOD_TRACKS:
            try:
                await self.get_track(mood)
                available[mood] = True
            except MusicServiceError as e:
                logger.error(str(e))
                available[mood] = False
        return available

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
