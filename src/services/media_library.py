"""Media library ingest: store uploaded clips with searchable metadata.

Uploaded files are moved into the media directory, probed for dimensions and
duration, sampled into a few frames and described by the vision model. The
resulting title, description and tags feed the media library tier of the
footage cascade.
"""

import asyncio
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, Optional

from models.generation import Orientation
from models.media import MediaLibraryItem, normalize_tags
from pipeline.ffmpeg import FFmpegCommand, FFmpegError, FFmpegInput, probe_video_metadata, run_ffmpeg
from services.prompts import MEDIA_ANALYZER_V1
from services.record_store import RecordStore
from utils.config import get_supported_video_formats

logger = logging.getLogger(__name__)

FRAME_COUNT = 4
FRAME_WIDTH = 640
DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720
DEGRADED_TAGS = ["video", "uploaded"]


class MediaLibraryError(Exception):
    """Raised when a file cannot be added to or removed from the library."""

    pass


def frame_timestamps(duration: float, count: int = FRAME_COUNT) -> list[float]:
    """Evenly spaced sample points that avoid the first and last frame."""
    if duration <= 0:
        return [0.0]
    interval = duration / (count + 1)
    return [interval * (i + 1) for i in range(count)]


def safe_filename(name: str) -> str:
    cleaned = "".join(c if c.isalnum() or c in "._-" else "_" for c in Path(name).name)
    return cleaned.strip("._") or "upload"


class MediaLibraryService:
    """Adds, edits and removes media library items."""

    def __init__(
        self,
        record_store: RecordStore,
        media_dir: str | Path,
        ai_service=None,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
    ):
        self.record_store = record_store
        self.media_dir = Path(media_dir)
        self.thumbnail_dir = self.media_dir / "thumbnails"
        self.ai = ai_service
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary

        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.thumbnail_dir.mkdir(parents=True, exist_ok=True)

    async def ingest(
        self,
        source_path: str | Path,
        original_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        title: Optional[str] = None,
    ) -> MediaLibraryItem:
        """Move a file into the library and create its record.

        Args:
            source_path: Uploaded file; it is moved, not copied
            original_name: Name the user uploaded the file under
            mime_type: Content type reported by the client
            title: Optional title hint for the analysis

        Raises:
            MediaLibraryError: If the file is missing or not a supported video
        """
        source = Path(source_path)
        name = original_name or source.name
        if not source.is_file():
            raise MediaLibraryError(f"File not found: {source}")
        if Path(name).suffix.lower() not in get_supported_video_formats():
            raise MediaLibraryError(f"Unsupported video format: {name}")

        dest = self.media_dir / f"{uuid.uuid4().hex[:8]}_{safe_filename(name)}"
        await asyncio.to_thread(shutil.move, str(source), str(dest))
        logger.info(f"Stored upload {name} as {dest.name}")

        metadata = await self._probe(dest)
        frames = await self._extract_frames(dest, metadata["duration"])

        thumbnail_path = None
        if frames:
            thumbnail = self.thumbnail_dir / f"{dest.stem}.jpg"
            thumbnail.write_bytes(frames[0])
            thumbnail_path = str(thumbnail)

        analysis = await self._analyze(frames, title or Path(name).stem)

        item = MediaLibraryItem(
            title=analysis["title"],
            description=analysis["description"],
            tags=analysis["tags"],
            ai_analysis=analysis["analysis"],
            file_path=str(dest),
            thumbnail_path=thumbnail_path,
            orientation=Orientation.from_dimensions(metadata["width"], metadata["height"]),
            duration=metadata["duration"],
            width=metadata["width"],
            height=metadata["height"],
            file_size=dest.stat().st_size,
            mime_type=mime_type,
        )
        return await self.record_store.create_media_item(item)

    async def update_item(self, item_id: int, **fields: Any) -> MediaLibraryItem:
        """Edit title, description or tags of an item.

        Raises:
            MediaLibraryError: If the item does not exist
        """
        item = await self.record_store.update_media_item(item_id, **fields)
        if item is None:
            raise MediaLibraryError(f"Media item {item_id} not found")
        return item

    async def delete_item(self, item_id: int) -> None:
        """Remove an item's files and its record.

        Raises:
            MediaLibraryError: If the item does not exist
        """
        item = await self.record_store.get_media_item(item_id)
        if item is None:
            raise MediaLibraryError(f"Media item {item_id} not found")

        for path in (item.file_path, item.thumbnail_path):
            if path:
                Path(path).unlink(missing_ok=True)
        await self.record_store.delete_media_item(item_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _probe(self, path: Path) -> dict:
        try:
            return await asyncio.to_thread(probe_video_metadata, path, self.ffprobe_binary)
        except (FFmpegError, OSError) as e:
            logger.warning(f"Could not probe {path.name}, using defaults: {e}")
            return {"width": DEFAULT_WIDTH, "height": DEFAULT_HEIGHT, "duration": 0.0}

    def build_frame_command(self, video_path: Path, timestamp: float, output_path: Path) -> FFmpegCommand:
        return FFmpegCommand(
            inputs=[FFmpegInput(video_path, ["-ss", f"{timestamp:.3f}"])],
            output=output_path,
            video_filters=[f"scale={FRAME_WIDTH}:-2"],
            output_options=["-frames:v", "1", "-q:v", "3"],
            description=f"sample frame at {timestamp:.1f}s",
            binary=self.ffmpeg_binary,
        )

    async def _extract_frames(self, video_path: Path, duration: float) -> list[bytes]:
        frames: list[bytes] = []
        with tempfile.TemporaryDirectory(prefix="frames_") as tmp:
            for i, timestamp in enumerate(frame_timestamps(duration)):
                output = Path(tmp) / f"frame_{i}.jpg"
                try:
                    await asyncio.to_thread(
                        run_ffmpeg, self.build_frame_command(video_path, timestamp, output), 60
                    )
                except FFmpegError as e:
                    logger.warning(f"Frame extraction failed at {timestamp:.1f}s: {e}")
                    continue
                if output.exists():
                    frames.append(output.read_bytes())
        return frames

    async def _analyze(self, frames: list[bytes], title_hint: str) -> dict:
        if not frames:
            return _degraded_analysis(title_hint, "Unable to analyze video content")
        if self.ai is None:
            return _degraded_analysis(title_hint, "AI analysis unavailable")

        prompt = MEDIA_ANALYZER_V1.format(
            filename_hint=f'The original file name is "{title_hint}".'
        )
        try:
            data = await asyncio.to_thread(self.ai.analyze_images, prompt, frames)
        except Exception as e:
            logger.warning(f"Media analysis failed for '{title_hint}': {e}")
            return _degraded_analysis(title_hint, "AI analysis unavailable")

        tags = data.get("tags")
        return {
            "title": str(data.get("title") or title_hint).strip()[:50],
            "description": str(data.get("description") or "").strip(),
            "tags": normalize_tags(tags) if isinstance(tags, list) and tags else list(DEGRADED_TAGS),
            "analysis": str(data.get("analysis") or "").strip() or None,
        }


def _degraded_analysis(title: str, description: str) -> dict:
    return {
        "title": title,
        "description": description,
        "tags": list(DEGRADED_TAGS),
        "analysis": None,
    }
