"""Stock footage search result models."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class StockVideoFile:
    """One downloadable rendition of a stock video."""

    link: str
    quality: Optional[str] = None  # hd, sd, uhd
    file_type: str = "video/mp4"
    width: int = 0
    height: int = 0

    @property
    def is_mp4(self) -> bool:
        return self.file_type == "video/mp4"


@dataclass
class StockVideo:
    """Represents a video search result from a stock footage provider."""

    provider_id: int
    url: str
    duration: int  # in seconds
    width: int = 0
    height: int = 0
    files: List[StockVideoFile] = field(default_factory=list)
    source: str = "pexels"
    author: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        return f"{self.source}:{self.provider_id}"

    def select_file(self, quality: str = "hd") -> Optional[StockVideoFile]:
        """Pick the rendition to download.

        Prefers the requested quality as mp4, then SD mp4, then any mp4.
        """
        mp4_files = [f for f in self.files if f.is_mp4]
        for wanted in (quality, "sd"):
            for video_file in mp4_files:
                if video_file.quality == wanted:
                    return video_file
        return mp4_files[0] if mp4_files else None
