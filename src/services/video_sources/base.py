"""Base abstraction for stock footage sources."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from models.generation import Orientation
from models.video import StockVideo


class VideoSourceError(Exception):
    """Raised when a stock footage provider returns an unusable response."""

    pass


class VideoSource(ABC):
    """Abstract base class for stock footage providers (Pexels, Pixabay, etc.)."""

    @abstractmethod
    async def search(
        self,
        query: str,
        orientation: Optional[Orientation] = None,
        max_duration: Optional[int] = None,
        per_page: int = 10,
    ) -> list[StockVideo]:
        """Search for videos matching the query.

        Args:
            query: Search query string
            orientation: Restrict results to this orientation (None for any)
            max_duration: Drop results longer than this many seconds
            per_page: Number of results requested from the provider

        Returns:
            Ranked list of StockVideo results
        """

    @abstractmethod
    async def download(self, url: str, dest: Path) -> Path:
        """Download a video file to ``dest`` and return the path."""

    @abstractmethod
    def get_source_name(self) -> str:
        """Get the name of this video source.

        Returns:
            Source name (e.g., "pexels")
        """

    def is_configured(self) -> bool:
        """Check if this source has required configuration (API keys, etc.).

        Default implementation returns True (no config required).
        Override in subclasses that require API keys.
        """
        return True
