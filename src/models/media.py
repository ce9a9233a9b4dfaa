"""Durable footage and media library records."""

from dataclasses import dataclass, field
from typing import List, Optional

from models.generation import Orientation


@dataclass
class CachedFootageClip:
    """A stock clip downloaded once and reused across jobs.

    ``search_terms`` only ever grows: every query that rediscovers the clip is
    merged into the stored set.
    """

    provider_id: int
    file_path: str
    search_terms: List[str] = field(default_factory=list)
    duration: float = 0.0
    orientation: Orientation = Orientation.LANDSCAPE
    quality: str = "hd"
    width: int = 0
    height: int = 0
    source: str = "pexels"
    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        return f"{self.source}:{self.provider_id}"


@dataclass
class MediaLibraryItem:
    """A user-curated clip, checked before any external fetch."""

    title: str
    file_path: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    orientation: Orientation = Orientation.LANDSCAPE
    duration: float = 0.0
    width: int = 0
    height: int = 0
    source: str = "upload"
    thumbnail_path: Optional[str] = None
    file_size: int = 0
    mime_type: Optional[str] = None
    ai_analysis: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        self.tags = normalize_tags(self.tags)

    @property
    def dedup_key(self) -> str:
        return f"media:{self.id}"

    @property
    def search_terms(self) -> List[str]:
        """Terms matched by the term-scored cache: tags plus title/description words."""
        words = f"{self.title} {self.description}".lower().split()
        terms = list(self.tags)
        for word in words:
            # Short words would match almost any query token by containment
            if len(word) > 2 and word not in terms:
                terms.append(word)
        return terms


def normalize_tags(tags: List[str]) -> List[str]:
    """Lowercase, strip and deduplicate tags, keeping first-seen order."""
    normalized: List[str] = []
    for tag in tags:
        value = str(tag).strip().lower()
        if value and value not in normalized:
            normalized.append(value)
    return normalized
