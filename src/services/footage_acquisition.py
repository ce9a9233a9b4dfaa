"""Tiered footage acquisition for generation jobs.

Each scene query walks an ordered list of tiers and stops at the first hit:

1. Media library: curated uploads, copied into the workspace
2. Footage cache: previously downloaded clips with the same orientation
3. Remote search: the stock provider, with progressively broader queries
4. Cross-orientation cache: any cached clip, either orientation
5. Emergency fetch: fresh downloads for a few generic terms, any orientation

Every tier shares the contract ``acquire(query, orientation, used_ids,
workspace) -> FootageHit | None``. ``used_ids`` holds the dedup keys already
taken by the job; a tier claims a key before its first await so concurrently
resolved scenes never pick the same clip.
"""

import asyncio
import contextlib
import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from models.generation import Orientation
from services.footage_store import FootageStore
from services.record_store import RecordStore
from services.video_sources.base import VideoSource
from utils.retry import ConfigurationError

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    ["the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"]
)

FALLBACK_QUERIES = [
    "nature",
    "city",
    "technology",
    "abstract",
    "sky",
    "ocean",
    "business",
    "people walking",
    "traffic",
    "clouds",
]

EMERGENCY_QUERIES = ["nature", "sky", "water", "city", "abstract"]

MAX_CLIP_DURATION = 30
REMOTE_RESULTS_PER_QUERY = 10
EMERGENCY_RESULTS_PER_QUERY = 5
CACHE_MATCH_LIMIT = 5
CROSS_ORIENTATION_LIMIT = 20
MAX_WORD_QUERIES = 3


class FootageAcquisitionError(Exception):
    """Raised when no scene of a job could be resolved to footage."""

    def __init__(self, message: str, notices: Optional[List[str]] = None):
        super().__init__(message)
        self.notices = notices or []


@dataclass
class FootageHit:
    """A clip placed in the job workspace by one tier."""

    path: Path
    key: str
    tier: str
    from_cache: bool = False
    from_library: bool = False


@dataclass
class AcquisitionResult:
    """Outcome of resolving every scene of a job."""

    paths: List[Path] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)
    hits: List[FootageHit] = field(default_factory=list)

    @property
    def from_cache(self) -> int:
        return sum(1 for hit in self.hits if hit.from_cache)

    @property
    def from_library(self) -> int:
        return sum(1 for hit in self.hits if hit.from_library)


def simplify_query(query: str) -> str:
    """Strip stop words and short words, keep the first two remaining words."""
    words = [w for w in query.lower().split() if w not in STOP_WORDS and len(w) > 2]
    return " ".join(words[:2])


def build_search_queries(query: str) -> List[str]:
    """Remote search queries for a scene, most specific first, deduplicated."""
    words = [w for w in query.lower().split() if len(w) > 2]
    candidates = [query, simplify_query(query), *words[:MAX_WORD_QUERIES], *FALLBACK_QUERIES]

    queries: List[str] = []
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate.lower() not in (q.lower() for q in queries):
            queries.append(candidate)
    return queries


@contextlib.contextmanager
def claim(used_ids: set, key: str):
    """Reserve a dedup key; the reservation is dropped if the block fails."""
    used_ids.add(key)
    succeeded = False
    try:
        yield
        succeeded = True
    finally:
        if not succeeded:
            used_ids.discard(key)


class FootageTier(ABC):
    """One strategy level of the acquisition cascade."""

    name = "tier"

    @abstractmethod
    async def acquire(
        self,
        query: str,
        orientation: Orientation,
        used_ids: set,
        workspace: Path,
    ) -> Optional[FootageHit]:
        """Place one clip for ``query`` into ``workspace``, or return None."""


class MediaLibraryTier(FootageTier):
    """Curated uploads matched by the term-scored cache."""

    name = "media_library"

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    async def acquire(self, query, orientation, used_ids, workspace):
        items = await self.record_store.search_media_items(query, orientation, CACHE_MATCH_LIMIT)
        for item in items:
            source = Path(item.file_path)
            if item.dedup_key in used_ids or not source.exists():
                continue
            dest = workspace / f"library_{item.id}_{source.name}"
            with claim(used_ids, item.dedup_key):
                await asyncio.to_thread(shutil.copy2, source, dest)
            logger.info(f"Media library hit for '{query}': {item.title}")
            return FootageHit(dest, item.dedup_key, self.name, from_library=True)
        return None


class CachedFootageTier(FootageTier):
    """Previously downloaded clips with the requested orientation."""

    name = "footage_cache"

    def __init__(self, record_store: RecordStore, footage_store: FootageStore):
        self.record_store = record_store
        self.footage_store = footage_store

    async def acquire(self, query, orientation, used_ids, workspace):
        clips = await self.record_store.find_clips(query, orientation, CACHE_MATCH_LIMIT)
        for clip in clips:
            if clip.dedup_key in used_ids or not Path(clip.file_path).exists():
                continue
            with claim(used_ids, clip.dedup_key):
                path = await self.footage_store.link_into(
                    clip.file_path, workspace, f"cached_{clip.provider_id}.mp4"
                )
            await self.record_store.add_search_term(clip.provider_id, query)
            logger.info(f"Footage cache hit for '{query}': clip {clip.provider_id}")
            return FootageHit(path, clip.dedup_key, self.name, from_cache=True)
        return None


class RemoteSearchTier(FootageTier):
    """Stock provider search, widening the query until something downloads."""

    name = "remote_search"
    results_per_query = REMOTE_RESULTS_PER_QUERY

    def __init__(
        self,
        provider: VideoSource,
        footage_store: FootageStore,
        max_duration: int = MAX_CLIP_DURATION,
    ):
        self.provider = provider
        self.footage_store = footage_store
        self.max_duration = max_duration

    def search_queries(self, query: str) -> List[str]:
        return build_search_queries(query)

    def search_orientation(self, orientation: Orientation) -> Optional[Orientation]:
        return orientation

    async def acquire(self, query, orientation, used_ids, workspace):
        for search_query in self.search_queries(query):
            try:
                videos = await self.provider.search(
                    search_query,
                    orientation=self.search_orientation(orientation),
                    max_duration=self.max_duration,
                    per_page=self.results_per_query,
                )
            except Exception as e:
                logger.warning(f"[{self.name}] Search failed for '{search_query}': {e}")
                continue

            for video in videos:
                if video.dedup_key in used_ids:
                    continue
                try:
                    with claim(used_ids, video.dedup_key):
                        clip = await self.footage_store.fetch(
                            video,
                            self.term_for(query, search_query),
                            self.search_orientation(orientation),
                        )
                        path = await self.footage_store.link_into(
                            clip.file_path, workspace, Path(clip.file_path).name
                        )
                except Exception as e:
                    logger.warning(
                        f"[{self.name}] Could not fetch video {video.provider_id}: {e}"
                    )
                    continue

                logger.info(
                    f"[{self.name}] '{query}' resolved via '{search_query}' "
                    f"(video {video.provider_id})"
                )
                return FootageHit(path, video.dedup_key, self.name)
        return None

    def term_for(self, query: str, search_query: str) -> str:
        # The scene query is stored so a repeat of the same scene hits the cache tier
        return query


class CrossOrientationTier(FootageTier):
    """Any cached clip, requested orientation first, then the opposite one."""

    name = "cross_orientation_cache"

    def __init__(self, record_store: RecordStore, footage_store: FootageStore):
        self.record_store = record_store
        self.footage_store = footage_store

    async def acquire(self, query, orientation, used_ids, workspace):
        for candidate_orientation in (orientation, orientation.opposite):
            clips = await self.record_store.list_clips(
                candidate_orientation, CROSS_ORIENTATION_LIMIT
            )
            for clip in clips:
                if clip.dedup_key in used_ids or not Path(clip.file_path).exists():
                    continue
                with claim(used_ids, clip.dedup_key):
                    path = await self.footage_store.link_into(
                        clip.file_path, workspace, f"fallback_{clip.provider_id}.mp4"
                    )
                logger.info(
                    f"Using fallback clip {clip.provider_id} "
                    f"({candidate_orientation.value}) for '{query}'"
                )
                return FootageHit(path, clip.dedup_key, self.name, from_cache=True)
        return None


class EmergencyTier(RemoteSearchTier):
    """Fresh downloads for guaranteed-safe generic terms, ignoring orientation."""

    name = "emergency_fetch"
    results_per_query = EMERGENCY_RESULTS_PER_QUERY

    def search_queries(self, query: str) -> List[str]:
        return list(EMERGENCY_QUERIES)

    def search_orientation(self, orientation: Orientation) -> Optional[Orientation]:
        return None

    def term_for(self, query: str, search_query: str) -> str:
        return search_query


class FootageAcquisitionCascade:
    """Resolves scene queries to workspace clip paths through ordered tiers.

    Args:
        tiers: Tiers in priority order
        provider: Remote provider, checked for credentials before any lookup
        tier_timeout: Upper bound in seconds for a single tier attempt
    """

    def __init__(
        self,
        tiers: Sequence[FootageTier],
        provider: VideoSource,
        tier_timeout: float = 120.0,
    ):
        self.tiers = list(tiers)
        self.provider = provider
        self.tier_timeout = tier_timeout

    @classmethod
    def build(
        cls,
        record_store: RecordStore,
        provider: VideoSource,
        footage_store: FootageStore,
        tier_timeout: float = 120.0,
        max_duration: int = MAX_CLIP_DURATION,
    ) -> "FootageAcquisitionCascade":
        """Create the standard five-tier cascade."""
        tiers = [
            MediaLibraryTier(record_store),
            CachedFootageTier(record_store, footage_store),
            RemoteSearchTier(provider, footage_store, max_duration),
            CrossOrientationTier(record_store, footage_store),
            EmergencyTier(provider, footage_store, max_duration),
        ]
        return cls(tiers, provider, tier_timeout)

    def ensure_configured(self) -> None:
        """Raise before any network call when the provider has no credentials.

        Raises:
            ConfigurationError: If the provider is not configured
        """
        if not self.provider.is_configured():
            raise ConfigurationError(
                f"{self.provider.get_source_name().upper()}_API_KEY is not set"
            )

    async def acquire(
        self,
        queries: Sequence[str],
        orientation: Orientation,
        workspace: Path,
        used_ids: Optional[set] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> AcquisitionResult:
        """Resolve every query to at most one clip, concurrently.

        Scenes that exhaust all tiers are skipped with a notice. Paths keep the
        order of ``queries``.

        Raises:
            ConfigurationError: If the provider is not configured
        """
        self.ensure_configured()
        orientation = Orientation(orientation)
        used_ids = used_ids if used_ids is not None else set()

        hits = await asyncio.gather(
            *(self.acquire_one(q, orientation, used_ids, workspace) for q in queries)
        )

        result = AcquisitionResult()
        for index, (query, hit) in enumerate(zip(queries, hits), start=1):
            if hit is None:
                notice = f'No footage found for: "{query}"'
                result.notices.append(notice)
                logger.warning(notice)
                if on_progress:
                    on_progress(f"Scene {index}/{len(queries)}: no footage found")
                continue
            result.hits.append(hit)
            result.paths.append(hit.path)
            if on_progress:
                on_progress(f"Scene {index}/{len(queries)}: found via {hit.tier}")

        logger.info(
            f"Acquired {len(result.paths)}/{len(queries)} clips "
            f"({result.from_library} library, {result.from_cache} cached)"
        )
        return result

    async def acquire_one(
        self,
        query: str,
        orientation: Orientation,
        used_ids: set,
        workspace: Path,
    ) -> Optional[FootageHit]:
        """Walk the tiers for one query; failures inside a tier never escape."""
        for tier in self.tiers:
            try:
                hit = await asyncio.wait_for(
                    tier.acquire(query, orientation, used_ids, workspace),
                    timeout=self.tier_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"[{tier.name}] Timed out after {self.tier_timeout}s for '{query}'")
                continue
            except Exception as e:
                logger.warning(f"[{tier.name}] Failed for '{query}': {e}")
                continue

            if hit is not None:
                return hit
        return None
