"""Durable voiceover cache keyed by narration fingerprint.

Synthesized speech is stored once per (narration text, language) pair so an
identical request never pays for synthesis again. Entries never expire and
are never evicted.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from diskcache import Cache

logger = logging.getLogger(__name__)

# Speech providers reject longer inputs; the fingerprint is taken after truncation
MAX_NARRATION_CHARS = 4096


def truncate_narration(text: str) -> str:
    """Clip narration text to the synthesis length cap."""
    return text[:MAX_NARRATION_CHARS]


def compute_fingerprint(text: str, language: str) -> str:
    """Compute the voiceover cache key for a narration.

    Args:
        text: Narration text (truncated to the synthesis cap before hashing)
        language: Language code, e.g. "en" or "id"

    Returns:
        MD5 hex digest of ``"{text}_{language}"``
    """
    combined = f"{truncate_narration(text)}_{language}"
    return hashlib.md5(combined.encode("utf-8")).hexdigest()


class VoiceoverCache:
    """Disk-backed store of synthesized narration audio.

    Example usage:
        cache = VoiceoverCache(".cache/voiceover")
        fingerprint = compute_fingerprint(text, "en")

        audio = cache.get(fingerprint)
        if audio is None:
            audio = synthesize(text)
            cache.set(fingerprint, audio)
    """

    def __init__(self, cache_dir: str, max_size_gb: float = 1.0):
        """Initialize voiceover cache.

        Args:
            cache_dir: Directory for cache storage
            max_size_gb: Advisory size limit in GB. Entries are never evicted,
                so the limit only shows up in stats.
        """
        self.cache_dir = Path(cache_dir)
        self.max_size_gb = max_size_gb
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        # Statistics tracking
        self.hits = 0
        self.misses = 0

        self.cache = Cache(
            str(self.cache_dir),
            size_limit=int(max_size_gb * 1024 * 1024 * 1024),
            eviction_policy="none",
        )

        logger.info(f"Initialized voiceover cache at {cache_dir}")

    def get(self, fingerprint: str) -> Optional[bytes]:
        """Return cached audio bytes for a fingerprint, or None on a miss."""
        try:
            cached_value = self.cache.get(fingerprint)
        except Exception as e:
            logger.warning(f"Voiceover cache read error: {e}")
            cached_value = None

        if cached_value is None:
            self.misses += 1
            return None

        self.hits += 1
        return cached_value

    def set(self, fingerprint: str, audio: bytes) -> None:
        """Store audio bytes under a fingerprint.

        diskcache writes are atomic, so two jobs racing on the same
        fingerprint both leave a complete entry behind.
        """
        if not audio:
            return
        try:
            self.cache.set(fingerprint, audio)
            logger.debug(f"Cached voiceover {fingerprint} ({len(audio)} bytes)")
        except Exception as e:
            logger.warning(f"Voiceover cache write error: {e}")

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self.cache

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "entry_count": len(self.cache),
            "size_mb": round(self.cache.volume() / (1024 * 1024), 2),
            "max_size_gb": self.max_size_gb,
            "cache_dir": str(self.cache_dir),
        }

    def close(self) -> None:
        """Close the cache and release resources."""
        self.cache.close()
