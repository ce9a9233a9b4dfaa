"""Narration audio with a fingerprint-keyed cache in front of speech synthesis."""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from services.tts_service import SpeechSynthesizer, voice_for_language
from utils.cache import VoiceoverCache, compute_fingerprint, truncate_narration

logger = logging.getLogger(__name__)


@dataclass
class NarrationResult:
    """Narration audio written into a job workspace."""

    path: Path
    fingerprint: str
    cache_hit: bool
    elapsed: float


class NarrationService:
    """Produces narration files, synthesizing each (text, language) pair once."""

    def __init__(self, synthesizer: SpeechSynthesizer, cache: VoiceoverCache):
        self.synthesizer = synthesizer
        self.cache = cache

    def is_configured(self) -> bool:
        return self.synthesizer.is_configured()

    async def synthesize(self, text: str, language: str, output_path: Path) -> NarrationResult:
        """Write narration audio for ``text`` to ``output_path``.

        A cached entry is copied out without calling the synthesizer. On a miss
        the audio is synthesized, written to ``output_path`` and only then
        stored in the cache.

        Raises:
            TTSServiceError: If synthesis fails
        """
        started = time.perf_counter()
        text = truncate_narration(text)
        fingerprint = compute_fingerprint(text, language)

        cached = self.cache.get(fingerprint)
        if cached is not None:
            await asyncio.to_thread(output_path.write_bytes, cached)
            elapsed = time.perf_counter() - started
            logger.info(f"Voiceover cache hit {fingerprint} ({elapsed * 1000:.0f}ms)")
            return NarrationResult(output_path, fingerprint, True, elapsed)

        audio = await self.synthesizer.synthesize(text, voice_for_language(language))
        await asyncio.to_thread(output_path.write_bytes, audio)
        self.cache.set(fingerprint, audio)

        elapsed = time.perf_counter() - started
        logger.info(f"Voiceover synthesized and cached {fingerprint} ({elapsed:.1f}s)")
        return NarrationResult(output_path, fingerprint, False, elapsed)
