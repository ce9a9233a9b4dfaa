"""TTS Service - HTTP client for speech synthesis via an OpenAI-compatible API."""

import logging
import os

import httpx

from utils.retry import APIRateLimitError, NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "tts-1"

# Voice per narration language
VOICES = {
    "id": "nova",
    "en": "alloy",
}
DEFAULT_VOICE = "alloy"


class TTSServiceError(Exception):
    """Error from TTS service."""

    pass


def voice_for_language(language: str) -> str:
    """Pick the synthesis voice for a narration language."""
    return VOICES.get(language, DEFAULT_VOICE)


class SpeechSynthesizer:
    """HTTP client for the ``/audio/speech`` endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.model = model
        # Long timeout for synthesis of long narrations
        self.client = httpx.AsyncClient(timeout=120.0)

    def is_configured(self) -> bool:
        """Check if the service is configured."""
        return bool(self.api_key)

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    @retry_api_call(max_retries=3, base_delay=1.0)
    async def synthesize(self, text: str, voice: str = DEFAULT_VOICE) -> bytes:
        """Synthesize speech as mp3 bytes.

        Args:
            text: Text to speak
            voice: Provider voice name

        Returns:
            Audio bytes (mp3)

        Raises:
            TTSServiceError: If the service is not configured or synthesis fails
        """
        if not self.api_key:
            raise TTSServiceError("OPENAI_API_KEY not configured")
        if not text.strip():
            raise TTSServiceError("Cannot synthesize empty text")

        logger.info(f"Synthesizing speech: {len(text)} chars, voice={voice}")

        try:
            response = await self.client.post(
                f"{self.base_url}/audio/speech",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "voice": voice,
                    "input": text,
                    "response_format": "mp3",
                },
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Speech synthesis timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Speech synthesis request failed: {e}") from e

        if response.status_code == 429:
            raise APIRateLimitError("Speech synthesis rate limit exceeded")
        if response.status_code >= 500:
            raise TemporaryServiceError(
                f"Speech synthesis returned status {response.status_code}"
            )
        if response.status_code != 200:
            raise TTSServiceError(
                f"Speech synthesis failed ({response.status_code}): {response.text[:200]}"
            )

        audio = response.content
        if self.detect_audio_format(audio) == "bin":
            raise TTSServiceError("Speech synthesis returned unrecognized audio data")

        logger.info(f"Speech synthesized: {len(audio)} bytes")
        return audio

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
