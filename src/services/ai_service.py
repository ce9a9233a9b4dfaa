"""Gemini access for script writing and frame analysis using Google GenAI.

Calls are synchronous (the SDK client is blocking); async callers wrap them
in ``asyncio.to_thread``.
"""

import json
import logging
import re
from typing import Optional, Sequence

from google.genai import Client
from google.genai import types

from utils.retry import APIRateLimitError, NetworkError

logger = logging.getLogger(__name__)

# ```json ... ``` wrapper some replies come in
_CODE_FENCE = re.compile(r"^```[A-Za-z]*\s*(.*?)\s*```$", re.DOTALL)


class AIResponseError(Exception):
    """Raised when the model returns an empty or non-JSON response."""

    pass


class AIService:
    """Thin wrapper around the Gemini client returning parsed JSON."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash"):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key
            model_name: Gemini model to use
        """
        self.api_key = api_key
        self.model_name = model_name
        self.client = Client(api_key=api_key)

        logger.info(f"Initialized AI service with model: {model_name}")

    def generate_json(self, prompt: str, temperature: float = 0.7) -> dict:
        """Send a text prompt and parse the JSON object in the reply.

        Raises:
            AIResponseError: If the reply is empty or not a JSON object
            APIRateLimitError: On quota errors (retryable)
            NetworkError: On connection problems (retryable)
        """
        return self._generate(prompt, temperature)

    def analyze_images(
        self,
        prompt: str,
        images: Sequence[bytes],
        mime_type: str = "image/jpeg",
        temperature: float = 0.4,
    ) -> dict:
        """Send a prompt plus inline images and parse the JSON reply."""
        parts = [types.Part.from_bytes(data=image, mime_type=mime_type) for image in images]
        return self._generate([prompt, *parts], temperature)

    def _generate(self, contents, temperature: float) -> dict:
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=types.GenerateContentConfig(
                    temperature=temperature,
                    response_mime_type="application/json",
                ),
            )
        except Exception as e:
            message = str(e).lower()
            if "rate limit" in message or "429" in message or "resource_exhausted" in message:
                raise APIRateLimitError(f"Rate limit hit: {e}") from e
            if "network" in message or "connection" in message or "timed out" in message:
                raise NetworkError(f"Network error: {e}") from e
            raise

        return parse_json_response(response.text)


def parse_json_response(text: Optional[str]) -> dict:
    """Parse a model reply into a dict, tolerating markdown code fences."""
    if not text:
        raise AIResponseError("AI response is empty")

    cleaned = text.strip()
    fenced = _CODE_FENCE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug(f"Raw response: {text[:500]}")
        raise AIResponseError(f"Failed to parse AI JSON: {e}") from e

    if not isinstance(data, dict):
        raise AIResponseError(f"Expected a JSON object, got {type(data).__name__}")
    return data
