"""Script generator for prompt-to-video generation.

Uses Gemini AI to turn a prompt into a title, a narration and 3-5 footage
scenes, producing a ScriptResult.
"""

import logging

from models.generation import Scene, ScriptResult
from services.ai_service import AIResponseError
from services.prompts.script_generation import LANGUAGE_INSTRUCTIONS, SHORT_VIDEO_SCRIPT_V1
from utils.retry import retry_api_call

logger = logging.getLogger(__name__)

MAX_SCENES = 5


class ScriptGenerationError(Exception):
    """Raised when the model reply cannot be turned into a usable script."""

    pass


class ScriptGenerator:
    """Generates short video scripts from prompts using Gemini AI.

    Takes an existing AIService instance for Gemini API access.
    """

    def __init__(self, ai_service, max_scenes: int = MAX_SCENES):
        """Initialize with an AIService instance.

        Args:
            ai_service: Configured AIService with Gemini client
            max_scenes: Upper bound on returned scenes
        """
        self.ai = ai_service
        self.max_scenes = max_scenes

    @retry_api_call(max_retries=3, base_delay=2.0)
    def generate(
        self,
        prompt: str,
        duration: float = 30,
        visual_style: str = "default",
        language: str = "en",
    ) -> ScriptResult:
        """Generate a script for a short video.

        Args:
            prompt: What the video is about
            duration: Target length in seconds
            visual_style: Style tag passed to the model as context
            language: ``en`` or ``id``; scene descriptions stay English

        Returns:
            ScriptResult with title, narration and scenes

        Raises:
            ScriptGenerationError: If the reply is not valid JSON or has no scenes
        """
        logger.info(
            f"Generating script: prompt='{prompt[:60]}', duration={duration:.0f}s, "
            f"style={visual_style}, language={language}"
        )

        text = SHORT_VIDEO_SCRIPT_V1.format(
            duration=int(duration),
            prompt=prompt,
            visual_style=visual_style,
            language_instruction=LANGUAGE_INSTRUCTIONS.get(language, LANGUAGE_INSTRUCTIONS["en"]),
        )

        try:
            data = self.ai.generate_json(text, temperature=0.7)
        except AIResponseError as e:
            raise ScriptGenerationError(str(e)) from e

        script = self._parse_script(data, fallback_title=prompt)
        logger.info(f"Script generated: '{script.title}' with {len(script.scenes)} scenes")
        return script

    def _parse_script(self, data: dict, fallback_title: str) -> ScriptResult:
        scenes_data = data.get("scenes")
        if not isinstance(scenes_data, list):
            raise ScriptGenerationError("Script response missing 'scenes' list")

        scenes = []
        for i, scene_data in enumerate(scenes_data):
            if not isinstance(scene_data, dict):
                logger.warning(f"Skipping non-dict scene at index {i}")
                continue
            description = str(scene_data.get("description") or "").strip()
            if not description:
                logger.warning(f"Skipping scene {i} without description")
                continue
            scenes.append(
                Scene(
                    description=description,
                    text=_optional_str(scene_data.get("text")),
                    timestamp=_optional_str(scene_data.get("timestamp")),
                )
            )

        if not scenes:
            raise ScriptGenerationError("No valid scenes parsed from script response")

        title = str(data.get("title") or "").strip() or fallback_title[:60]
        narration = str(data.get("script") or "").strip()
        return ScriptResult(title=title, narration=narration, scenes=scenes[: self.max_scenes])


def _optional_str(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None
