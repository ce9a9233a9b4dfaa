"""Prompt templates for the Gemini calls.

    from services.prompts import SHORT_VIDEO_SCRIPT_V1, LANGUAGE_INSTRUCTIONS
    from services.prompts import MEDIA_ANALYZER_V1, PROMPT_VERSIONS
"""

from services.prompts.media_analysis import MEDIA_ANALYZER_V1
from services.prompts.script_generation import LANGUAGE_INSTRUCTIONS, SHORT_VIDEO_SCRIPT_V1

# Increment when a prompt changes so logs show which version produced a result
PROMPT_VERSIONS = {
    "generate_script": "v1",
    "analyze_media": "v1",
}

__all__ = [
    "PROMPT_VERSIONS",
    # Script generation
    "SHORT_VIDEO_SCRIPT_V1",
    "LANGUAGE_INSTRUCTIONS",
    # Media library
    "MEDIA_ANALYZER_V1",
]
