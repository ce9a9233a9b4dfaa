"""Script generation prompt templates.

Contains prompts for:
- SHORT_VIDEO_SCRIPT_V1: narration + footage scenes for a short-form video
"""

LANGUAGE_INSTRUCTIONS = {
    "en": (
        "IMPORTANT: Write ALL content (title, script, and scene text) in English. "
        "If the prompt is in Bahasa Indonesia, translate everything to English."
    ),
    "id": (
        "IMPORTANT: Write ALL content (title, script, and scene text) in Bahasa Indonesia. "
        "If the prompt is in English, translate everything to Bahasa Indonesia."
    ),
}

# Short video script v1
# Template placeholders: {duration}, {prompt}, {visual_style}, {language_instruction}
SHORT_VIDEO_SCRIPT_V1 = """You are a professional short-form video creator for news reels and
social media (TikTok, Reels, Shorts). Create a {duration}-second video script based on this
prompt: "{prompt}"

Visual Style: {visual_style}

{language_instruction}

Create engaging, news-style content with bold captions.

OUTPUT FORMAT (JSON)
Return ONLY a JSON object with this exact structure:
{{
  "title": "A catchy, attention-grabbing title (max 6 words)",
  "script": "Full narration for the voiceover, written as natural flowing speech",
  "scenes": [
    {{
      "timestamp": "Time range for internal use only, e.g. 0-6s",
      "description": "Stock footage search term, 2-3 words, always in English",
      "text": "Short caption, 6-9 words max"
    }}
  ]
}}

RULES
- Produce 3 to 5 scenes.
- The "script" field is pure narration: no timestamps, no "[Scene 1]" markers, no stage
  directions. It must read like a natural voiceover.
- Scene descriptions are concrete and filmable ("forest sunrise", "city traffic"), never
  abstract concepts.
"""
