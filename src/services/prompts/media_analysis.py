"""Media library analysis prompt templates.

Contains prompts for:
- MEDIA_ANALYZER_V1: title, description and search tags from sampled video frames
"""

# Media analyzer v1
# Template placeholders: {filename_hint}
MEDIA_ANALYZER_V1 = """You are a video content analyzer. The images are frames sampled evenly
from one video clip. {filename_hint}

Generate:
1. A concise, descriptive title (max 50 characters)
2. A description of what the video shows (2-3 sentences)
3. 5-10 relevant tags/keywords for stock footage search
4. A brief analysis of the visual content, mood and potential use cases

Return ONLY a JSON object:
{{
  "title": "string",
  "description": "string",
  "tags": ["tag1", "tag2"],
  "analysis": "string"
}}
"""
