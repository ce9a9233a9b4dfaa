"""Configuration loading and validation for reelsmith."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    data_dir = resolve_path(os.getenv("DATA_DIR"), "data")

    config = {
        # Remote credentials
        "pexels_api_key": os.getenv("PEXELS_API_KEY"),
        "gemini_api_key": os.getenv("GEMINI_API_KEY"),
        "openai_api_key": os.getenv("OPENAI_API_KEY"),
        # Model configurations
        "gemini_model": os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        "tts_base_url": os.getenv("TTS_BASE_URL", "https://api.openai.com/v1"),
        "tts_model": os.getenv("TTS_MODEL", "tts-1"),
        # Storage
        "data_dir": data_dir,
        "database_path": resolve_path(os.getenv("DATABASE_PATH"), "data/reelsmith.db"),
        "output_dir": resolve_path(os.getenv("OUTPUT_DIR"), "public/videos"),
        "clip_cache_dir": resolve_path(os.getenv("CLIP_CACHE_DIR"), "data/video-cache"),
        "voiceover_cache_dir": resolve_path(
            os.getenv("VOICEOVER_CACHE_DIR"), "data/voiceover-cache"
        ),
        "music_dir": resolve_path(os.getenv("MUSIC_DIR"), "data/music"),
        "media_dir": resolve_path(os.getenv("MEDIA_DIR"), "public/uploads/media"),
        "temp_dir": os.getenv("TEMP_DIR") or None,
        # Voiceover cache sizing
        "voiceover_cache_max_size_gb": float(os.getenv("VOICEOVER_CACHE_MAX_SIZE_GB", "1.0")),
        # Footage acquisition
        "max_scenes": int(os.getenv("MAX_SCENES", "5")),
        "clip_max_duration": int(os.getenv("CLIP_MAX_DURATION", "30")),
        "tier_timeout_seconds": float(os.getenv("TIER_TIMEOUT_SECONDS", "120")),
        # Composition
        "ffmpeg_timeout_seconds": int(os.getenv("FFMPEG_TIMEOUT_SECONDS", "600")),
        "extension_tolerance_seconds": float(
            os.getenv("EXTENSION_TOLERANCE_SECONDS", "0.5")
        ),
        "title_overlay_enabled": _env_flag("TITLE_OVERLAY_ENABLED", "false"),
        # API server
        "api_host": os.getenv("API_HOST", "0.0.0.0"),
        "api_port": int(os.getenv("API_PORT", "8000")),
        "cors_origins": os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _env_flag("LOG_JSON", "false"),
    }

    return config


def validate_config(
    config: dict, needs_script: bool = True, needs_speech: bool = True
) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration dict from load_config()
        needs_script: Whether a script has to be generated by the language model
        needs_speech: Whether narration has to be synthesized
    """
    errors = []

    # Footage search is impossible without the stock provider key
    if not config.get("pexels_api_key"):
        errors.append("PEXELS_API_KEY is required")

    if needs_script and not config.get("gemini_api_key"):
        errors.append("GEMINI_API_KEY is required to generate scripts")

    if needs_speech and not config.get("openai_api_key"):
        errors.append("OPENAI_API_KEY is required for narration")

    for key in ("output_dir", "clip_cache_dir", "voiceover_cache_dir", "music_dir"):
        folder = config.get(key)
        if not folder:
            errors.append(f"{key} is not configured")
            continue
        try:
            Path(folder).mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Cannot create {key} folder: {e}")

    if config.get("extension_tolerance_seconds", 0) < 0:
        errors.append("EXTENSION_TOLERANCE_SECONDS must not be negative")

    return errors


def get_supported_video_formats() -> list[str]:
    """Return list of supported video file extensions."""
    return [".mp4", ".avi", ".mov", ".mkv", ".webm", ".m4v"]
