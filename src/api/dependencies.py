"""Service singletons and dependency injection for the reelsmith API."""

from pipeline.generator import VideoGenerator
from services.ai_service import AIService
from services.media_library import MediaLibraryService
from services.record_store import RecordStore
from utils.config import load_config

# Service singletons
_config: dict | None = None
_record_store: RecordStore | None = None
_generator: VideoGenerator | None = None
_media_library: MediaLibraryService | None = None


def get_config() -> dict:
    """Get or load the configuration dict."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


async def init_services() -> None:
    """Open the record store; called once from the app lifespan."""
    global _record_store
    if _record_store is None:
        _record_store = RecordStore(get_config()["database_path"])
        await _record_store.connect()


async def shutdown_services() -> None:
    """Close clients and the record store."""
    global _record_store, _generator, _media_library
    if _generator is not None:
        await _generator.close()
        _generator = None
    _media_library = None
    if _record_store is not None:
        await _record_store.close()
        _record_store = None


def get_record_store() -> RecordStore:
    """Get the connected record store."""
    if _record_store is None:
        raise RuntimeError("Record store not initialized. Call init_services() first.")
    return _record_store


def get_generator() -> VideoGenerator:
    """Get or create the video generator instance."""
    global _generator
    if _generator is None:
        _generator = VideoGenerator.from_config(get_config(), get_record_store())
    return _generator


def get_media_library() -> MediaLibraryService:
    """Get or create the media library service instance."""
    global _media_library
    if _media_library is None:
        config = get_config()
        ai_service = None
        if config.get("gemini_api_key"):
            ai_service = AIService(
                api_key=config["gemini_api_key"],
                model_name=config["gemini_model"],
            )
        _media_library = MediaLibraryService(
            get_record_store(),
            config["media_dir"],
            ai_service=ai_service,
        )
    return _media_library
