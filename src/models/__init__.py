# Data models for reelsmith
from .generation import (
    GenerationJob,
    GenerationOptions,
    Orientation,
    Scene,
    ScriptResult,
)
from .media import CachedFootageClip, MediaLibraryItem, normalize_tags
from .video import StockVideo, StockVideoFile

__all__ = [
    # Generation
    "GenerationJob",
    "GenerationOptions",
    "Orientation",
    "Scene",
    "ScriptResult",
    # Durable records
    "CachedFootageClip",
    "MediaLibraryItem",
    "normalize_tags",
    # Stock footage
    "StockVideo",
    "StockVideoFile",
]
