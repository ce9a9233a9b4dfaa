"""Pydantic request/response models for the reelsmith API."""

from pydantic import BaseModel, Field

from models.generation import MAX_DURATION, MIN_DURATION, GenerationOptions, Orientation, Scene
from models.media import MediaLibraryItem

# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy"}]}}


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


# =============================================================================
# Video generation
# =============================================================================


class SceneSchema(BaseModel):
    """One scene of a pre-written script."""

    description: str = Field(min_length=1, description="2-3 word footage search phrase")
    text: str | None = None
    timestamp: str | None = None


class VideoGenerateRequest(BaseModel):
    """Request body for a generated video."""

    prompt: str = Field(min_length=1)
    duration: float = Field(default=30, ge=MIN_DURATION, le=MAX_DURATION)
    orientation: Orientation = Orientation.LANDSCAPE
    visual_style: str = "default"
    music_mood: str | None = "ambient"
    music_volume: float = Field(default=0.05, ge=0.0, le=1.0)
    include_speech: bool = True
    language: str = Field(default="en", pattern="^(en|id)$")
    title: str | None = None
    narration: str | None = None
    scenes: list[SceneSchema] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "prompt": "a calm forest at dawn",
                    "duration": 30,
                    "orientation": "landscape",
                    "include_speech": True,
                }
            ]
        }
    }

    def to_options(self) -> GenerationOptions:
        return GenerationOptions(
            prompt=self.prompt.strip(),
            duration=self.duration,
            orientation=self.orientation,
            visual_style=self.visual_style,
            music_mood=self.music_mood,
            music_volume=self.music_volume,
            include_speech=self.include_speech,
            language=self.language,
            title=self.title,
            narration=self.narration,
            scenes=[Scene(s.description, s.text, s.timestamp) for s in self.scenes],
        )


class GenerationCreatedResponse(BaseModel):
    """Response when a generation job is started."""

    job_id: str
    status: str


class GenerationResponse(BaseModel):
    """Status row of a generation job."""

    id: str
    prompt: str
    options: dict
    status: str
    title: str | None = None
    narration: str | None = None
    scenes: list[dict] = Field(default_factory=list)
    result_path: str | None = None
    error: str | None = None
    notices: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class GenerationListResponse(BaseModel):
    jobs: list[GenerationResponse]


# =============================================================================
# Media library
# =============================================================================


class MediaItemResponse(BaseModel):
    """A media library item."""

    id: int
    title: str
    description: str
    file_path: str
    thumbnail_path: str | None = None
    source: str
    duration: float
    width: int
    height: int
    orientation: Orientation
    tags: list[str]
    ai_analysis: str | None = None
    file_size: int
    mime_type: str | None = None
    created_at: str | None = None

    @classmethod
    def from_item(cls, item: MediaLibraryItem) -> "MediaItemResponse":
        return cls(
            id=item.id,
            title=item.title,
            description=item.description,
            file_path=item.file_path,
            thumbnail_path=item.thumbnail_path,
            source=item.source,
            duration=item.duration,
            width=item.width,
            height=item.height,
            orientation=item.orientation,
            tags=item.tags,
            ai_analysis=item.ai_analysis,
            file_size=item.file_size,
            mime_type=item.mime_type,
            created_at=item.created_at,
        )


class MediaItemUpdate(BaseModel):
    """Editable fields of a media library item."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    tags: list[str] | None = None


class MediaListResponse(BaseModel):
    items: list[MediaItemResponse]
