"""Data models for prompt-to-video generation jobs."""

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

MIN_DURATION = 5
MAX_DURATION = 180


class Orientation(str, Enum):
    """Output frame orientation."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"

    @property
    def opposite(self) -> "Orientation":
        if self is Orientation.LANDSCAPE:
            return Orientation.PORTRAIT
        return Orientation.LANDSCAPE

    @classmethod
    def from_dimensions(cls, width: int, height: int) -> "Orientation":
        """Landscape when width >= height, portrait otherwise."""
        return cls.LANDSCAPE if width >= height else cls.PORTRAIT


@dataclass(frozen=True)
class Scene:
    """One script segment: a footage search description plus optional caption."""

    description: str  # 2-3 word footage search phrase
    text: Optional[str] = None  # caption / narration fragment for this scene
    timestamp: Optional[str] = None  # label such as "0:00-0:05"


@dataclass
class ScriptResult:
    """Structured output of the script writing step."""

    title: str
    narration: str
    scenes: List[Scene] = field(default_factory=list)


@dataclass
class GenerationOptions:
    """User request for a single generated video."""

    prompt: str
    duration: float = 30.0
    orientation: Orientation = Orientation.LANDSCAPE
    visual_style: str = "default"
    music_mood: Optional[str] = "ambient"
    music_volume: float = 0.05
    include_speech: bool = True
    language: str = "en"
    # Optional pre-written script; when scenes are given no language model call is made
    title: Optional[str] = None
    narration: Optional[str] = None
    scenes: List[Scene] = field(default_factory=list)

    def __post_init__(self):
        """Validate and clamp values."""
        self.orientation = Orientation(self.orientation)
        self.duration = float(max(MIN_DURATION, min(MAX_DURATION, self.duration)))
        self.music_volume = max(0.0, min(1.0, float(self.music_volume)))
        if self.language not in ("en", "id"):
            self.language = "en"

    @property
    def has_script(self) -> bool:
        return bool(self.scenes)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["orientation"] = self.orientation.value
        return data


@dataclass
class GenerationJob:
    """Per-request state owned by the generator for the lifetime of one job."""

    options: GenerationOptions
    workspace: Path
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    title: str = ""
    narration: str = ""
    scenes: List[Scene] = field(default_factory=list)
    target_duration: float = 0.0
    voiceover_path: Optional[Path] = None
    music_path: Optional[Path] = None
    notices: List[str] = field(default_factory=list)
    # Provider/media dedup keys already used by this job
    used_ids: set = field(default_factory=set)

    def __post_init__(self):
        if not self.target_duration:
            self.target_duration = self.options.duration

    @property
    def search_queries(self) -> List[str]:
        """Scene descriptions used for footage search, falling back to the prompt."""
        queries = [s.description for s in self.scenes if s.description.strip()]
        return queries or [self.options.prompt]
