"""Data models shared by the composition pipeline."""

from dataclasses import dataclass, field

from models.generation import Orientation


@dataclass
class WordTiming:
    """Start/end of one spoken word, in seconds."""

    word: str
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class CaptionLine:
    """A group of words shown together on screen."""

    words: list[WordTiming] = field(default_factory=list)
    trailing_buffer: float = 0.2

    @property
    def start(self) -> float:
        return self.words[0].start

    @property
    def end(self) -> float:
        return self.words[-1].end + self.trailing_buffer


@dataclass(frozen=True)
class FrameLayout:
    """Canvas and caption placement for one orientation."""

    width: int
    height: int
    caption_margin: int
    caption_font_size: int = 36
    title_font_size: int = 92
    title_max_chars: int = 35

    @property
    def size(self) -> str:
        return f"{self.width}x{self.height}"


LAYOUTS = {
    Orientation.LANDSCAPE: FrameLayout(width=1280, height=720, caption_margin=80, title_max_chars=35),
    Orientation.PORTRAIT: FrameLayout(width=720, height=1280, caption_margin=180, title_max_chars=20),
}


def layout_for(orientation: Orientation) -> FrameLayout:
    return LAYOUTS[Orientation(orientation)]
