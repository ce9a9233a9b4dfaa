"""Shared pytest fixtures for reelsmith tests."""

import sys
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest
import pytest_asyncio

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.generation import Orientation  # noqa: E402
from models.video import StockVideo, StockVideoFile  # noqa: E402
from services.record_store import RecordStore  # noqa: E402
from services.video_sources.base import VideoSource  # noqa: E402


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Job workspace directory."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def record_store(tmp_path):
    """Connected record store on a fresh database."""
    store = RecordStore(str(tmp_path / "db" / "test.db"))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def sample_config(tmp_path) -> Dict:
    """Configuration dict as returned by load_config(), rooted in tmp_path."""
    return {
        "pexels_api_key": "test_pexels_key",
        "gemini_api_key": "test_gemini_key",
        "openai_api_key": "test_openai_key",
        "gemini_model": "gemini-2.5-flash",
        "tts_base_url": "https://tts.example.com/v1",
        "tts_model": "tts-1",
        "data_dir": str(tmp_path / "data"),
        "database_path": str(tmp_path / "data" / "reelsmith.db"),
        "output_dir": str(tmp_path / "public" / "videos"),
        "clip_cache_dir": str(tmp_path / "data" / "video-cache"),
        "voiceover_cache_dir": str(tmp_path / "data" / "voiceover-cache"),
        "music_dir": str(tmp_path / "data" / "music"),
        "media_dir": str(tmp_path / "public" / "uploads" / "media"),
        "temp_dir": None,
        "voiceover_cache_max_size_gb": 1.0,
        "max_scenes": 5,
        "clip_max_duration": 30,
        "tier_timeout_seconds": 5.0,
        "ffmpeg_timeout_seconds": 60,
        "extension_tolerance_seconds": 0.5,
        "title_overlay_enabled": False,
        "api_host": "127.0.0.1",
        "api_port": 8000,
        "cors_origins": ["http://localhost:3000"],
        "log_level": "INFO",
        "log_json": False,
    }


def make_stock_video(
    provider_id: int,
    width: int = 1920,
    height: int = 1080,
    duration: int = 12,
) -> StockVideo:
    """Stock search result with an HD and an SD mp4 rendition."""
    return StockVideo(
        provider_id=provider_id,
        url=f"https://www.pexels.com/video/{provider_id}/",
        duration=duration,
        width=width,
        height=height,
        files=[
            StockVideoFile(
                link=f"https://cdn.example.com/{provider_id}_sd.mp4",
                quality="sd",
                width=width // 2,
                height=height // 2,
            ),
            StockVideoFile(
                link=f"https://cdn.example.com/{provider_id}_hd.mp4",
                quality="hd",
                width=width,
                height=height,
            ),
        ],
    )


class FakeVideoSource(VideoSource):
    """In-memory stock provider recording every search and download."""

    def __init__(self, results: Optional[Dict[str, List[StockVideo]]] = None, api_key: str = "key"):
        self.results = results or {}
        self.api_key = api_key
        self.searches: List[tuple] = []
        self.downloads: List[str] = []
        self.failing_queries: set = set()

    def get_source_name(self) -> str:
        return "pexels"

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        orientation: Optional[Orientation] = None,
        max_duration: Optional[int] = None,
        per_page: int = 10,
    ) -> List[StockVideo]:
        self.searches.append((query, orientation))
        if query in self.failing_queries:
            raise ConnectionError(f"search failed for {query}")
        return list(self.results.get(query, []))[:per_page]

    async def download(self, url: str, dest: Path) -> Path:
        self.downloads.append(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"video:" + url.encode())
        return dest


@pytest.fixture
def fake_provider() -> FakeVideoSource:
    return FakeVideoSource()
