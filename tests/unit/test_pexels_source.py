"""Unit tests for the Pexels stock footage source."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from models.generation import Orientation
from models.video import StockVideoFile
from services.video_sources.base import VideoSourceError
from services.video_sources.pexels import PexelsVideoSource
from utils.retry import ConfigurationError

from conftest import make_stock_video

PEXELS_VIDEO = {
    "id": 857251,
    "url": "https://www.pexels.com/video/forest-857251/",
    "duration": 14,
    "width": 1920,
    "height": 1080,
    "user": {"name": "Jane Doe"},
    "video_files": [
        {"link": "https://cdn.example.com/857251_sd.mp4", "quality": "sd", "file_type": "video/mp4", "width": 960, "height": 540},
        {"link": "https://cdn.example.com/857251_hd.mp4", "quality": "hd", "file_type": "video/mp4", "width": 1920, "height": 1080},
        {"link": "", "quality": "hd", "file_type": "video/mp4"},
    ],
}


def mock_session(status=200, payload=None):
    """aiohttp.ClientSession stand-in returning one canned response."""
    response = MagicMock(status=status)
    response.json = AsyncMock(return_value=payload or {})
    response.__aenter__.return_value = response
    response.__aexit__.return_value = False

    session = MagicMock()
    session.get.return_value = response
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    return session


class TestParsing:
    def test_parse_video(self):
        video = PexelsVideoSource(api_key="key")._parse_video(PEXELS_VIDEO)

        assert video.provider_id == 857251
        assert video.duration == 14
        assert video.author == "Jane Doe"
        assert video.dedup_key == "pexels:857251"
        assert len(video.files) == 2

    def test_entries_without_id_or_files_skipped(self):
        source = PexelsVideoSource(api_key="key")
        assert source._parse_video({"video_files": PEXELS_VIDEO["video_files"]}) is None
        assert source._parse_video({"id": 1, "video_files": []}) is None

    def test_select_file_prefers_hd_mp4(self):
        assert make_stock_video(7).select_file().link.endswith("7_hd.mp4")

    def test_select_file_falls_back_to_sd_then_any_mp4(self):
        video = make_stock_video(7)
        video.files = [f for f in video.files if f.quality == "sd"]
        assert video.select_file().quality == "sd"

        video.files = [
            StockVideoFile(link="a.webm", quality="hd", file_type="video/webm"),
            StockVideoFile(link="b.mp4", quality="uhd"),
        ]
        assert video.select_file().link == "b.mp4"

        video.files = [StockVideoFile(link="a.webm", file_type="video/webm")]
        assert video.select_file() is None


class TestSearch:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_key_fails_before_request(self, monkeypatch):
        monkeypatch.delenv("PEXELS_API_KEY", raising=False)
        source = PexelsVideoSource()

        with patch("services.video_sources.pexels.aiohttp.ClientSession") as session_cls:
            with pytest.raises(ConfigurationError):
                await source.search("forest")
        session_cls.assert_not_called()
        assert source.is_configured() is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_query(self):
        with patch("services.video_sources.pexels.aiohttp.ClientSession") as session_cls:
            assert await PexelsVideoSource(api_key="key").search("   ") == []
        session_cls.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_search_sends_orientation_and_duration_cap(self):
        long_video = dict(PEXELS_VIDEO, id=2, duration=90)
        session = mock_session(payload={"videos": [PEXELS_VIDEO, long_video]})

        with patch("services.video_sources.pexels.aiohttp.ClientSession", return_value=session):
            results = await PexelsVideoSource(api_key="key").search(
                "forest", orientation=Orientation.PORTRAIT, max_duration=30, per_page=200
            )

        assert [video.provider_id for video in results] == [857251]
        kwargs = session.get.call_args.kwargs
        assert kwargs["headers"] == {"Authorization": "key"}
        assert kwargs["params"] == {
            "query": "forest",
            "per_page": "80",
            "orientation": "portrait",
            "max_duration": "30",
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_error_status(self):
        with patch(
            "services.video_sources.pexels.aiohttp.ClientSession",
            return_value=mock_session(status=403),
        ):
            with pytest.raises(VideoSourceError, match="403"):
                await PexelsVideoSource(api_key="key").search("forest")
