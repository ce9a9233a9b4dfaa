"""Unit tests for download-once footage storage."""

from pathlib import Path

import pytest

from conftest import FakeVideoSource, make_stock_video
from models.generation import Orientation
from models.video import StockVideo
from services.footage_store import FootageStore, link_or_copy
from services.video_sources.base import VideoSourceError


@pytest.mark.unit
@pytest.mark.asyncio
async def test_same_clip_downloaded_once_and_terms_merged(record_store, tmp_path):
    provider = FakeVideoSource()
    store = FootageStore(record_store, provider, tmp_path / "cache")
    video = make_stock_video(42)

    first = await store.fetch(video, "forest dawn", Orientation.LANDSCAPE)
    second = await store.fetch(video, "misty forest", Orientation.LANDSCAPE)

    assert provider.downloads == ["https://cdn.example.com/42_hd.mp4"]
    assert first.file_path == second.file_path
    stored = await record_store.get_clip(42)
    assert stored.search_terms == ["forest dawn", "misty forest"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_file_is_downloaded_again(record_store, tmp_path):
    provider = FakeVideoSource()
    store = FootageStore(record_store, provider, tmp_path / "cache")
    video = make_stock_video(8)

    clip = await store.fetch(video, "sky", Orientation.LANDSCAPE)
    Path(clip.file_path).unlink()
    await store.fetch(video, "sky", Orientation.LANDSCAPE)

    assert len(provider.downloads) == 2
    assert (await record_store.get_clip(8)).search_terms == ["sky"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_orientation_derived_from_dimensions(record_store, tmp_path):
    store = FootageStore(record_store, FakeVideoSource(), tmp_path / "cache")
    clip = await store.fetch(make_stock_video(3, width=1080, height=1920), "city", None)
    assert clip.orientation == Orientation.PORTRAIT


@pytest.mark.unit
@pytest.mark.asyncio
async def test_no_mp4_rendition_raises_without_record(record_store, tmp_path):
    store = FootageStore(record_store, FakeVideoSource(), tmp_path / "cache")
    video = StockVideo(provider_id=5, url="u", duration=10, files=[])

    with pytest.raises(VideoSourceError):
        await store.fetch(video, "ocean", Orientation.LANDSCAPE)
    assert await record_store.get_clip(5) is None


def test_link_or_copy_replaces_existing(tmp_path):
    source = tmp_path / "source.mp4"
    source.write_bytes(b"new")
    dest = tmp_path / "ws" / "clip.mp4"
    dest.parent.mkdir()
    dest.write_bytes(b"old")

    link_or_copy(source, dest)

    assert dest.read_bytes() == b"new"
