"""Unit tests for configuration loading and validation."""

from pathlib import Path

import pytest

from utils.config import PROJECT_ROOT, get_supported_video_formats, load_config, validate_config


class TestLoadConfig:
    def test_defaults(self, monkeypatch):
        for name in ("DATA_DIR", "OUTPUT_DIR", "TIER_TIMEOUT_SECONDS", "TITLE_OVERLAY_ENABLED", "MAX_SCENES"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config["data_dir"] == str(PROJECT_ROOT / "data")
        assert config["output_dir"] == str(PROJECT_ROOT / "public/videos")
        assert config["tier_timeout_seconds"] == 120.0
        assert config["max_scenes"] == 5
        assert config["title_overlay_enabled"] is False

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))
        monkeypatch.setenv("MUSIC_DIR", "custom/music")
        monkeypatch.setenv("EXTENSION_TOLERANCE_SECONDS", "1.25")
        monkeypatch.setenv("TITLE_OVERLAY_ENABLED", "TRUE")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.test,http://b.test")

        config = load_config()

        assert config["output_dir"] == str(tmp_path / "out")
        assert config["music_dir"] == str(PROJECT_ROOT / "custom/music")
        assert config["extension_tolerance_seconds"] == 1.25
        assert config["title_overlay_enabled"] is True
        assert config["cors_origins"] == ["http://a.test", "http://b.test"]


class TestValidateConfig:
    def test_valid_config(self, sample_config):
        assert validate_config(sample_config) == []
        assert Path(sample_config["output_dir"]).is_dir()

    def test_missing_pexels_key(self, sample_config):
        sample_config["pexels_api_key"] = None

        assert validate_config(sample_config) == ["PEXELS_API_KEY is required"]

    def test_script_and_speech_keys_only_when_needed(self, sample_config):
        sample_config["gemini_api_key"] = ""
        sample_config["openai_api_key"] = ""

        assert len(validate_config(sample_config)) == 2
        assert validate_config(sample_config, needs_script=False, needs_speech=False) == []

    def test_negative_tolerance(self, sample_config):
        sample_config["extension_tolerance_seconds"] = -1

        errors = validate_config(sample_config)

        assert any("EXTENSION_TOLERANCE_SECONDS" in e for e in errors)

    def test_missing_folder(self, sample_config):
        sample_config["music_dir"] = ""

        assert validate_config(sample_config) == ["music_dir is not configured"]


@pytest.mark.parametrize("suffix", [".mp4", ".mov", ".webm"])
def test_supported_formats(suffix):
    assert suffix in get_supported_video_formats()
