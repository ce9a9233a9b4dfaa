"""Unit tests for the FFmpeg composition stages."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from models.generation import Orientation
from pipeline.ffmpeg import FFmpegError
from pipeline.models import layout_for
from pipeline.video_composer import (
    VideoComposer,
    VideoComposerError,
    clamp_volume,
    style_filters,
    wrap_title,
)


def fake_ffmpeg_run(args, **kwargs):
    """subprocess.run stand-in that writes the output file FFmpeg would."""
    Path(args[-1]).write_bytes(b"encoded")
    return MagicMock(returncode=0, stderr="")


@pytest.fixture
def composer() -> VideoComposer:
    return VideoComposer(extension_tolerance=0.5, timeout=60)


@pytest.fixture
def clips(workspace):
    paths = []
    for i in range(3):
        path = workspace / f"raw_{i}.mp4"
        path.write_bytes(b"raw")
        paths.append(path)
    return paths


class TestHelpers:
    @pytest.mark.parametrize("total,count", [(30, 3), (30, 7), (12.5, 4), (180, 5)])
    def test_clip_durations_sum_to_total(self, total, count):
        durations = VideoComposer.clip_durations(total, count)

        assert len(durations) == count
        assert abs(sum(durations) - total) < 1 / 30

    def test_clip_durations_no_clips(self):
        assert VideoComposer.clip_durations(30, 0) == []

    def test_style_filters(self):
        assert style_filters("CINEMATIC") == [
            "eq=contrast=1.1:brightness=0.02",
            "colorbalance=rs=-0.05:gs=-0.02:bs=0.1",
        ]
        assert style_filters("watercolor") == []
        assert style_filters(None) == []

    @pytest.mark.parametrize("volume,expected", [(-1, 0.0), (0.3, 0.3), (4, 1.0)])
    def test_clamp_volume(self, volume, expected):
        assert clamp_volume(volume) == expected

    def test_wrap_title(self):
        assert wrap_title("a calm forest at dawn", 10) == ["A CALM", "FOREST AT", "DAWN"]


class TestBuildCommands:
    def test_clip_command(self, composer):
        layout = layout_for(Orientation.PORTRAIT)
        args = composer.build_clip_command(Path("in.mp4"), Path("out.mp4"), 6.0, layout).to_args()

        assert args[args.index("-t") + 1] == "6.000"
        assert args[args.index("-s") + 1] == "720x1280"
        assert "-an" in args

    def test_concat_is_stream_copy(self, composer):
        args = composer.build_concat_command(Path("list.txt"), Path("merged.mp4")).to_args()

        assert args[:8] == ["ffmpeg", "-y", "-f", "concat", "-safe", "0", "-i", "list.txt"]
        assert args[args.index("-c") + 1] == "copy"

    def test_render_combines_style_and_captions(self, composer):
        command = composer.build_render_command(
            Path("merged.mp4"),
            Path("rendered.mp4"),
            "anime",
            Path("/tmp/job/captions.ass"),
            layout_for(Orientation.LANDSCAPE),
            title="Ignored without overlay",
        )

        assert command.video_filters == [
            "eq=saturation=1.4:contrast=1.2",
            "ass='/tmp/job/captions.ass'",
        ]

    def test_render_title_overlay(self):
        composer = VideoComposer(title_overlay=True)
        command = composer.build_render_command(
            Path("merged.mp4"), Path("rendered.mp4"), None, None,
            layout_for(Orientation.LANDSCAPE), title="Forest",
        )

        assert len(command.video_filters) == 1
        assert command.video_filters[0].startswith("drawtext=text='FOREST'")
        assert "between(t,0,3)" in command.video_filters[0]

    def test_extend_loops_input(self, composer):
        args = composer.build_extend_command(Path("r.mp4"), Path("e.mp4"), 14.0).to_args()

        assert args[2:6] == ["-stream_loop", "-1", "-i", "r.mp4"]
        assert args[args.index("-t") + 1] == "14.000"


class TestMixCommands:
    def test_voice_and_music(self, composer):
        command = composer.build_mix_command(
            Path("v.mp4"), Path("o.mp4"), 30.0, Path("voice.mp3"), Path("music.mp3"), 0.2
        )

        assert len(command.inputs) == 3
        assert command.maps == ["0:v", "[aout]"]
        graph = ";".join(command.filter_complex)
        assert "aformat=sample_fmts=fltp" in graph
        assert "volume=0.2,afade=t=out:st=28.000:d=2" in graph
        assert "amix=inputs=2:duration=first" in graph
        assert "-shortest" in command.output_options

    def test_voice_only(self, composer):
        command = composer.build_mix_command(Path("v.mp4"), Path("o.mp4"), 30.0, voice_path=Path("voice.mp3"))

        assert command.maps == ["0:v", "1:a"]
        assert command.filter_complex == []

    def test_music_only(self, composer):
        command = composer.build_mix_command(
            Path("v.mp4"), Path("o.mp4"), 10.0, music_path=Path("m.mp3"), music_volume=3
        )

        assert command.filter_complex == ["[1:a]volume=1.0,afade=t=out:st=8.000:d=2[aout]"]
        assert command.maps == ["0:v", "[aout]"]

    def test_neither_strips_audio(self, composer):
        command = composer.build_mix_command(Path("v.mp4"), Path("o.mp4"), 10.0)

        assert len(command.inputs) == 1
        assert command.output_options == ["-c:v", "copy", "-an"]

    def test_short_video_fade_starts_at_zero(self, composer):
        command = composer.build_mix_command(Path("v.mp4"), Path("o.mp4"), 1.0, music_path=Path("m.mp3"))
        assert "st=0.000" in command.filter_complex[0]


class TestRunStages:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_process_clips_encodes_every_clip(self, composer, clips, workspace):
        with patch("pipeline.ffmpeg.subprocess.run", side_effect=fake_ffmpeg_run) as mock_run:
            outputs = await composer.process_clips(clips, workspace, 30.0, Orientation.LANDSCAPE)

        assert outputs == [workspace / f"processed_{i}.mp4" for i in range(3)]
        assert all(path.exists() for path in outputs)
        assert mock_run.call_count == 3
        durations = [call.args[0][call.args[0].index("-t") + 1] for call in mock_run.call_args_list]
        assert durations == ["10.000"] * 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_process_clips_failure(self, composer, clips, workspace):
        failed = MagicMock(returncode=1, stderr="moov atom not found")
        with patch("pipeline.ffmpeg.subprocess.run", return_value=failed):
            with pytest.raises(VideoComposerError, match="moov atom"):
                await composer.process_clips(clips, workspace, 30.0, Orientation.LANDSCAPE)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_output_is_an_error(self, composer, clips, workspace):
        ok = MagicMock(returncode=0, stderr="")
        with patch("pipeline.ffmpeg.subprocess.run", return_value=ok):
            with pytest.raises(VideoComposerError, match="no output"):
                await composer.process_clips(clips[:1], workspace, 5.0, Orientation.PORTRAIT)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concatenate_writes_ordered_list(self, composer, clips, workspace):
        with patch("pipeline.ffmpeg.subprocess.run", side_effect=fake_ffmpeg_run):
            merged = await composer.concatenate(clips, workspace)

        assert merged == workspace / "merged.mp4"
        lines = (workspace / "concat.txt").read_text().splitlines()
        assert lines == [f"file '{clip.resolve()}'" for clip in clips]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concatenate_single_clip_copies(self, composer, clips, workspace):
        with patch("pipeline.ffmpeg.subprocess.run") as mock_run:
            merged = await composer.concatenate(clips[:1], workspace)

        mock_run.assert_not_called()
        assert merged.read_bytes() == b"raw"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extend_skipped_within_tolerance(self, composer, workspace):
        video = workspace / "rendered.mp4"
        composer.probe_duration = AsyncMock(return_value=29.7)

        with patch("pipeline.ffmpeg.subprocess.run") as mock_run:
            result = await composer.extend_to(video, 30.0, workspace)

        assert result == video
        mock_run.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extend_when_narration_is_longer(self, composer, workspace):
        video = workspace / "rendered.mp4"
        composer.probe_duration = AsyncMock(return_value=20.0)

        with patch("pipeline.ffmpeg.subprocess.run", side_effect=fake_ffmpeg_run) as mock_run:
            result = await composer.extend_to(video, 26.0, workspace)

        assert result == workspace / "extended.mp4"
        args = mock_run.call_args.args[0]
        assert "-stream_loop" in args
        assert args[args.index("-t") + 1] == "26.000"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extend_probe_failure(self, composer, workspace):
        composer.probe_duration = AsyncMock(side_effect=FFmpegError("no duration"))

        with pytest.raises(VideoComposerError, match="rendered duration"):
            await composer.extend_to(workspace / "rendered.mp4", 26.0, workspace)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mix_audio_creates_output_dir(self, composer, workspace, tmp_path):
        output = tmp_path / "public" / "videos" / "job.mp4"
        with patch("pipeline.ffmpeg.subprocess.run", side_effect=fake_ffmpeg_run):
            result = await composer.mix_audio(workspace / "r.mp4", output, 30.0)

        assert result == output
        assert output.exists()
