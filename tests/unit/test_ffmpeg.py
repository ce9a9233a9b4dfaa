"""Unit tests for typed FFmpeg commands, progress parsing and probing."""

import json
import subprocess
import sys
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from pipeline.ffmpeg import (
    FFmpegCommand,
    FFmpegError,
    FFmpegInput,
    FFmpegProgress,
    escape_drawtext,
    escape_filter_path,
    probe_duration,
    probe_video_metadata,
    run_ffmpeg,
)


def _command(**kwargs) -> FFmpegCommand:
    defaults = dict(
        inputs=[FFmpegInput(Path("in.mp4"))],
        output=Path("out.mp4"),
        description="test",
    )
    defaults.update(kwargs)
    return FFmpegCommand(**defaults)


class TestCommandValidation:
    def test_requires_inputs(self):
        with pytest.raises(FFmpegError, match="No inputs"):
            _command(inputs=[]).validate()

    def test_rejects_mixed_filter_styles(self):
        with pytest.raises(FFmpegError, match="either"):
            _command(video_filters=["scale=1280:720"], filter_complex=["[0:v]null[v]"]).validate()

    @pytest.mark.parametrize("duration", [0, -1.5])
    def test_rejects_bad_duration(self, duration):
        with pytest.raises(FFmpegError, match="Invalid duration"):
            _command(duration=duration).validate()

    def test_rejects_unknown_label(self):
        with pytest.raises(FFmpegError, match="unknown filter label"):
            _command(filter_complex=["[0:a]volume=0.5[music]"], maps=["[mix]"]).validate()

    def test_rejects_missing_input_map(self):
        with pytest.raises(FFmpegError, match="missing input"):
            _command(maps=["1:a"]).validate()

    def test_valid_complex_graph(self):
        command = _command(
            inputs=[FFmpegInput(Path("video.mp4")), FFmpegInput(Path("voice.mp3"))],
            filter_complex=["[1:a]volume=1.0[voice]"],
            maps=["0:v", "[voice]"],
        )
        command.validate()


class TestToArgs:
    def test_argument_order(self):
        command = _command(
            inputs=[FFmpegInput(Path("in.mp4"), options=["-ss", "2"])],
            video_filters=["scale=1280:720", "setsar=1"],
            maps=["0:v"],
            duration=4.5,
            output_options=["-an"],
        )

        assert command.to_args() == [
            "ffmpeg", "-y",
            "-ss", "2", "-i", "in.mp4",
            "-vf", "scale=1280:720,setsar=1",
            "-map", "0:v",
            "-t", "4.500",
            "-an",
            "out.mp4",
        ]

    def test_filter_complex_joined(self):
        command = _command(filter_complex=["[0:v]null[a]", "[a]null[b]"], maps=["[b]"])
        args = command.to_args()

        assert args[args.index("-filter_complex") + 1] == "[0:v]null[a];[a]null[b]"


class TestEscaping:
    def test_filter_path(self):
        assert escape_filter_path("C:\\work\\it's.ass") == "C\\:/work/its.ass"

    def test_drawtext(self):
        assert escape_drawtext("50% off: it's") == "50\\% off\\: it’s"


class TestProgress:
    def test_reads_total_from_banner(self):
        progress = FFmpegProgress()

        assert progress.feed("  Duration: 00:00:20.00, start: 0.000000, bitrate: 100 kb/s") is None
        assert progress.total == 20.0
        assert progress.feed("frame=  120 fps=30 time=00:00:05.00 bitrate=") == 25
        assert progress.feed("frame=  121 fps=30 time=00:00:05.01 bitrate=") is None
        assert progress.feed("frame=  300 fps=30 time=00:00:10.00 bitrate=") == 50

    def test_capped_below_complete(self):
        progress = FFmpegProgress(expected_duration=10)
        assert progress.feed("time=00:00:12.00") == 99

    def test_ignores_unrelated_lines(self):
        progress = FFmpegProgress(expected_duration=10)
        assert progress.feed("Stream #0:0: Video: h264") is None


class TestRunFFmpeg:
    @patch("pipeline.ffmpeg.subprocess.run")
    def test_success(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stderr="")

        run_ffmpeg(_command(), timeout=30)

        args = mock_run.call_args[0][0]
        assert args[0] == "ffmpeg"
        assert mock_run.call_args[1]["timeout"] == 30

    @patch("pipeline.ffmpeg.subprocess.run")
    def test_non_zero_exit(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stderr="Invalid data found")

        with pytest.raises(FFmpegError) as exc_info:
            run_ffmpeg(_command())
        assert "Invalid data found" in exc_info.value.stderr

    @patch("pipeline.ffmpeg.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1)

        with pytest.raises(FFmpegError, match="timed out"):
            run_ffmpeg(_command(), timeout=1)

    @patch("pipeline.ffmpeg.subprocess.Popen")
    def test_progress_reported(self, mock_popen):
        process = MagicMock()
        process.stderr = iter([
            "Duration: 00:00:10.00, start: 0.0\n",
            "time=00:00:02.50\n",
            "time=00:00:07.50\n",
        ])
        process.wait.return_value = 0
        mock_popen.return_value = process
        reported = []

        run_ffmpeg(_command(), on_progress=reported.append)

        assert reported == [25, 75, 100]

    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
    def test_progress_run_killed_at_deadline(self, tmp_path):
        stalled = tmp_path / "stalled-ffmpeg"
        stalled.write_text("#!/bin/sh\nexec sleep 5\n")
        stalled.chmod(0o755)
        reported = []

        started = time.monotonic()
        with pytest.raises(FFmpegError, match="timed out"):
            run_ffmpeg(_command(binary=str(stalled)), timeout=1, on_progress=reported.append)

        assert time.monotonic() - started < 4
        assert reported == []

    @patch("pipeline.ffmpeg.subprocess.Popen")
    def test_progress_run_timeout_kills_process(self, mock_popen):
        process = MagicMock()
        released = threading.Event()

        def stalled_stderr():
            yield "Duration: 00:00:10.00, start: 0.0\n"
            released.wait(5)

        process.stderr = stalled_stderr()
        process.kill.side_effect = released.set
        process.wait.return_value = -9
        mock_popen.return_value = process

        with pytest.raises(FFmpegError, match="timed out"):
            run_ffmpeg(_command(), timeout=0.2, on_progress=lambda percent: None)

        process.kill.assert_called()

    @patch("pipeline.ffmpeg.subprocess.run")
    def test_invalid_command_not_executed(self, mock_run):
        with pytest.raises(FFmpegError):
            run_ffmpeg(_command(inputs=[]))
        mock_run.assert_not_called()


class TestProbe:
    @patch("pipeline.ffmpeg.subprocess.run")
    def test_duration(self, mock_run):
        mock_run.return_value = MagicMock(
            returncode=0, stdout=json.dumps({"format": {"duration": "12.48"}}), stderr=""
        )
        assert probe_duration(Path("voice.mp3")) == pytest.approx(12.48)

    @patch("pipeline.ffmpeg.subprocess.run")
    def test_duration_missing(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="{}", stderr="")
        with pytest.raises(FFmpegError, match="no duration"):
            probe_duration(Path("voice.mp3"))

    @patch("pipeline.ffmpeg.subprocess.run")
    def test_video_metadata(self, mock_run):
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout=json.dumps({
                "streams": [{"width": 1080, "height": 1920}],
                "format": {"duration": "8.0"},
            }),
            stderr="",
        )
        assert probe_video_metadata(Path("clip.mp4")) == {"width": 1080, "height": 1920, "duration": 8.0}

    @patch("pipeline.ffmpeg.subprocess.run")
    def test_video_metadata_no_stream(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=json.dumps({"streams": []}), stderr="")
        with pytest.raises(FFmpegError, match="No video stream"):
            probe_video_metadata(Path("audio.mp3"))
