"""
Unit tests for motion_speedup.cli module.

Tests argument parsing, configuration mapping and exit codes.
"""

import os
from unittest.mock import patch

import pytest

from motion_speedup.cli import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_USAGE,
    build_parser,
    config_from_args,
    main,
)
from motion_speedup.errors import CollaboratorError, ConfigurationError
from motion_speedup.pipeline import SpeedupResult
from motion_speedup.scores import load_scores, save_scores

needs_fifo = pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes need POSIX")


def parse(*argv):
    return config_from_args(build_parser().parse_args(list(argv)))


class TestArgumentParsing:
    """Tests for build_parser and config_from_args."""

    def test_speedup_run(self):
        """Common options map onto the configuration."""
        config = parse("-W", "1280", "-H", "720", "-s", "4", "in.mp4", "out.mp4")

        assert config.input_path == "in.mp4"
        assert config.output_path == "out.mp4"
        assert (config.width, config.height) == (1280, 720)
        assert config.speedup == 4
        assert config.drop_frames is None
        assert config.keep_frames is None
        assert config.crf == 16
        assert config.verbose is True

    def test_defaults(self):
        """Unset tuning options take their documented defaults."""
        config = parse("-W", "4", "-H", "2", "--keep-frames", "10", "in.mp4", "out.mp4")

        assert config.window_size == 0
        assert config.redistribution_divisor == 1.0
        assert config.fps == 30
        assert config.ffmpeg_command == "ffmpeg"
        assert config.sox_command == "sox"
        assert config.audio_output is None

    def test_clipshow_divisor_alias(self):
        """--clipshow-divisor is accepted as an alias."""
        config = parse(
            "-W", "4", "-H", "2", "-s", "2", "--clipshow-divisor", "0", "in.mp4", "out.mp4"
        )
        assert config.redistribution_divisor == 0

    def test_motion_only_uses_output_as_motion_file(self):
        """-M with no -m saves the scores to the positional output."""
        config = parse("-W", "4", "-H", "2", "-M", "in.mp4", "in.motion")

        assert config.motion_only is True
        assert config.motion_file == "in.motion"
        assert config.output_path is None

    def test_motion_only_with_explicit_motion_file(self):
        """-M with -m keeps both paths as given."""
        config = parse("-W", "4", "-H", "2", "-M", "-m", "a.motion", "in.mp4")

        assert config.motion_file == "a.motion"
        assert config.output_path is None

    def test_motion_only_without_destination(self):
        """-M needs somewhere to write the scores."""
        with pytest.raises(ConfigurationError):
            parse("-W", "4", "-H", "2", "-M", "in.mp4")

    def test_print_motion_is_quiet_motion_only(self):
        """--print-motion implies motion-only without progress output."""
        config = parse("-W", "4", "-H", "2", "--print-motion", "in.mp4")

        assert config.motion_only is True
        assert config.verbose is False

    def test_quiet(self):
        """-q turns off progress output."""
        config = parse("-W", "4", "-H", "2", "-s", "2", "-q", "in.mp4", "out.mp4")
        assert config.verbose is False

    def test_targets_are_mutually_exclusive(self):
        """Two targets on the command line are a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(
                ["-W", "4", "-H", "2", "-s", "2", "--drop-frames", "3", "in.mp4", "out.mp4"]
            )
        assert exc_info.value.code == EXIT_USAGE

    def test_dimensions_required(self):
        """Width and height must be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-s", "2", "in.mp4", "out.mp4"])


class TestMain:
    """Tests for main entry point."""

    def test_missing_target_is_usage_error(self, capsys):
        """No speedup, drop or keep count exits with status 2."""
        assert main(["-W", "4", "-H", "2", "in.mp4", "out.mp4"]) == EXIT_USAGE
        assert "Exactly one" in capsys.readouterr().err

    def test_missing_output_is_usage_error(self):
        """A speedup run without an output exits with status 2."""
        assert main(["-W", "4", "-H", "2", "-s", "2", "in.mp4"]) == EXIT_USAGE

    def test_crf_out_of_range_is_usage_error(self):
        """libx264 only accepts CRF 0-51."""
        argv = ["-W", "4", "-H", "2", "-s", "2", "--crf", "60", "in.mp4", "out.mp4"]
        assert main(argv) == EXIT_USAGE

    @patch("motion_speedup.cli.StreamPipeline.run")
    def test_collaborator_failure(self, mock_run, capsys):
        """A failing external tool exits with status 1."""
        mock_run.side_effect = CollaboratorError("decoder failed", ["ffmpeg"], 1)

        assert main(["-W", "4", "-H", "2", "-s", "2", "in.mp4", "out.mp4"]) == EXIT_FAILURE
        assert "decoder failed (exit status 1)" in capsys.readouterr().err

    @patch("motion_speedup.cli.StreamPipeline.run")
    def test_success_summary(self, mock_run, capsys):
        """A successful run prints how many frames were kept."""
        mock_run.return_value = SpeedupResult(frame_count=100, dropped=75, frames_written=25)

        assert main(["-W", "4", "-H", "2", "-s", "4", "in.mp4", "out.mp4"]) == EXIT_OK
        assert "✓ All done! Kept 25 of 100 frames." in capsys.readouterr().out

    @patch("motion_speedup.cli.StreamPipeline.run")
    def test_quiet_success(self, mock_run, capsys):
        """-q suppresses the summary."""
        mock_run.return_value = SpeedupResult(frame_count=10, dropped=5)

        assert main(["-q", "-W", "4", "-H", "2", "-s", "2", "in.mp4", "out.mp4"]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_print_motion_from_cache(self, tmp_path, capsys):
        """--print-motion prints cached scores one per line."""
        motion_file = str(tmp_path / "in.motion")
        save_scores(motion_file, [0.5, 2.0])

        status = main(["-W", "4", "-H", "2", "--print-motion", "-m", motion_file, "in.mp4"])

        assert status == EXIT_OK
        assert capsys.readouterr().out == "0.500000\n2.000000\n"

    @needs_fifo
    def test_end_to_end(self, make_source, fake_ffmpeg, fake_sox, tmp_path, leftovers):
        """A full run through the CLI with scripted collaborators."""
        source = make_source(gray=[0, 0, 90, 90, 0, 0, 90, 0], color_frames=8)
        output = str(tmp_path / "out.mp4")
        audio = str(tmp_path / "out.wav")

        status = main(
            [
                "-q",
                "-W", "4",
                "-H", "2",
                "-s", "2",
                "--window-size", "1",
                "--ffmpeg", fake_ffmpeg,
                "--sox", fake_sox,
                "-a", audio,
                source,
                output,
            ]
        )

        assert status == EXIT_OK
        assert os.path.getsize(output) == 4 * 12
        assert os.path.exists(audio)
        assert leftovers() == []

    @needs_fifo
    def test_motion_only_end_to_end(self, make_source, fake_ffmpeg, tmp_path):
        """-M writes the score cache and nothing else."""
        source = make_source(gray=[0, 10, 20])
        motion_file = str(tmp_path / "clip.motion")

        status = main(
            ["-q", "-W", "4", "-H", "2", "-M", "--ffmpeg", fake_ffmpeg, source, motion_file]
        )

        assert status == EXIT_OK
        assert len(load_scores(motion_file)) == 3

    @needs_fifo
    def test_decoder_failure_exit_status(self, make_source, fake_ffmpeg, monkeypatch, capsys):
        """A failing decoder is reported on stderr with status 1."""
        source = make_source(gray=[0, 10])
        monkeypatch.setenv("FAKE_FFMPEG_FAIL", "decode")

        argv = ["-q", "-W", "4", "-H", "2", "-s", "2", "--ffmpeg", fake_ffmpeg, source, "o.mp4"]
        status = main(argv)

        assert status == EXIT_FAILURE
        assert "decode failed" in capsys.readouterr().err
