"""
StreamPipeline class that orchestrates scoring, selection and reassembly.

This module provides the high-level interface for motion-aware speedup,
coordinating the motion profiler, the frame selector, the ffmpeg
collaborators that decode and encode raw frames, and the audio re-timing.
"""

from __future__ import annotations

import os
import tempfile
import time
from dataclasses import dataclass

import numpy as np

from .audio import DEFAULT_SAMPLE_RATE, resync_audio
from .conduit import CollaboratorProcess, ConduitDirectory, open_conduit
from .errors import CollaboratorError, ConfigurationError
from .profiler import profile_motion
from .scores import default_window_size, load_scores, save_scores, smooth_scores
from .selection import compute_drop_count, select_frames
from .utils import read_frame, save_scores_to_csv
from .video_processor import (
    COLOR_PIX_FMT,
    DEFAULT_CRF,
    GRAY_PIX_FMT,
    build_decode_command,
    build_encode_command,
    color_frame_size,
    get_encoder_options,
    probe_video,
)


@dataclass
class SpeedupConfig:
    """Options for one speedup run.

    Attributes:
        input_path: Source video.
        output_path: Encoded result (unused in motion-only mode).
        width: Frame width of the source.
        height: Frame height of the source.
        speedup: Target speedup factor; one of speedup/drop_frames/keep_frames.
        drop_frames: Explicit number of frames to drop.
        keep_frames: Explicit number of frames to keep.
        motion_file: Score cache; read when present, written otherwise.
        motion_only: Stop after the motion scores are computed (and cached
            when a motion file is set).
        window_size: Trailing window in frames; 0 means a third of a second.
        redistribution_divisor: Share of a dropped frame's score passed to
            its successor is ``1 / divisor``; 0 disables the hand-off.
        fps: Frame rate of the source and the output.
        audio_output: Where to write the re-timed audio, if wanted.
        scores_csv: Optional per-frame CSV export.
        ffmpeg_command: ffmpeg executable (may include extra arguments).
        sox_command: sox executable.
        crf: libx264 constant rate factor.
        audio_sample_rate: Rate for resampled audio segments.
        verbose: Print progress and summaries.
    """

    input_path: str
    output_path: str | None = None
    width: int = 0
    height: int = 0
    speedup: float | None = None
    drop_frames: int | None = None
    keep_frames: int | None = None
    motion_file: str | None = None
    motion_only: bool = False
    window_size: int = 0
    redistribution_divisor: float = 1.0
    fps: float = 30
    audio_output: str | None = None
    scores_csv: str | None = None
    ffmpeg_command: str = "ffmpeg"
    sox_command: str = "sox"
    crf: int = DEFAULT_CRF
    audio_sample_rate: int = DEFAULT_SAMPLE_RATE
    verbose: bool = True

    def validate(self) -> None:
        """
        Check the options before any file or process is touched.

        Raises:
            ConfigurationError: If options are missing or contradictory.
        """
        if not self.input_path:
            raise ConfigurationError("An input file is required")
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError("Frame width and height must be positive")
        if self.fps <= 0:
            raise ConfigurationError(f"Frame rate must be positive, got {self.fps}")
        if self.window_size < 0:
            raise ConfigurationError(f"Window size cannot be negative, got {self.window_size}")
        if not 0 <= self.crf <= 51:
            raise ConfigurationError(f"CRF must be between 0 and 51, got {self.crf}")

        if self.motion_only:
            return

        if not self.output_path:
            raise ConfigurationError("An output file is required")
        targets = [t for t in (self.speedup, self.drop_frames, self.keep_frames) if t is not None]
        if len(targets) != 1:
            raise ConfigurationError(
                "Exactly one of speedup, drop frames or keep frames must be given"
            )
        if self.speedup is not None and self.speedup < 1:
            raise ConfigurationError(f"Speedup must be at least 1, got {self.speedup}")
        if any(t < 0 for t in (self.drop_frames, self.keep_frames) if t is not None):
            raise ConfigurationError("Frame counts cannot be negative")

    @property
    def effective_window_size(self) -> int:
        if self.window_size == 0:
            return default_window_size(self.fps)
        return self.window_size


@dataclass
class SpeedupResult:
    """Summary of a finished run."""

    frame_count: int
    dropped: int
    frames_written: int = 0
    output_path: str | None = None
    audio_path: str | None = None


class StreamPipeline:
    """
    Motion-aware video speedup driven by external ffmpeg/sox processes.

    The run has two streaming passes over the source. The scoring pass
    decodes grayscale frames through a FIFO and turns them into motion
    scores. After the selection bitmap is complete, the reassembly pass
    decodes full-colour yuv420p frames through one FIFO and writes the kept
    ones to an encoder through another. Both passes read and write frames
    strictly in order; FIFO backpressure keeps memory bounded.

    Attributes:
        config (SpeedupConfig): Validated run options.
        scores (numpy.ndarray | None): Raw motion scores once computed.
        selection (numpy.ndarray | None): Selection bitmap once computed.

    Example:
        >>> pipeline = StreamPipeline(SpeedupConfig(
        ...     input_path="talk.mp4", output_path="talk-fast.mp4",
        ...     width=1280, height=720, speedup=4))
        >>> result = pipeline.run()
    """

    def __init__(self, config: SpeedupConfig):
        config.validate()
        self.config = config
        self.scores: np.ndarray | None = None
        self.selection: np.ndarray | None = None

    def _print(self, *args, **kwargs) -> None:
        if self.config.verbose:
            print(*args, **kwargs)

    def check_source(self) -> None:
        """
        Warn when the declared dimensions disagree with the source.

        The warning is the only effect, so nothing is probed in quiet runs.
        """
        if not self.config.verbose:
            return
        info = probe_video(self.config.input_path)
        if info is None or info.width == 0 or info.height == 0:
            return
        if (info.width, info.height) != (self.config.width, self.config.height):
            self._print(
                f"⚠ Source is {info.width}x{info.height} but "
                f"{self.config.width}x{self.config.height} was given; "
                "frames will be misaligned"
            )

    # =========================================================================
    # Scoring pass
    # =========================================================================

    def compute_scores(self) -> np.ndarray:
        """
        Get the raw motion scores, from the cache when possible.

        If a motion file is configured and exists it is loaded and the
        source is not decoded. Otherwise the scoring pass runs and, when a
        motion file is configured, its result is written there.

        Returns:
            numpy.ndarray: One raw score per frame.

        Raises:
            CollaboratorError: If the decoder fails.
            ConduitError: If the FIFO cannot be created or opened.
        """
        motion_file = self.config.motion_file
        if motion_file and os.path.exists(motion_file):
            self.scores = load_scores(motion_file)
            self._print(f"✓ Loaded {len(self.scores)} motion scores from {motion_file}")
            return self.scores

        self.scores = self._run_scoring_pass()
        if motion_file:
            save_scores(motion_file, self.scores)
            self._print(f"✓ Motion scores saved to {motion_file}")
        return self.scores

    def _run_scoring_pass(self) -> np.ndarray:
        config = self.config
        self._print(f"Analyzing motion: {config.input_path}")
        t0 = time.time()

        with ConduitDirectory() as conduits:
            fifo = conduits.make_fifo("motion.gray")
            decoder = CollaboratorProcess(
                build_decode_command(config.ffmpeg_command, config.input_path, GRAY_PIX_FMT, fifo),
                "motion decoder",
                conduits.file_path("motion-decoder.log"),
            )
            with decoder:
                with open_conduit(fifo, "rb", decoder) as reader:
                    scores = profile_motion(
                        reader, config.width, config.height, progress=config.verbose
                    )
                decoder.wait_success()

        self._print(f"✓ Scored {len(scores)} frames in {time.time() - t0:.1f}s")
        return scores

    # =========================================================================
    # Selection
    # =========================================================================

    def select(self, scores=None) -> np.ndarray:
        """
        Window the scores and choose which frames to drop.

        Args:
            scores: Raw scores; defaults to the ones from compute_scores().

        Returns:
            numpy.ndarray: Selection bitmap (True = drop).
        """
        config = self.config
        if scores is None:
            scores = self.scores if self.scores is not None else self.compute_scores()
        frame_count = len(scores)

        drop_count = compute_drop_count(
            frame_count,
            speedup=config.speedup,
            drop_frames=config.drop_frames,
            keep_frames=config.keep_frames,
        )

        window_size = config.effective_window_size
        windowed = smooth_scores(scores, window_size)

        self._print("\n" + "=" * 70)
        self._print(f"Selecting frames: dropping {drop_count} of {frame_count}")
        self._print(f"Window: {window_size} frames, divisor: {config.redistribution_divisor}")
        self._print("=" * 70)

        self.selection = select_frames(
            windowed, drop_count, config.redistribution_divisor, progress=config.verbose
        )
        self._print(f"✓ Selected {frame_count - drop_count} frames to keep")

        if config.scores_csv:
            save_scores_to_csv(
                config.scores_csv, scores, windowed, self.selection, config.fps, config.verbose
            )
        return self.selection

    # =========================================================================
    # Reassembly pass
    # =========================================================================

    def reassemble(self, selection=None) -> int:
        """
        Stream the source through and encode only the kept frames.

        Reads up to ``len(selection)`` frames. If the source runs out first
        the output is simply shorter. If the source has more frames than the
        selection covers, the decoder is stopped once enough have been read.

        Args:
            selection: Selection bitmap; defaults to the one from select().

        Returns:
            int: Number of frames written to the encoder.

        Raises:
            CollaboratorError: If the decoder or encoder fails.
            ConduitError: If a FIFO cannot be created or opened.
        """
        config = self.config
        if selection is None:
            selection = self.selection
        frame_count = len(selection)
        frame_size = color_frame_size(config.width, config.height)
        encoder_options = get_encoder_options(config.crf)

        self._print("\n" + "=" * 70)
        self._print(f"Writing {config.output_path}")
        self._print(f"Encoder: libx264, CRF {config.crf}")
        self._print("=" * 70)
        t0 = time.time()

        frames_read = 0
        frames_written = 0
        source_exhausted = False

        with ConduitDirectory() as conduits:
            decode_fifo = conduits.make_fifo("decode.yuv")
            encode_fifo = conduits.make_fifo("encode.yuv")
            decoder = CollaboratorProcess(
                build_decode_command(
                    config.ffmpeg_command, config.input_path, COLOR_PIX_FMT, decode_fifo
                ),
                "decoder",
                conduits.file_path("decoder.log"),
            )
            encoder = CollaboratorProcess(
                build_encode_command(
                    config.ffmpeg_command,
                    encode_fifo,
                    config.output_path,
                    config.width,
                    config.height,
                    config.fps,
                    encoder_options,
                ),
                "encoder",
                conduits.file_path("encoder.log"),
            )

            with decoder, encoder:
                with open_conduit(decode_fifo, "rb", decoder) as reader:
                    writer = open_conduit(encode_fifo, "wb", encoder)
                    try:
                        while frames_read < frame_count:
                            frame = read_frame(reader, frame_size)
                            if frame is None:
                                source_exhausted = True
                                break
                            if not selection[frames_read]:
                                writer.write(frame)
                                frames_written += 1
                            frames_read += 1
                            if frames_read % 100 == 0:
                                progress = frames_read / frame_count * 100
                                self._print(f"Progress: {progress:.1f}%", end="\r")
                        writer.close()
                    except BrokenPipeError as e:
                        raise CollaboratorError(
                            "encoder stopped reading frames",
                            encoder.command,
                            encoder.poll(),
                            encoder.stderr_tail(),
                        ) from e
                    finally:
                        _discard(writer)

                    if not source_exhausted:
                        source_exhausted = reader.read(1) == b""

                if source_exhausted:
                    decoder.wait_success()
                else:
                    # More frames than scores: we hung up on the decoder
                    decoder.stop()
                encoder.wait_success()

        if frames_read < frame_count:
            self._print(
                f"\n⚠ Source ended after {frames_read} of {frame_count} frames; "
                "output truncated"
            )
        self._print(
            f"✓ Wrote {frames_written} frames to {config.output_path} "
            f"in {time.time() - t0:.1f}s"
        )
        return frames_written

    # =========================================================================
    # Audio
    # =========================================================================

    def resync_audio(self, selection=None) -> str:
        """
        Re-time the source audio to match the selection.

        Returns:
            str: Path of the audio file written.
        """
        config = self.config
        if selection is None:
            selection = self.selection
        self._print(f"\nRe-timing audio into {config.audio_output}")
        with tempfile.TemporaryDirectory(prefix="motion_speedup.audio.") as work_dir:
            segments = resync_audio(
                config.input_path,
                selection,
                config.fps,
                config.audio_output,
                work_dir,
                ffmpeg_command=config.ffmpeg_command,
                sox_command=config.sox_command,
                sample_rate=config.audio_sample_rate,
            )
        self._print(f"✓ Audio written in {len(segments)} segments")
        return config.audio_output

    def run(self) -> SpeedupResult:
        """
        Execute every configured stage.

        Returns:
            SpeedupResult: Counts and output paths for the run.
        """
        config = self.config
        self.check_source()

        scores = self.compute_scores()
        if config.motion_only:
            return SpeedupResult(frame_count=len(scores), dropped=0)

        selection = self.select(scores)
        frames_written = self.reassemble(selection)
        audio_path = self.resync_audio(selection) if config.audio_output else None

        return SpeedupResult(
            frame_count=len(scores),
            dropped=int(np.count_nonzero(selection)),
            frames_written=frames_written,
            output_path=config.output_path,
            audio_path=audio_path,
        )


def _discard(stream) -> None:
    """Close a FIFO writer whose reader may already be gone."""
    try:
        stream.close()
    except BrokenPipeError:
        pass
