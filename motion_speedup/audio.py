"""
Audio re-timing for a variable-rate frame cut.

Dropping frames unevenly means the audio has to be squeezed by a different
amount in different places. The planner walks the selection bitmap and
closes a segment every time a tenth of a second of output has accumulated.
Each segment becomes one sox effects chain that trims its slice of input,
speeds it up and trims it to the output length; the chains are joined with
``:`` so a single sox run processes the whole track in order.

Large ratios are split between ``speed`` (resampling, shifts pitch) and
``tempo`` (time stretch, keeps pitch) because sox's tempo effect degrades
badly far from 1.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from fractions import Fraction

from .conduit import CollaboratorProcess
from .errors import CollaboratorError
from .video_processor import split_command

# Output accumulated before a segment is closed, in seconds
SEGMENT_FLUSH = Fraction(1, 10)
# Stand-in duration for a segment with no input or no output
DEGENERATE_DURATION = 0.1
DEFAULT_SAMPLE_RATE = 48000


@dataclass(frozen=True)
class AudioSegment:
    """One contiguous slice of the audio track and how to re-time it.

    Attributes:
        input_duration: Seconds of source audio consumed.
        output_duration: Seconds of audio produced.
        tempo_ratio: ``input_duration / output_duration``.
        speed_factor: Resampling speedup (changes pitch).
        tempo_factor: Remaining pitch-preserving speedup.
    """

    input_duration: float
    output_duration: float
    tempo_ratio: float
    speed_factor: float
    tempo_factor: float


def split_tempo_ratio(tempo_ratio: float) -> tuple[float, float]:
    """
    Decompose a speedup into ``(speed_factor, tempo_factor)``.

    Ratios of 40 and above use a fixed resampling speedup of 4; ratios from
    10 up resample just enough to leave a tempo change of exactly 10; smaller
    ratios are handled by tempo alone.

    Example:
        >>> split_tempo_ratio(20.0)
        (2.0, 10.0)
    """
    if tempo_ratio >= 40:
        return 4.0, tempo_ratio / 4
    if tempo_ratio >= 10:
        speed_factor = tempo_ratio / 10
        return speed_factor, tempo_ratio / speed_factor
    return 1.0, tempo_ratio


def _close_segment(input_duration: Fraction, output_duration: Fraction) -> AudioSegment:
    if input_duration == 0 or output_duration == 0:
        input_seconds = output_seconds = DEGENERATE_DURATION
    else:
        input_seconds = float(input_duration)
        output_seconds = float(output_duration)
    tempo_ratio = input_seconds / output_seconds
    speed_factor, tempo_factor = split_tempo_ratio(tempo_ratio)
    return AudioSegment(input_seconds, output_seconds, tempo_ratio, speed_factor, tempo_factor)


def plan_audio_segments(selection, fps) -> list[AudioSegment]:
    """
    Turn a selection bitmap into audio segments.

    Every frame adds ``1/fps`` seconds of input; kept frames also add
    ``1/fps`` of output. A segment closes as soon as at least 0.1 s of
    output has built up, and once more at the end of the stream if any
    input is still pending. Durations are accumulated as exact fractions,
    so a frame rate like 30 closes segments on exact boundaries.

    Args:
        selection: Boolean bitmap, True for dropped frames.
        fps: Frame rate (int, float or fraction string such as "30000/1001").

    Returns:
        list[AudioSegment]: Segments in playback order.

    Raises:
        ValueError: If fps is not positive.
    """
    frame_duration = 1 / _parse_fps(fps)
    segments = []
    input_duration = Fraction(0)
    output_duration = Fraction(0)

    for dropped in selection:
        input_duration += frame_duration
        if not dropped:
            output_duration += frame_duration
        if output_duration >= SEGMENT_FLUSH:
            segments.append(_close_segment(input_duration, output_duration))
            input_duration = Fraction(0)
            output_duration = Fraction(0)

    if input_duration > 0:
        segments.append(_close_segment(input_duration, output_duration))

    return segments


def _parse_fps(fps) -> Fraction:
    if isinstance(fps, str) and "/" in fps:
        numerator, denominator = fps.split("/")
        rate = Fraction(int(numerator), int(denominator))
    else:
        rate = Fraction(str(fps))
    if rate <= 0:
        raise ValueError(f"Frame rate must be positive, got {fps}")
    return rate


def build_resample_effects(segments, sample_rate: int = DEFAULT_SAMPLE_RATE) -> list[str]:
    """
    Build the sox effect arguments for all segments.

    Each segment contributes ``trim 0 <in>``, then ``speed <s> rate <sr>``
    when resampling is needed, ``tempo <t>`` when stretching is needed, and
    ``trim 0 <out>``. Chains are separated by ``:``.

    Args:
        segments: Output of :func:`plan_audio_segments`.
        sample_rate: Rate every sped-up segment is resampled to.

    Returns:
        list[str]: Effect tokens to append after the sox input/output files.
    """
    effects = []
    for i, segment in enumerate(segments):
        if i > 0:
            effects.append(":")
        effects += ["trim", "0", f"{segment.input_duration:.6f}"]
        if segment.speed_factor != 1:
            effects += ["speed", f"{segment.speed_factor:.8f}", "rate", str(sample_rate)]
        if segment.tempo_factor != 1:
            effects += ["tempo", f"{segment.tempo_factor:.8f}"]
        effects += ["trim", "0", f"{segment.output_duration:.6f}"]
    return effects


def build_extract_command(ffmpeg_command: str, source_path: str, wav_path: str) -> list[str]:
    """Command extracting the source's audio to 16-bit PCM WAV."""
    return [
        *split_command(ffmpeg_command),
        "-nostdin",
        "-loglevel",
        "error",
        "-i",
        source_path,
        "-vn",
        "-sn",
        "-acodec",
        "pcm_s16le",
        "-y",
        wav_path,
    ]


def build_resample_command(
    sox_command: str, wav_path: str, output_path: str, effects: list[str]
) -> list[str]:
    """Command applying the re-timing effects chains with sox."""
    return [*split_command(sox_command), wav_path, output_path, *effects]


def resync_audio(
    source_path: str,
    selection,
    fps,
    output_path: str,
    work_dir: str,
    ffmpeg_command: str = "ffmpeg",
    sox_command: str = "sox",
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> list[AudioSegment]:
    """
    Extract the source audio and re-time it to match the selection.

    Args:
        source_path: Video whose audio track is used.
        selection: Selection bitmap shared with the video reassembly.
        fps: Frame rate the bitmap refers to.
        output_path: Where sox writes the re-timed audio.
        work_dir: Scratch directory for the intermediate WAV and logs.
        ffmpeg_command: Configured ffmpeg executable.
        sox_command: Configured sox executable.
        sample_rate: Reference rate for resampled segments.

    Returns:
        list[AudioSegment]: The segments that were applied.

    Raises:
        CollaboratorError: If either tool fails or no output is produced.
    """
    segments = plan_audio_segments(selection, fps)
    if not segments:
        raise CollaboratorError("No audio segments to process (empty selection)")

    wav_path = os.path.join(work_dir, "audio-raw.wav")
    extract = CollaboratorProcess(
        build_extract_command(ffmpeg_command, source_path, wav_path),
        "audio extractor",
        os.path.join(work_dir, "audio-extract.log"),
    )
    with extract:
        extract.wait_success()

    resample = CollaboratorProcess(
        build_resample_command(
            sox_command, wav_path, output_path, build_resample_effects(segments, sample_rate)
        ),
        "audio resampler",
        os.path.join(work_dir, "audio-resample.log"),
    )
    with resample:
        resample.wait_success()

    if not os.path.isfile(output_path):
        raise CollaboratorError(f"Audio resampler did not create {output_path}", resample.command)

    return segments
