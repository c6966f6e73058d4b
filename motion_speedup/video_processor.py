"""
FFmpeg command construction and source probing.

The pipeline never decodes or encodes pixels itself. This module builds the
argument lists for the ffmpeg collaborator processes that turn the source
into raw frames and raw frames back into a finished H.264 container.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass

import cv2

# Raw pixel formats exchanged with the decode/encode collaborators
GRAY_PIX_FMT = "gray"
COLOR_PIX_FMT = "yuv420p"

DEFAULT_CRF = 16


def gray_frame_size(width: int, height: int) -> int:
    """Bytes per frame of 8-bit single-channel video."""
    return width * height


def color_frame_size(width: int, height: int) -> int:
    """Bytes per frame of 4:2:0 chroma-subsampled video (yuv420p)."""
    return width * height * 6 // 4


def split_command(command: str) -> list[str]:
    """Split a configured collaborator command (e.g. ``"ffmpeg"``) into argv."""
    return shlex.split(command)


def get_encoder_options(crf: int = DEFAULT_CRF) -> list[str]:
    """
    Codec arguments for the reassembly encoder.

    Output is always libx264 so that a given CRF means the same quality on
    every machine.

    Args:
        crf: Constant rate factor, 0-51. Lower is better; 16 is close to
            visually lossless.

    Returns:
        list[str]: e.g. ``["-c:v", "libx264", "-crf", "16"]``.

    Raises:
        ValueError: If crf is outside libx264's range.
    """
    if not 0 <= crf <= 51:
        raise ValueError(f"CRF must be between 0 and 51, got {crf}")
    return ["-c:v", "libx264", "-crf", str(crf)]


# =============================================================================
# Collaborator command lines
# =============================================================================


def build_decode_command(
    ffmpeg_command: str, source_path: str, pix_fmt: str, output_path: str
) -> list[str]:
    """
    Build the ffmpeg command that decodes the source into raw frames.

    Frames are written in display order with no headers, each exactly
    ``width * height * bytes_per_pixel`` bytes.

    Args:
        ffmpeg_command: Configured ffmpeg executable.
        source_path: Video to decode.
        pix_fmt: Raw pixel format, ``"gray"`` for scoring or ``"yuv420p"``
            for reassembly.
        output_path: Destination, normally a FIFO.

    Returns:
        list[str]: Argument vector for subprocess.
    """
    return [
        *split_command(ffmpeg_command),
        "-nostdin",
        "-loglevel",
        "error",
        "-i",
        source_path,
        "-an",
        "-sn",
        "-f",
        "rawvideo",
        "-pix_fmt",
        pix_fmt,
        "-y",  # The FIFO already exists
        output_path,
    ]


def build_encode_command(
    ffmpeg_command: str,
    input_path: str,
    output_path: str,
    width: int,
    height: int,
    fps: float,
    encoder_options: list[str],
) -> list[str]:
    """
    Build the ffmpeg command that encodes raw yuv420p frames into a container.

    Args:
        ffmpeg_command: Configured ffmpeg executable.
        input_path: Raw frame source, normally a FIFO.
        output_path: Finished video file.
        width: Frame width.
        height: Frame height.
        fps: Output frame rate.
        encoder_options: Codec arguments from :func:`get_encoder_options`.

    Returns:
        list[str]: Argument vector for subprocess.
    """
    return [
        *split_command(ffmpeg_command),
        "-nostdin",
        "-loglevel",
        "error",
        "-f",
        "rawvideo",
        "-pixel_format",
        COLOR_PIX_FMT,
        "-r",
        f"{fps:g}",
        "-video_size",
        f"{width}x{height}",
        "-i",
        input_path,
        "-an",
        *encoder_options,
        "-y",
        output_path,
    ]


# =============================================================================
# Source probing
# =============================================================================


@dataclass
class VideoInfo:
    """Basic properties of a source video.

    Attributes:
        width: Frame width in pixels.
        height: Frame height in pixels.
        fps: Reported frame rate (0.0 if unknown).
        frame_count: Reported frame count (0 if unknown).
    """

    width: int
    height: int
    fps: float = 0.0
    frame_count: int = 0


def probe_video(video_path: str) -> VideoInfo | None:
    """
    Read width, height, frame rate and frame count with OpenCV.

    Args:
        video_path: Path to the source video.

    Returns:
        VideoInfo, or None if OpenCV cannot open the file.
    """
    cap = cv2.VideoCapture(video_path)
    try:
        if not cap.isOpened():
            return None
        return VideoInfo(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=float(cap.get(cv2.CAP_PROP_FPS) or 0.0),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )
    finally:
        cap.release()
