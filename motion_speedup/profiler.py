"""
Motion profiling for raw grayscale frame streams.

This module converts a stream of fixed-size single-channel frames into one
scalar motion score per frame. The score is the summed absolute difference
of log-intensities between each frame and the frame before it, which weighs
changes in dark regions about as heavily as changes in bright ones.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import BinaryIO

import numpy as np

from .utils import read_frame
from .video_processor import gray_frame_size

# log(v + 1) for every possible 8-bit sample value
LOG_TABLE = np.log(np.arange(256, dtype=np.float64) + 1.0)


def compute_motion_score(current, previous) -> float:
    """
    Compute the log-intensity difference between two grayscale frames.

    Args:
        current (numpy.ndarray): Current frame samples, dtype uint8.
        previous (numpy.ndarray): Previous frame samples, dtype uint8,
            same shape as ``current``.

    Returns:
        float: Sum over all samples of ``|log(cur + 1) - log(prev + 1)|``.
            - 0: Frames are identical
            - Larger values mean more pixel-level change

    Example:
        >>> black = np.zeros(4, dtype=np.uint8)
        >>> compute_motion_score(black, black)
        0.0
    """
    diff = np.abs(LOG_TABLE[current] - LOG_TABLE[previous])
    return float(diff.sum())


class MotionProfiler:
    """
    Stateful scorer for a sequence of raw single-channel frames.

    The profiler keeps exactly one previous-frame buffer. Before the first
    frame that buffer is all black, so the first score is the frame's own
    log-intensity profile; this makes the opening frame look like a burst of
    motion and it is kept that way on purpose.

    Attributes:
        width (int): Frame width in samples.
        height (int): Frame height in samples.
        frame_size (int): Bytes per frame (``width * height``).

    Example:
        >>> profiler = MotionProfiler(320, 240)
        >>> with open("frames.gray", "rb") as stream:
        ...     scores = list(profiler.profile_stream(stream))
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid frame dimensions: {width}x{height}")
        self.width = width
        self.height = height
        self.frame_size = gray_frame_size(width, height)
        self._previous = np.zeros(self.frame_size, dtype=np.uint8)
        self.frames_scored = 0

    def reset(self) -> None:
        """Forget the previous frame and start again from a black reference."""
        self._previous = np.zeros(self.frame_size, dtype=np.uint8)
        self.frames_scored = 0

    def score_frame(self, frame) -> float:
        """
        Score one frame against the previous one and remember it.

        Args:
            frame: Raw frame as ``bytes``/``bytearray`` or a uint8 array with
                exactly ``frame_size`` samples. The caller may reuse its buffer
                afterwards; the profiler keeps its own copy.

        Returns:
            float: The motion score for this frame.

        Raises:
            ValueError: If the frame does not hold exactly ``frame_size`` samples.
        """
        if isinstance(frame, (bytes, bytearray, memoryview)):
            current = np.frombuffer(frame, dtype=np.uint8)
        else:
            current = np.asarray(frame, dtype=np.uint8).reshape(-1)

        if current.size != self.frame_size:
            raise ValueError(
                f"Expected {self.frame_size} samples per frame, got {current.size}"
            )

        score = compute_motion_score(current, self._previous)
        self._previous = current.copy()
        self.frames_scored += 1
        return score

    def profile_stream(self, stream: BinaryIO) -> Iterator[float]:
        """
        Lazily score every complete frame read from a binary stream.

        Reading stops at end-of-stream. A short read means the source was
        truncated: the partial frame is discarded and iteration ends.

        Args:
            stream: Readable binary file object (e.g. an opened FIFO).

        Yields:
            float: One motion score per complete frame, in frame order.
        """
        while True:
            raw = read_frame(stream, self.frame_size)
            if raw is None:
                return
            yield self.score_frame(raw)


def profile_motion(stream: BinaryIO, width: int, height: int, progress: bool = False):
    """
    Score a whole grayscale stream and collect the results.

    Args:
        stream: Readable binary stream of raw ``gray`` frames.
        width: Frame width.
        height: Frame height.
        progress: Print a running frame counter every 100 frames.

    Returns:
        numpy.ndarray: float64 array with one score per complete frame.
    """
    profiler = MotionProfiler(width, height)
    scores = []
    for score in profiler.profile_stream(stream):
        scores.append(score)
        if progress and len(scores) % 100 == 0:
            print(f"Scored {len(scores)} frames", end="\r")
    return np.asarray(scores, dtype=np.float64)
