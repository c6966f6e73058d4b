"""
Motion score sequences: trailing-window smoothing and on-disk caching.

Raw per-frame motion is spiky. Summing a short trailing window gives the
frame selector local context, so a single bright flash does not protect
the static frames around it from being dropped.

Scores are cached as a flat array of little-endian float64 values, one per
frame, with no header. The frame count is the file size divided by 8.
"""

from __future__ import annotations

import os

import numpy as np

SCORE_DTYPE = np.dtype("<f8")


def default_window_size(fps: float) -> int:
    """Window covering one third of a second at ``fps``, at least one frame."""
    return max(1, int(fps) // 3)


def smooth_scores(scores, window_size: int) -> np.ndarray:
    """
    Replace every score with the sum of its trailing window.

    Element ``i`` of the result is the sum of the original elements
    ``[max(0, i - window_size + 1), i]``. The input is never modified, so
    no output value is ever computed from an already-smoothed neighbour.

    Args:
        scores: Sequence of motion scores.
        window_size: Number of frames per window, at least 1. A window of 1
            returns an unchanged copy.

    Returns:
        numpy.ndarray: New float64 array of the same length.

    Raises:
        ValueError: If window_size is smaller than 1.

    Example:
        >>> smooth_scores([1.0, 2.0, 3.0, 4.0], 2)
        array([1., 3., 5., 7.])
    """
    if window_size < 1:
        raise ValueError(f"Window size must be at least 1, got {window_size}")

    original = np.asarray(scores, dtype=np.float64)
    smoothed = original.copy()
    count = len(original)

    # Add x[i-1], x[i-2], ... in that order for every i at once
    for offset in range(1, min(window_size, count)):
        smoothed[offset:] += original[:-offset]

    return smoothed


def save_scores(path: str, scores) -> None:
    """
    Write motion scores to a score cache file.

    Args:
        path: Destination path. Parent directories are created.
        scores: Sequence of motion scores in frame order.
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    np.asarray(scores, dtype=SCORE_DTYPE).tofile(path)


def load_scores(path: str) -> np.ndarray:
    """
    Read a score cache file written by :func:`save_scores`.

    A trailing partial value (file size not a multiple of 8 bytes) is
    treated as truncation and ignored.

    Args:
        path: Path to the cache file.

    Returns:
        numpy.ndarray: Native float64 array with one score per frame.

    Raises:
        OSError: If the file cannot be read.
    """
    with open(path, "rb") as f:
        payload = f.read()
    usable = len(payload) - (len(payload) % SCORE_DTYPE.itemsize)
    values = np.frombuffer(payload[:usable], dtype=SCORE_DTYPE)
    return values.astype(np.float64)
