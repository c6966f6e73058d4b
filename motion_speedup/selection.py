"""
Greedy frame selection driven by windowed motion scores.

The selector drops the lowest-scoring frame, hands part of its score to the
next surviving frame, and repeats. Passing weight forward makes a frame that
follows a dropped one less likely to be dropped itself, which spreads drops
out instead of cutting long runs of consecutive frames.
"""

from __future__ import annotations

import math
from fractions import Fraction

import numpy as np

from .errors import ConfigurationError
from .ranked_pool import RankedPool


def compute_drop_count(
    frame_count: int,
    speedup: float | None = None,
    drop_frames: int | None = None,
    keep_frames: int | None = None,
) -> int:
    """
    Work out how many frames to drop from exactly one target option.

    Args:
        frame_count: Number of scored frames.
        speedup: Target playback speedup (>= 1). Drops
            ``floor(frame_count * (speedup - 1) / speedup)`` frames.
        drop_frames: Explicit number of frames to drop.
        keep_frames: Explicit number of frames to keep.

    Returns:
        int: Drop count in ``[0, frame_count]``.

    Raises:
        ConfigurationError: If not exactly one option is given, or the value
            is out of range for this frame count.
    """
    given = [option for option in (speedup, drop_frames, keep_frames) if option is not None]
    if len(given) != 1:
        raise ConfigurationError(
            "Exactly one of speedup, drop frames or keep frames must be given"
        )

    if speedup is not None:
        factor = Fraction(str(speedup))
        if factor < 1:
            raise ConfigurationError(f"Speedup must be at least 1, got {speedup}")
        return math.floor(frame_count * (factor - 1) / factor)

    if keep_frames is not None:
        if keep_frames < 0 or keep_frames > frame_count:
            raise ConfigurationError(
                f"Cannot keep {keep_frames} frames of a {frame_count}-frame source"
            )
        return frame_count - keep_frames

    if drop_frames < 0 or drop_frames > frame_count:
        raise ConfigurationError(
            f"Cannot drop {drop_frames} frames of a {frame_count}-frame source"
        )
    return drop_frames


def select_frames(scores, drop_count, redistribution_divisor=1.0, progress=False):
    """
    Choose exactly ``drop_count`` frames to omit.

    Each iteration takes the pool entry at the cursor, which is the smallest
    entry the loop has not yet consumed, and drops it. Its nearest surviving
    successor in frame order is pulled out of the unconsumed part of the
    pool, gains ``victim.value / redistribution_divisor`` and goes back in
    at its new sorted position. Equal scores drop the earlier frame first.

    Args:
        scores: Windowed motion scores, one per frame.
        drop_count (int): Number of frames to drop, ``0 <= drop_count <= len(scores)``.
        redistribution_divisor (float): How much of a dropped frame's score
            moves to its successor. 0 disables redistribution entirely
            (an infinite divisor).
        progress (bool): Print a running counter every 100 drops.

    Returns:
        numpy.ndarray: Boolean selection bitmap, True for dropped frames.

    Raises:
        ValueError: If drop_count is outside ``[0, len(scores)]``.
        PoolInvariantError: If the pool loses its sorted order.

    Example:
        >>> select_frames([1, 10, 1, 10, 1], 2).nonzero()[0].tolist()
        [0, 2]
    """
    return select_from_pool(RankedPool(scores), drop_count, redistribution_divisor, progress)


def select_from_pool(pool, drop_count, redistribution_divisor=1.0, progress=False):
    """
    Run the drop loop of :func:`select_frames` on an existing pool.

    The pool is consumed: afterwards its records carry their final values,
    including every share passed on from dropped frames.

    Returns:
        numpy.ndarray: Boolean selection bitmap, True for dropped frames.
    """
    frame_count = len(pool)
    if drop_count < 0 or drop_count > frame_count:
        raise ValueError(f"Cannot drop {drop_count} of {frame_count} frames")

    selection = np.zeros(frame_count, dtype=bool)

    for cursor in range(drop_count):
        if progress and cursor % 100 == 0:
            print(f"Selecting: {cursor}/{drop_count}", end="\r")

        victim = pool[cursor]
        pool.mark_dropped(victim)
        selection[victim.frame_index] = True

        successor = pool.successor_not_dropped(victim)
        if successor is None:
            # Last surviving frame in time order: dropped with no hand-off
            continue

        pool.remove_at(pool.locate(successor, cursor + 1))
        if redistribution_divisor != 0:
            successor.value += victim.value / redistribution_divisor
        pool.insert_sorted(successor, cursor + 1)

    return selection
