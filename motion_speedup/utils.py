"""
Utility functions for frame I/O, score export and statistics.

This module contains helpers shared by the profiler and the pipeline for
reading fixed-size frames, plus debug exports of per-frame motion data.
"""

import os

import numpy as np


def read_frame(stream, frame_size):
    """
    Read exactly one fixed-size frame from a binary stream.

    Keeps reading until ``frame_size`` bytes have arrived or the stream ends,
    so it works on raw FIFO file objects that return short reads.

    Args:
        stream: Readable binary file object.
        frame_size (int): Number of bytes in one frame.

    Returns:
        bytes or None: The frame, or None when the stream ended before a
            complete frame was available (a trailing partial frame is dropped).
    """
    chunks = []
    remaining = frame_size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            return None
        chunks.append(chunk)
        remaining -= len(chunk)
    if len(chunks) == 1:
        return bytes(chunks[0])
    return b"".join(chunks)


def save_scores_to_csv(csv_path, raw_scores, windowed_scores, selection, fps, verbose=True):
    """
    Save per-frame motion data to a CSV file for analysis.

    Writes one row per frame with the raw motion score, the windowed score
    the selector worked from and whether the frame was dropped, then prints
    summary statistics of the raw scores.

    Args:
        csv_path (str): Destination file path. Parent directories are created.
        raw_scores (numpy.ndarray): Scores straight from the motion profiler.
        windowed_scores (numpy.ndarray): Scores after trailing-window smoothing.
        selection (numpy.ndarray): Selection bitmap (True = dropped).
        fps (float): Frame rate used to compute timestamps.
        verbose (bool): Print the file location and statistics.

    Returns:
        dict: Statistics with keys "min", "max", "mean", "std" and "dropped".

    Output Format:
        Frame,Timestamp,Motion,Windowed,Dropped
        0,0.000,1234.56,1234.56,0
        1,0.033,12.40,1246.96,1
    """
    parent = os.path.dirname(csv_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(csv_path, "w") as f:
        f.write("Frame,Timestamp,Motion,Windowed,Dropped\n")
        for i in range(len(raw_scores)):
            f.write(
                f"{i},{i / fps:.3f},{raw_scores[i]:.2f},"
                f"{windowed_scores[i]:.2f},{int(bool(selection[i]))}\n"
            )

    if len(raw_scores) > 0:
        stats = {
            "min": float(np.min(raw_scores)),
            "max": float(np.max(raw_scores)),
            "mean": float(np.mean(raw_scores)),
            "std": float(np.std(raw_scores)),
        }
    else:
        stats = {"min": 0.0, "max": 0.0, "mean": 0.0, "std": 0.0}
    stats["dropped"] = int(np.count_nonzero(selection))

    if verbose:
        print(f"✓ Motion data saved to {csv_path}")
        print("\nStatistics:")
        print(
            f"  Motion score - Min: {stats['min']:.1f}, Max: {stats['max']:.1f}, "
            f"Mean: {stats['mean']:.1f}, StdDev: {stats['std']:.1f}"
        )
        print(f"  Dropped frames: {stats['dropped']} of {len(raw_scores)}")

    return stats


def print_motion_scores(scores, file=None):
    """Print one score per line with six decimals."""
    for value in scores:
        print(f"{value:f}", file=file)
