"""
Motion Speedup - Content-aware temporal downsampling of video.

This package speeds a video up by dropping frames, preferring frames with
little motion. Each frame gets a log-intensity difference score, scores are
smoothed over a short trailing window, and a greedy selector drops the
lowest-scoring frames while passing part of each dropped frame's score on to
the next surviving frame. The audio track is re-timed segment by segment to
match the uneven cut.

Decoding, encoding and audio resampling are delegated to ffmpeg and sox
processes connected through named pipes.
"""

from .audio import AudioSegment, build_resample_effects, plan_audio_segments, split_tempo_ratio
from .conduit import CollaboratorProcess, ConduitDirectory, open_conduit
from .errors import (
    CollaboratorError,
    ConduitError,
    ConfigurationError,
    PoolInvariantError,
    SpeedupError,
)
from .pipeline import SpeedupConfig, SpeedupResult, StreamPipeline
from .profiler import LOG_TABLE, MotionProfiler, compute_motion_score, profile_motion
from .ranked_pool import FrameScore, RankedPool
from .scores import default_window_size, load_scores, save_scores, smooth_scores
from .selection import compute_drop_count, select_frames, select_from_pool
from .video_processor import VideoInfo, probe_video

__version__ = "0.1.0"
__all__ = [
    "LOG_TABLE",
    "AudioSegment",
    "CollaboratorError",
    "CollaboratorProcess",
    "ConduitDirectory",
    "ConduitError",
    "ConfigurationError",
    "FrameScore",
    "MotionProfiler",
    "PoolInvariantError",
    "RankedPool",
    "SpeedupConfig",
    "SpeedupError",
    "SpeedupResult",
    "StreamPipeline",
    "VideoInfo",
    "build_resample_effects",
    "compute_drop_count",
    "compute_motion_score",
    "default_window_size",
    "load_scores",
    "open_conduit",
    "plan_audio_segments",
    "probe_video",
    "profile_motion",
    "save_scores",
    "select_frames",
    "select_from_pool",
    "smooth_scores",
    "split_tempo_ratio",
]
