"""
Command-line interface for motion-aware video speedup.

Examples:
    motion-speedup -W 1280 -H 720 -s 4 talk.mp4 talk-fast.mp4
    motion-speedup -W 1280 -H 720 -M talk.mp4 talk.motion
    motion-speedup -W 1280 -H 720 -m talk.motion --keep-frames 900 \\
        -a talk-fast.wav talk.mp4 talk-fast.mp4
"""

from __future__ import annotations

import argparse
import sys

from .errors import ConfigurationError, SpeedupError
from .pipeline import SpeedupConfig, StreamPipeline
from .utils import print_motion_scores

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motion-speedup",
        description="Speed up a video by dropping its lowest-motion frames first.",
    )
    parser.add_argument("input", help="source video")
    parser.add_argument(
        "output",
        nargs="?",
        help="output video (or the motion file in motion-only mode)",
    )
    parser.add_argument("-W", "--width", type=int, required=True, help="frame width")
    parser.add_argument("-H", "--height", type=int, required=True, help="frame height")

    target = parser.add_mutually_exclusive_group()
    target.add_argument("-s", "--speedup", type=float, help="target speedup factor")
    target.add_argument("--drop-frames", type=int, help="number of frames to drop")
    target.add_argument("--keep-frames", type=int, help="number of frames to keep")

    parser.add_argument("-m", "--motion-file", help="motion score cache (read if present)")
    parser.add_argument(
        "-M",
        "--motion-only",
        action="store_true",
        help="only compute and save motion scores",
    )
    parser.add_argument(
        "--print-motion",
        action="store_true",
        help="print the motion scores, one per line, and exit",
    )
    parser.add_argument(
        "--window-size",
        type=int,
        default=0,
        help="trailing window in frames (default: a third of a second)",
    )
    parser.add_argument(
        "--redistribution-divisor",
        "--clipshow-divisor",
        dest="redistribution_divisor",
        type=float,
        default=1.0,
        help="pass 1/DIVISOR of a dropped frame's score on to the next frame (0 = none)",
    )
    parser.add_argument("--fps", type=float, default=30, help="frame rate (default: 30)")
    parser.add_argument("-a", "--audio-output", help="write re-timed audio here")
    parser.add_argument("--scores-csv", help="write per-frame motion data as CSV")
    parser.add_argument("--ffmpeg", default="ffmpeg", help="ffmpeg command")
    parser.add_argument("--sox", default="sox", help="sox command")
    parser.add_argument(
        "--crf", type=int, default=16, help="libx264 constant rate factor (default: 16)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="no progress output")
    return parser


def config_from_args(args: argparse.Namespace) -> SpeedupConfig:
    """
    Translate parsed arguments into a SpeedupConfig.

    In motion-only mode the positional output names the motion file when
    ``--motion-file`` is not given.

    Raises:
        ConfigurationError: If motion-only mode has nowhere to save scores.
    """
    motion_file = args.motion_file
    output = args.output
    if args.motion_only:
        if not motion_file:
            motion_file, output = output, None
        if not motion_file:
            raise ConfigurationError("Motion-only mode needs a motion file or output path")

    return SpeedupConfig(
        input_path=args.input,
        output_path=output,
        width=args.width,
        height=args.height,
        speedup=args.speedup,
        drop_frames=args.drop_frames,
        keep_frames=args.keep_frames,
        motion_file=motion_file,
        motion_only=args.motion_only or args.print_motion,
        window_size=args.window_size,
        redistribution_divisor=args.redistribution_divisor,
        fps=args.fps,
        audio_output=args.audio_output,
        scores_csv=args.scores_csv,
        ffmpeg_command=args.ffmpeg,
        sox_command=args.sox,
        crf=args.crf,
        verbose=not (args.quiet or args.print_motion),
    )


def main(argv=None) -> int:
    """
    Run the CLI.

    Returns:
        int: 0 on success, 2 on configuration errors, 1 on any other failure.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        pipeline = StreamPipeline(config)
        if args.print_motion:
            print_motion_scores(pipeline.compute_scores())
            return EXIT_OK
        result = pipeline.run()
    except ConfigurationError as e:
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (SpeedupError, OSError) as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if config.verbose:
        if config.motion_only:
            print(f"\n✓ All done! {result.frame_count} motion scores saved.")
        else:
            print(
                f"\n✓ All done! Kept {result.frame_count - result.dropped} of "
                f"{result.frame_count} frames."
            )
    return EXIT_OK
