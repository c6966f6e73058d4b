"""
Motion Speedup - Main entry point.

Speeds up a video by dropping its lowest-motion frames first and, when asked,
re-times the audio to match. Run with --help for the full option list.

Example:
    python main.py -W 1280 -H 720 -s 4 -a talk-fast.wav talk.mp4 talk-fast.mp4
"""

import sys

from motion_speedup.cli import main

if __name__ == "__main__":
    sys.exit(main())
