"""
Pytest configuration and shared fixtures for Motion Speedup tests.

This module provides frame and score fixtures plus scripted stand-ins for
the ffmpeg and sox collaborators, so the FIFO pipeline can be exercised
end to end without real media tools.
"""

import os
import shlex
import sys
import tempfile
import textwrap

import numpy as np
import pytest

# =============================================================================
# Scripted collaborators
# =============================================================================

FAKE_FFMPEG = textwrap.dedent(
    '''
    """Minimal ffmpeg stand-in working on pre-rendered raw frame files."""
    import os
    import sys

    args = sys.argv[1:]
    fail = os.environ.get("FAKE_FFMPEG_FAIL", "")

    output = args[-1]
    source = args[args.index("-i") + 1]

    if "-vn" in args:
        mode = "extract"
    elif "-f" in args and args.index("-f") < args.index("-i"):
        mode = "encode"
    else:
        mode = "decode"

    if fail == mode:
        sys.stderr.write(f"fake ffmpeg: {mode} failed\\n")
        sys.exit(1)

    if mode == "extract":
        with open(output, "wb") as f:
            f.write(b"RIFFfake")
    elif mode == "encode":
        with open(source, "rb") as src, open(output, "wb") as dst:
            dst.write(src.read())
    else:
        pix_fmt = args[args.index("-pix_fmt") + 1]
        with open(f"{source}.{pix_fmt}", "rb") as src:
            payload = src.read()
        try:
            with open(output, "wb") as dst:
                dst.write(payload)
        except BrokenPipeError:
            sys.exit(141)
    '''
)

FAKE_SOX = textwrap.dedent(
    '''
    """Minimal sox stand-in that records its arguments as JSON."""
    import json
    import os
    import sys

    if os.environ.get("FAKE_SOX_FAIL"):
        sys.stderr.write("fake sox: failed\\n")
        sys.exit(2)

    with open(sys.argv[2], "w") as f:
        json.dump(sys.argv[1:], f)
    '''
)


def _script_command(path):
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(path))}"


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Command string running the scripted ffmpeg."""
    script = tmp_path / "fake_ffmpeg.py"
    script.write_text(FAKE_FFMPEG)
    return _script_command(script)


@pytest.fixture
def fake_sox(tmp_path):
    """Command string running the scripted sox."""
    script = tmp_path / "fake_sox.py"
    script.write_text(FAKE_SOX)
    return _script_command(script)


@pytest.fixture
def isolated_tempdir(tmp_path, monkeypatch):
    """Redirect temporary directories so leftovers can be counted."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def _leftover_entries(directory):
    return [name for name in os.listdir(directory) if name.startswith("motion_speedup.")]


@pytest.fixture
def leftovers(isolated_tempdir):
    """Callable listing pipeline temporary directories still present."""
    return lambda: _leftover_entries(isolated_tempdir)


# =============================================================================
# Frame and score fixtures
# =============================================================================

FRAME_WIDTH = 4
FRAME_HEIGHT = 2


@pytest.fixture
def frame_dims():
    """Tiny frame geometry shared by the pipeline tests."""
    return FRAME_WIDTH, FRAME_HEIGHT


@pytest.fixture
def make_source(tmp_path):
    """
    Factory for a fake source video understood by the scripted ffmpeg.

    ``gray`` gives one flat frame per value for the scoring pass.
    ``color_frames`` writes that many yuv420p frames for reassembly, frame
    ``i`` filled with byte ``i``. Returns the source path.
    """

    def _make(gray=None, color_frames=None, name="clip.mp4"):
        path = tmp_path / name
        path.write_bytes(b"")
        if gray is not None:
            frames = [bytes([v]) * (FRAME_WIDTH * FRAME_HEIGHT) for v in gray]
            (tmp_path / f"{name}.gray").write_bytes(b"".join(frames))
        if color_frames is not None:
            frame_size = FRAME_WIDTH * FRAME_HEIGHT * 6 // 4
            payload = b"".join(bytes([i]) * frame_size for i in range(color_frames))
            (tmp_path / f"{name}.yuv420p").write_bytes(payload)
        return str(path)

    return _make


@pytest.fixture
def black_frame():
    """Create a 4x2 black gray frame (all zeros)."""
    return np.zeros(FRAME_WIDTH * FRAME_HEIGHT, dtype=np.uint8)


@pytest.fixture
def white_frame():
    """Create a 4x2 white gray frame (all 255s)."""
    return np.full(FRAME_WIDTH * FRAME_HEIGHT, 255, dtype=np.uint8)


@pytest.fixture
def gradient_frame():
    """Create a 4x2 gray frame with increasing sample values."""
    return np.arange(0, 8 * 30, 30, dtype=np.uint8)


@pytest.fixture
def sample_scores():
    """Create a short score sequence with two motion bursts."""
    return np.array([0.0, 1.0, 1.0, 50.0, 40.0, 2.0, 1.0, 0.0, 30.0, 3.0])


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create a temporary output directory for test files."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir
