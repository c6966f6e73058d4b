"""
Exception types raised by the motion speedup pipeline.

Configuration problems are reported before any I/O happens. Collaborator
failures carry the command and the tail of its stderr so the CLI can print
a useful diagnostic. Pool invariant violations indicate a broken ordering
and are never recovered from.
"""

from __future__ import annotations


class SpeedupError(Exception):
    """Base class for all motion speedup errors."""


class ConfigurationError(SpeedupError, ValueError):
    """Missing, contradictory or out-of-range options."""


class ConduitError(SpeedupError, OSError):
    """A temporary directory or FIFO could not be created or opened."""


class CollaboratorError(SpeedupError, RuntimeError):
    """An external ffmpeg/sox process failed to start or exited non-zero."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr_tail: str = "",
    ):
        self.command = command
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        details = message
        if returncode is not None:
            details += f" (exit status {returncode})"
        if stderr_tail:
            details += f"\n{stderr_tail}"
        super().__init__(details)


class PoolInvariantError(SpeedupError, AssertionError):
    """The ranked pool lost its ordering; the selection cannot be trusted."""
