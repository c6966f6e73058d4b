"""
Named-pipe conduits and collaborator process handles.

Every byte stream between the pipeline and an external ffmpeg/sox process
goes through a FIFO created inside a private temporary directory. Both the
directory and the processes are context managers, so leaving a ``with``
block for any reason terminates and reaps the processes and removes every
FIFO.

Opening a FIFO blocks until the other side opens it too. If the
collaborator dies before it gets that far, a plain ``open`` would hang
forever, so :func:`open_conduit` performs the open in a worker thread
while it watches the process.
"""

from __future__ import annotations

import errno
import os
import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

from .errors import CollaboratorError, ConduitError


class ConduitDirectory:
    """
    Private temporary directory holding the FIFOs and logs of one stage.

    Attributes:
        path (str | None): Directory path while the context is active.

    Example:
        >>> with ConduitDirectory() as conduits:
        ...     fifo = conduits.make_fifo("decode.yuv")
        ...     # spawn collaborators and open fifo here
    """

    def __init__(self, prefix: str = "motion_speedup."):
        self.prefix = prefix
        self.path: str | None = None
        self._tmp: tempfile.TemporaryDirectory | None = None

    def __enter__(self) -> ConduitDirectory:
        try:
            self._tmp = tempfile.TemporaryDirectory(prefix=self.prefix)
        except OSError as e:
            raise ConduitError(f"Cannot create temporary directory: {e}") from e
        self.path = self._tmp.name
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()

    def file_path(self, name: str) -> str:
        """Path of a plain file inside the directory."""
        if self.path is None:
            raise ConduitError("Conduit directory is not open")
        return os.path.join(self.path, name)

    def make_fifo(self, name: str) -> str:
        """
        Create a FIFO readable and writable only by the current user.

        Returns:
            str: Path of the new FIFO.

        Raises:
            ConduitError: If the FIFO cannot be created.
        """
        fifo_path = self.file_path(name)
        try:
            os.mkfifo(fifo_path, 0o600)
        except (OSError, AttributeError) as e:
            raise ConduitError(f"Cannot create FIFO {fifo_path}: {e}") from e
        return fifo_path

    def cleanup(self) -> None:
        """Remove the directory and everything in it."""
        if self._tmp is not None:
            self._tmp.cleanup()
            self._tmp = None
        self.path = None


class CollaboratorProcess:
    """
    Handle for one external process (decoder, encoder, audio tool).

    The process starts when the context is entered. stdin is closed and
    stdout discarded; stderr goes to ``log_path`` so failures can be
    reported with the tool's own diagnostic. On exit from the context a
    process that is still running is terminated, then killed if it does
    not stop in time, and always reaped.

    Attributes:
        command (list[str]): Argument vector.
        name (str): Human-readable role, used in messages.
        log_path (str | None): Where stderr is written.
    """

    def __init__(self, command: list[str], name: str, log_path: str | None = None):
        self.command = command
        self.name = name
        self.log_path = log_path
        self._proc: subprocess.Popen | None = None
        self._log = None

    def start(self) -> CollaboratorProcess:
        """
        Spawn the process.

        Raises:
            CollaboratorError: If the executable cannot be started.
        """
        if self.log_path is not None:
            self._log = open(self.log_path, "wb")
        try:
            self._proc = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=self._log if self._log is not None else subprocess.DEVNULL,
            )
        except OSError as e:
            self._close_log()
            raise CollaboratorError(f"Failed to start {self.name}: {e}", self.command) from e
        return self

    @property
    def returncode(self) -> int | None:
        return None if self._proc is None else self._proc.returncode

    def poll(self) -> int | None:
        """Return the exit status, or None while the process is running."""
        if self._proc is None:
            return None
        return self._proc.poll()

    def wait_success(self, timeout: float | None = None) -> None:
        """
        Wait for the process to exit and require a zero exit status.

        Raises:
            CollaboratorError: If the process exited non-zero.
        """
        returncode = self._proc.wait(timeout=timeout)
        if returncode != 0:
            raise CollaboratorError(
                f"{self.name} failed", self.command, returncode, self.stderr_tail()
            )

    def stop(self, timeout: float = 5.0) -> None:
        """Terminate the process if it is still running and reap it."""
        if self._proc is None:
            return
        if self._proc.poll() is None:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                self._proc.kill()
                self._proc.wait()

    def stderr_tail(self, lines: int = 10) -> str:
        """Last few lines the process wrote to stderr."""
        if self.log_path is None or not os.path.exists(self.log_path):
            return ""
        if self._log is not None:
            self._log.flush()
        with open(self.log_path, "rb") as f:
            text = f.read().decode("utf-8", errors="replace")
        return "\n".join(text.strip().splitlines()[-lines:])

    def close(self) -> None:
        self.stop()
        self._close_log()

    def _close_log(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None

    def __enter__(self) -> CollaboratorProcess:
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _release_blocked_open(path: str, mode: str) -> None:
    """Open and close the opposite end of a FIFO to wake a blocked open."""
    flags = os.O_WRONLY if "r" in mode else os.O_RDONLY
    try:
        fd = os.open(path, flags | os.O_NONBLOCK)
    except OSError as e:
        # ENXIO: our own reader has not reached open() yet; caller retries
        if e.errno != errno.ENXIO:
            raise ConduitError(f"Cannot release FIFO {path}: {e}") from e
        return
    os.close(fd)


def _finish_open(future, path: str, mode: str, poll_interval: float):
    """Wake a blocked open() after the collaborator went away and return its stream."""
    while True:
        _release_blocked_open(path, mode)
        try:
            return future.result(timeout=poll_interval)
        except FuturesTimeoutError:
            continue
        except OSError as e:
            raise ConduitError(f"Cannot open FIFO {path}: {e}") from e


def open_conduit(path: str, mode: str, process: CollaboratorProcess, poll_interval: float = 0.05):
    """
    Open our end of a FIFO whose other end belongs to ``process``.

    Args:
        path: FIFO path.
        mode: ``"rb"`` to read what the collaborator writes, ``"wb"`` to feed it.
        process: The collaborator expected to open the other end.
        poll_interval: Seconds between liveness checks.

    Returns:
        Buffered binary file object for the FIFO.

    Raises:
        CollaboratorError: If the process exited with a non-zero status
            before the conduit was connected.
        ConduitError: If the FIFO cannot be opened.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(open, path, mode)
    try:
        while True:
            try:
                return future.result(timeout=poll_interval)
            except FuturesTimeoutError:
                if process.poll() is not None:
                    break
            except OSError as e:
                raise ConduitError(f"Cannot open FIFO {path}: {e}") from e

        stream = _finish_open(future, path, mode, poll_interval)
        if process.returncode == 0:
            return stream
        stream.close()
        raise CollaboratorError(
            f"{process.name} exited before connecting to {os.path.basename(path)}",
            process.command,
            process.returncode,
            process.stderr_tail(),
        )
    except BaseException:
        # Interrupted while still blocked: unblock the worker so it can be joined
        if not future.done():
            _finish_open(future, path, mode, poll_interval).close()
        raise
    finally:
        executor.shutdown(wait=True)
