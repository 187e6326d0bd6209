"""Running child processes connected through pipes or strings."""

from __future__ import annotations

import contextlib
import enum
import os
import subprocess
import threading
from typing import IO, Optional, Sequence, Union


class ExecError(RuntimeError):
    """Raised when a pipe or a child process fails."""


class _Capture(enum.Enum):
    CAPTURE = "capture"


# Pass as ``stdout`` to collect the child's output in ``Process.output``.
CAPTURE = _Capture.CAPTURE


class Pipe:
    """Both ends of an OS pipe.

    The "input" end is where data flows into the pipe; the "output" end is
    where it flows out. Duplicated descriptors are not tracked.
    """

    def __init__(self, output_fd: int, input_fd: int) -> None:
        self._output_fd: Optional[int] = output_fd
        self._input_fd: Optional[int] = input_fd

    @classmethod
    def create(cls) -> "Pipe":
        """Open a new pipe."""
        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            raise ExecError("Failed to create pipe") from e
        return cls(read_fd, write_fd)

    @property
    def input_fd(self) -> int:
        """The descriptor data is written into."""
        if self._input_fd is None:
            raise ExecError("The input end of the pipe is closed")
        return self._input_fd

    @property
    def output_fd(self) -> int:
        """The descriptor data is read from."""
        if self._output_fd is None:
            raise ExecError("The output end of the pipe is closed")
        return self._output_fd

    @property
    def input_closed(self) -> bool:
        return self._input_fd is None

    @property
    def output_closed(self) -> bool:
        return self._output_fd is None

    def close_input(self) -> None:
        """Close the end data is written into."""
        fd = self.input_fd
        try:
            os.close(fd)
        except OSError as e:
            raise ExecError(
                f"Failed to close the input end of the pipe: {e.strerror}"
            ) from e
        self._input_fd = None

    def close_output(self) -> None:
        """Close the end data is read from."""
        fd = self.output_fd
        try:
            os.close(fd)
        except OSError as e:
            raise ExecError(
                f"Failed to close the output end of the pipe: {e.strerror}"
            ) from e
        self._output_fd = None

    def dup_input(self, fd: int) -> int:
        """Make ``fd`` a copy of the input end; return ``fd``."""
        try:
            return os.dup2(self.input_fd, fd)
        except OSError as e:
            raise ExecError(
                f"Failed to duplicate input end of pipe: {e.strerror}"
            ) from e

    def dup_output(self, fd: int) -> int:
        """Make ``fd`` a copy of the output end; return ``fd``."""
        try:
            return os.dup2(self.output_fd, fd)
        except OSError as e:
            raise ExecError(
                f"Failed to duplicate output end of pipe: {e.strerror}"
            ) from e

    def read(self) -> str:
        """Read from the output end until end of file."""
        fd = self.output_fd
        chunks = []
        try:
            while chunk := os.read(fd, 64 * 1024):
                chunks.append(chunk)
        except OSError as e:
            raise ExecError(
                f"Failed to read from pipe output: {e.strerror}"
            ) from e
        return b"".join(chunks).decode("utf-8", errors="replace")

    def write(self, data: Union[str, bytes]) -> None:
        """Write all of the data into the input end."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        fd = self.input_fd
        view = memoryview(data)
        try:
            while view:
                written = os.write(fd, view)
                view = view[written:]
        except OSError as e:
            raise ExecError(f"Failed to write to pipe: {e.strerror}") from e

    def close(self) -> None:
        """Close whichever ends are still open."""
        for fd in (self._input_fd, self._output_fd):
            if fd is not None:
                with contextlib.suppress(OSError):
                    os.close(fd)
        self._input_fd = None
        self._output_fd = None

    def __enter__(self) -> "Pipe":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        with contextlib.suppress(Exception):
            self.close()


StdinSpec = Union[None, str, bytes, Pipe]
StdoutSpec = Union[None, Pipe, _Capture]


def _feed(stream: IO[bytes], data: bytes) -> None:
    try:
        stream.write(data)
    except OSError:
        pass
    finally:
        with contextlib.suppress(OSError):
            stream.close()


class Process:
    """A started child process; call ``wait`` exactly once."""

    def __init__(
        self,
        popen: Optional[subprocess.Popen],
        capture: bool,
        writer: Optional[threading.Thread],
    ) -> None:
        self._popen = popen
        self._capture = capture
        self._writer = writer
        self._waited = False
        self.output: Optional[str] = None

    @classmethod
    def start(
        cls,
        args: Sequence[Union[str, "os.PathLike[str]"]],
        stdin: StdinSpec = None,
        stdout: StdoutSpec = None,
    ) -> "Process":
        """Start a child running ``args``.

        ``stdin`` may be None (inherit), a string or bytes to feed, or a Pipe
        whose output end becomes the child's standard input. ``stdout`` may be
        None (inherit), a Pipe whose input end receives the output, or
        ``CAPTURE``. A command that cannot be run is reported by ``wait``.
        """
        argv = [os.fspath(a) for a in args]

        data: Optional[bytes] = None
        if isinstance(stdin, Pipe):
            stdin_arg: Union[None, int] = stdin.output_fd
        elif isinstance(stdin, (str, bytes)):
            stdin_arg = subprocess.PIPE
            data = stdin.encode("utf-8") if isinstance(stdin, str) else stdin
        elif stdin is None:
            stdin_arg = None
        else:
            raise TypeError(f"Unsupported stdin: {stdin!r}")

        if isinstance(stdout, Pipe):
            stdout_arg: Union[None, int] = stdout.input_fd
        elif stdout is CAPTURE:
            stdout_arg = subprocess.PIPE
        elif stdout is None:
            stdout_arg = None
        else:
            raise TypeError(f"Unsupported stdout: {stdout!r}")

        popen: Optional[subprocess.Popen] = None
        if argv:
            try:
                popen = subprocess.Popen(argv, stdin=stdin_arg, stdout=stdout_arg)
            except OSError:
                popen = None

        # The child holds its own copies of these ends now.
        if isinstance(stdin, Pipe):
            stdin.close_output()
        if isinstance(stdout, Pipe):
            stdout.close_input()

        writer = None
        if popen is not None and data is not None and popen.stdin is not None:
            writer = threading.Thread(
                target=_feed, args=(popen.stdin, data), daemon=True
            )
            writer.start()
        return cls(popen, stdout is CAPTURE, writer)

    def wait(self) -> int:
        """Wait for the child to finish and return its exit status."""
        if self._waited:
            raise ExecError("The process has already been waited for")
        self._waited = True
        if self._popen is None:
            raise ExecError("Failed to run command")

        if self._capture and self._popen.stdout is not None:
            try:
                raw = self._popen.stdout.read()
            finally:
                self._popen.stdout.close()
            self.output = raw.decode("utf-8", errors="replace")

        status = self._popen.wait()
        if self._writer is not None:
            self._writer.join()
        if status < 0:
            raise ExecError(f"Child process exited by signal {-status}")
        return status

    def kill(self) -> None:
        """Kill the child if it is still running."""
        if self._popen is not None and self._popen.poll() is None:
            self._popen.kill()
            self._popen.wait()

    def __enter__(self) -> "Process":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._waited:
            self.kill()

    def __del__(self) -> None:
        if not self._waited:
            with contextlib.suppress(Exception):
                self.kill()