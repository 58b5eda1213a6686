"""Output capture strategies for guest stdout and stderr.

Both strategies hand out one CaptureSink per invocation, and drain()
collects what the guest wrote:

- BufferedCapture gives every invocation a pair of in-memory byte buffers
  the engine writes into directly. Nothing touches the filesystem and
  nothing is shared between calls.
- FileCapture routes the streams to files under the processor's
  ScratchDirectory, truncating before each run. Every invocation gets its
  own counter-named path so concurrent calls never share a file.
"""

from __future__ import annotations

import contextlib
import itertools
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from wasi_processor.core.errors import ScratchIOError
from wasi_processor.core.models import CaptureStrategy
from wasi_processor.lifecycle import ScratchDirectory

if TYPE_CHECKING:
    from types import TracebackType


def _read_stream(path: Path) -> bytes:
    """Read a captured stream, treating a missing file as empty output."""
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return b""
    except OSError as e:
        raise ScratchIOError(f"failed to read {path.name}: {e}") from e


def _truncate(path: Path) -> None:
    """Truncate path to empty; a file that does not exist yet is a no-op."""
    try:
        os.truncate(path, 0)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise ScratchIOError(f"failed to truncate {path.name}: {e}") from e


class CaptureSink(ABC):
    """Per-invocation output sink.

    Use as a context manager so release() runs on every exit path.
    """

    @abstractmethod
    def drain(self) -> bytes:
        """Return everything the guest wrote to stdout during the run."""
        pass

    @abstractmethod
    def drain_stderr(self) -> bytes:
        """Return everything the guest wrote to stderr during the run."""
        pass

    def release(self) -> None:
        """Free whatever backs this sink."""
        pass

    def __enter__(self) -> CaptureSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class BufferedSink(CaptureSink):
    """In-memory sink: growable stdout and stderr buffers.

    The engine calls write_stdout/write_stderr with each chunk the guest
    writes.

    Attributes:
        stdout: Accumulated guest stdout
        stderr: Accumulated guest stderr
    """

    def __init__(self) -> None:
        self.stdout = bytearray()
        self.stderr = bytearray()

    def write_stdout(self, data: bytes) -> None:
        self.stdout.extend(data)

    def write_stderr(self, data: bytes) -> None:
        self.stderr.extend(data)

    def drain(self) -> bytes:
        return bytes(self.stdout)

    def drain_stderr(self) -> bytes:
        return bytes(self.stderr)

    def release(self) -> None:
        self.stdout.clear()
        self.stderr.clear()


class FileSink(CaptureSink):
    """Sink at scratch directory paths owned by the processor.

    Attributes:
        stdout_path: Host path receiving guest stdout
        stderr_path: Host path receiving guest stderr
    """

    def __init__(self, stdout_path: Path, stderr_path: Path) -> None:
        self.stdout_path = stdout_path
        self.stderr_path = stderr_path

    def prepare(self) -> None:
        """Make sure no bytes from an earlier run are visible to drain()."""
        _truncate(self.stdout_path)
        _truncate(self.stderr_path)

    def drain(self) -> bytes:
        return _read_stream(self.stdout_path)

    def drain_stderr(self) -> bytes:
        return _read_stream(self.stderr_path)

    def release(self) -> None:
        """Remove the scratch files backing this sink."""
        for path in (self.stdout_path, self.stderr_path):
            with contextlib.suppress(FileNotFoundError):
                path.unlink()


class OutputCapture(ABC):
    """Capture strategy selected once per processor."""

    strategy: CaptureStrategy

    @abstractmethod
    def open_sink(self, invocation_id: int) -> CaptureSink:
        """Allocate and prepare the sink for one invocation.

        Raises:
            ScratchIOError: If a file-backed sink cannot be truncated
        """
        pass

    def close(self) -> str | None:
        """Release strategy-wide resources. Returns the removed path, if any."""
        return None


class BufferedCapture(OutputCapture):
    """Default strategy: fresh in-memory sink per invocation, no shared state."""

    strategy = CaptureStrategy.BUFFERED

    def open_sink(self, invocation_id: int) -> CaptureSink:
        return BufferedSink()


class FileCapture(OutputCapture):
    """File-redirected strategy backed by a ScratchDirectory.

    Attributes:
        scratch: ScratchDirectory holding the per-invocation scratch files
    """

    strategy = CaptureStrategy.FILE

    def __init__(self, scratch: ScratchDirectory) -> None:
        self.scratch = scratch
        self._counter = itertools.count()

    def open_sink(self, invocation_id: int) -> CaptureSink:
        # Counter token keeps paths unique even if invocation ids repeat
        token = f"{invocation_id}-{next(self._counter)}"
        stdout_path, stderr_path = self.scratch.stream_paths(token)
        sink = FileSink(stdout_path, stderr_path)
        sink.prepare()
        return sink

    def close(self) -> str | None:
        return self.scratch.cleanup()


def create_capture(strategy: CaptureStrategy, io_dir: str | None = None) -> OutputCapture:
    """Build the capture strategy for a processor.

    Args:
        strategy: CaptureStrategy enum value
        io_dir: Optional scratch directory (FILE strategy only)

    Raises:
        ValueError: If strategy is not a CaptureStrategy value
        ScratchIOError: If the scratch directory cannot be created
    """
    if strategy == CaptureStrategy.BUFFERED:
        return BufferedCapture()
    if strategy == CaptureStrategy.FILE:
        return FileCapture(ScratchDirectory(io_dir))
    raise ValueError(f"Unsupported capture strategy: {strategy}")
