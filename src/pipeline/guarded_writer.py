"""Timeout-guarded writes to the final output sink.

A write to a pipe whose reader has gone away can block forever. Every
write here runs on a dedicated worker thread and the caller waits a
bounded time for it; an expired deadline is reported as a distinct
error and the writer refuses all further writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import errno
import queue
import threading
from typing import BinaryIO

from core.constants import (
    DEFAULT_WRITE_TIMEOUT_SECONDS,
    PROGRESS_LOG_INTERVAL_BYTES,
    PROGRESS_LOG_MIN_BYTES,
    WRITE_CHUNK_SIZE,
)
from core.errors import DownstreamClosedError, GitSqliteError, OutputWriteError, WriteTimeoutError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

_CLOSED_PIPE_ERRNOS = frozenset({errno.EPIPE, errno.EINVAL, errno.ECONNRESET})


@dataclass
class _WriteJob:
    data: bytes
    done: threading.Event = field(default_factory=threading.Event)
    error: BaseException | None = None


class TimeoutGuardedWriter:
    """Writes to a binary sink with a per-write deadline."""

    def __init__(
        self,
        sink: BinaryIO,
        timeout: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
        chunk_size: int = WRITE_CHUNK_SIZE,
        operation: str = "write",
    ) -> None:
        self._sink = sink
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._operation = operation
        self._jobs: queue.Queue[_WriteJob | None] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._failure: GitSqliteError | None = None
        self.bytes_written = 0

    @property
    def failed(self) -> bool:
        """Whether a previous write failed or timed out."""
        return self._failure is not None

    def write(self, data: bytes) -> int:
        """Write and flush ``data`` within the configured deadline.

        Args:
            data: Bytes to deliver; may be empty to probe the sink.

        Returns:
            Number of bytes written.

        Raises:
            WriteTimeoutError: If the write did not finish in time.
            DownstreamClosedError: If the reader closed its end.
            OutputWriteError: For other sink I/O failures.
        """
        if self._failure is not None:
            raise self._failure
        job = _WriteJob(data)
        self._ensure_worker()
        self._jobs.put(job)
        if not job.done.wait(self._timeout):
            self._failure = WriteTimeoutError(
                f"Write operation timed out after {self._timeout:g} second(s) for "
                f"{self._operation} operation; the output reader is not consuming data."
            )
            _LOGGER.error(
                "write_timed_out",
                operation=self._operation,
                timeout_seconds=self._timeout,
                bytes_written=self.bytes_written,
            )
            raise self._failure
        if job.error is not None:
            self._failure = _translate_write_error(job.error, self._operation)
            _LOGGER.error(
                "write_failed",
                operation=self._operation,
                error=str(job.error),
                bytes_written=self.bytes_written,
            )
            raise self._failure from job.error
        self.bytes_written += len(data)
        return len(data)

    def probe(self) -> None:
        """Zero-length write that surfaces an already closed sink."""
        _LOGGER.debug("output_probe", operation=self._operation)
        self.write(b"")

    def write_chunked(self, data: bytes) -> int:
        """Probe the sink, then write ``data`` in separately guarded chunks.

        Returns:
            Total bytes written.
        """
        self.probe()
        total_size = len(data)
        total_chunks = (total_size + self._chunk_size - 1) // self._chunk_size
        _LOGGER.debug(
            "chunked_write_started",
            operation=self._operation,
            total_chunks=total_chunks,
            chunk_size=self._chunk_size,
            total_size=total_size,
        )
        written = 0
        view = memoryview(data)
        while written < total_size:
            chunk = bytes(view[written : written + self._chunk_size])
            self.write(chunk)
            written += len(chunk)
            if total_size > PROGRESS_LOG_MIN_BYTES and written % PROGRESS_LOG_INTERVAL_BYTES == 0:
                _LOGGER.debug(
                    "write_progress",
                    operation=self._operation,
                    bytes_written=written,
                    total_size=total_size,
                    percent=round(written / total_size * 100, 1),
                )
        _LOGGER.debug("chunked_write_completed", operation=self._operation, bytes_written=written)
        return written

    def copy_stream(self, stream: BinaryIO) -> int:
        """Probe the sink, then copy a readable stream chunk by chunk."""
        self.probe()
        written = 0
        while True:
            chunk = stream.read(self._chunk_size)
            if not chunk:
                return written
            written += self.write(chunk)

    def close(self) -> None:
        """Stop the worker thread when it is idle."""
        if self._worker is None or self._failure is not None:
            return
        self._jobs.put(None)
        self._worker.join(self._timeout)
        self._worker = None

    def __enter__(self) -> "TimeoutGuardedWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_worker(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(
            target=self._run_worker,
            name=f"guarded-writer-{self._operation}",
            daemon=True,
        )
        self._worker.start()

    def _run_worker(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                return
            try:
                if job.data:
                    self._write_fully(job.data)
                self._sink.flush()
            except Exception as error:
                job.error = error
            finally:
                job.done.set()

    def _write_fully(self, data: bytes) -> None:
        """Repeat short writes until the sink has taken every byte.

        Sinks that return ``None`` from ``write`` are treated as buffered.
        """
        remaining = data
        while remaining:
            written = self._sink.write(remaining)
            if written is None or written >= len(remaining):
                return
            remaining = remaining[written:]


def _translate_write_error(error: BaseException, operation: str) -> GitSqliteError:
    if isinstance(error, (BrokenPipeError, ConnectionResetError)):
        return DownstreamClosedError(
            f"Output pipe closed by reader during {operation} operation: {error}"
        )
    if isinstance(error, ValueError):
        return DownstreamClosedError(f"Output stream closed during {operation} operation: {error}")
    if isinstance(error, OSError) and error.errno in _CLOSED_PIPE_ERRNOS:
        return DownstreamClosedError(
            f"Output pipe closed by reader during {operation} operation: {error}"
        )
    return OutputWriteError(f"Failed to write output during {operation} operation: {error}")
