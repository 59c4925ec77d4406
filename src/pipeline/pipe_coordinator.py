"""Producer/consumer coordination for the clean pipeline.

The producer copies the engine's dump output into a bounded channel; the
consumer splits it into lines, normalizes them, and performs guarded
writes to the final sink. The first terminal event decides the outcome:
consumer failure, producer failure, or the master deadline. Cancelling
the producer kills the dump subprocess so nothing keeps writing into a
channel nobody reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import queue
import threading
import time
from typing import Callable

from core.constants import (
    CHANNEL_CAPACITY_BYTES,
    DEFAULT_PIPELINE_TIMEOUT_SECONDS,
    READ_CHUNK_SIZE,
    WRITE_CHUNK_SIZE,
)
from core.errors import ChannelClosedError, PipelineTimeoutError
from core.logging_config import get_logger
from core.types import NormalizeOptions, PipelineResult
from engine.sqlite_engine import DumpStream, Engine
from filters.line_normalizer import LineNormalizer, split_lines
from pipeline.guarded_writer import TimeoutGuardedWriter
from pipeline.pipe_channel import PipeChannel

_LOGGER = get_logger(__name__)

_PRODUCER = "producer"
_CONSUMER = "consumer"
_JOIN_GRACE_SECONDS = 1.0


class PipelineState(str, Enum):
    """Lifecycle states of one coordinated pipeline run."""

    IDLE = "idle"
    RUNNING = "running"
    PRODUCER_DONE = "producer_done"
    PRODUCER_FAILED = "producer_failed"
    CONSUMER_FAILED = "consumer_failed"
    TIMED_OUT = "timed_out"
    DONE = "done"


@dataclass(frozen=True)
class _TerminalEvent:
    source: str
    error: BaseException | None


class PipeCoordinator:
    """Runs one dump through the normalizer into a guarded writer."""

    def __init__(
        self,
        engine: Engine,
        writer: TimeoutGuardedWriter,
        options: NormalizeOptions,
        pipeline_timeout: float = DEFAULT_PIPELINE_TIMEOUT_SECONDS,
        channel_capacity: int = CHANNEL_CAPACITY_BYTES,
        flush_size: int = WRITE_CHUNK_SIZE,
    ) -> None:
        self._engine = engine
        self._writer = writer
        self._options = options
        self._pipeline_timeout = pipeline_timeout
        self._channel = PipeChannel(channel_capacity)
        self._flush_size = flush_size
        self._normalizer = LineNormalizer(options)
        self._events: queue.Queue[_TerminalEvent] = queue.Queue()
        self._cancelled = threading.Event()
        self._dump: DumpStream | None = None
        self._threads: list[threading.Thread] = []
        self._state = PipelineState.IDLE
        self._bytes_read = 0

    @property
    def state(self) -> PipelineState:
        """Current lifecycle state."""
        return self._state

    def run(self, database_path: Path) -> PipelineResult:
        """Dump ``database_path`` and stream normalized lines to the writer.

        Args:
            database_path: Database file handed to the engine.

        Returns:
            Statistics for the completed run.

        Raises:
            EngineNotFoundError: If the engine cannot be started.
            EngineExecutionError: If the dump fails.
            DownstreamClosedError: If the output reader went away.
            PipelineTimeoutError: If the master deadline expires.
        """
        if self._state is not PipelineState.IDLE:
            raise RuntimeError("PipeCoordinator instances run only once")
        started_at = time.monotonic()
        self._dump = self._engine.dump(database_path)
        self._state = PipelineState.RUNNING
        self._start_thread(_PRODUCER, self._produce)
        self._start_thread(_CONSUMER, self._consume)
        _LOGGER.info("pipeline_started", database=str(database_path))
        error: BaseException | None = None
        try:
            error = self._await_outcome(started_at + self._pipeline_timeout)
        except BaseException:
            self.cancel()
            raise
        finally:
            self._join_threads()
        duration = time.monotonic() - started_at
        if error is not None:
            _LOGGER.error(
                "pipeline_failed",
                error=str(error),
                error_type=type(error).__name__,
                duration_seconds=round(duration, 3),
            )
            raise error
        result = PipelineResult(
            bytes_read=self._bytes_read,
            bytes_written=self._writer.bytes_written,
            lines_kept=self._normalizer.lines_kept,
            lines_dropped=self._normalizer.lines_dropped,
            duration_seconds=duration,
        )
        _LOGGER.info(
            "pipeline_completed",
            bytes_read=result.bytes_read,
            bytes_written=result.bytes_written,
            lines_kept=result.lines_kept,
            lines_dropped=result.lines_dropped,
            duration_seconds=round(duration, 3),
        )
        return result

    def cancel(self) -> None:
        """Stop the producer, including its subprocess, and the consumer."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        _LOGGER.info("pipeline_cancelling", state=self._state.value)
        if self._dump is not None:
            self._dump.terminate()
        self._channel.close_reader()

    def _await_outcome(self, deadline: float) -> BaseException | None:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._state = PipelineState.TIMED_OUT
                self.cancel()
                self._state = PipelineState.DONE
                return PipelineTimeoutError(
                    f"Operations timed out after {self._pipeline_timeout:g} seconds; "
                    "the dump was cancelled."
                )
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                continue
            if event.source == _CONSUMER:
                if event.error is None:
                    self._state = PipelineState.DONE
                    return None
                self._state = PipelineState.CONSUMER_FAILED
                _LOGGER.info("cancelling_dump_after_consumer_failure", error=str(event.error))
                self.cancel()
                self._state = PipelineState.DONE
                return event.error
            if event.error is None:
                self._state = PipelineState.PRODUCER_DONE
                _LOGGER.debug("producer_done_waiting_for_consumer")
                continue
            self._state = PipelineState.PRODUCER_FAILED
            self.cancel()
            self._state = PipelineState.DONE
            return event.error

    def _produce(self) -> None:
        assert self._dump is not None
        dump = self._dump
        try:
            while not self._cancelled.is_set():
                chunk = dump.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self._bytes_read += len(chunk)
                self._channel.write(chunk)
            dump.wait()
        except BaseException as error:
            self._channel.close_writer(error)
            self._events.put(_TerminalEvent(_PRODUCER, error))
            return
        finally:
            dump.close()
        self._channel.close_writer()
        self._events.put(_TerminalEvent(_PRODUCER, None))

    def _consume(self) -> None:
        pending: list[bytes] = []
        pending_size = 0
        try:
            self._writer.probe()
            for line in split_lines(self._channel.chunks()):
                normalized = self._normalizer.feed(line)
                if normalized is None:
                    continue
                pending.append(normalized)
                pending_size += len(normalized)
                if pending_size >= self._flush_size:
                    self._writer.write(b"".join(pending))
                    pending = []
                    pending_size = 0
            self._normalizer.finish()
            if pending:
                self._writer.write(b"".join(pending))
        except ChannelClosedError as error:
            self._events.put(_TerminalEvent(_CONSUMER, error))
            return
        except BaseException as error:
            self._channel.close_reader()
            self._events.put(_TerminalEvent(_CONSUMER, error))
            return
        self._events.put(_TerminalEvent(_CONSUMER, None))

    def _start_thread(self, name: str, target: Callable[[], None]) -> None:
        thread = threading.Thread(target=target, name=f"clean-{name}", daemon=True)
        self._threads.append(thread)
        thread.start()

    def _join_threads(self) -> None:
        for thread in self._threads:
            thread.join(_JOIN_GRACE_SECONDS)
            if thread.is_alive():
                _LOGGER.warning("pipeline_thread_still_running", thread=thread.name)
