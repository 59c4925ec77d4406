"""In-process byte channel between one producer and one consumer.

The channel is bounded so a fast producer blocks instead of buffering a
whole dump in memory. Closing either end wakes the other: the reader sees
end of stream or the producer's error, the writer sees ChannelClosedError.
"""

from __future__ import annotations

from collections import deque
import threading
from typing import Iterator

from core.constants import CHANNEL_CAPACITY_BYTES
from core.errors import ChannelClosedError


class PipeChannel:
    """Bounded single-producer/single-consumer byte conduit."""

    def __init__(self, capacity: int = CHANNEL_CAPACITY_BYTES) -> None:
        if capacity <= 0:
            raise ValueError("channel capacity must be positive")
        self._capacity = capacity
        self._chunks: deque[bytes] = deque()
        self._buffered = 0
        self._condition = threading.Condition()
        self._writer_closed = False
        self._writer_error: BaseException | None = None
        self._reader_closed = False

    def write(self, data: bytes) -> None:
        """Append bytes, blocking while the channel is full.

        Raises:
            ChannelClosedError: If either end has been closed.
        """
        if not data:
            return
        with self._condition:
            while self._buffered >= self._capacity and not self._reader_closed:
                self._condition.wait()
            if self._reader_closed:
                raise ChannelClosedError("pipe channel reader is closed")
            if self._writer_closed:
                raise ChannelClosedError("pipe channel writer is already closed")
            self._chunks.append(data)
            self._buffered += len(data)
            self._condition.notify_all()

    def close_writer(self, error: BaseException | None = None) -> None:
        """Signal end of stream, or a producer failure, to the reader."""
        with self._condition:
            if self._writer_closed:
                return
            self._writer_closed = True
            self._writer_error = error
            self._condition.notify_all()

    def read(self) -> bytes:
        """Return the next chunk, or ``b""`` at end of stream.

        Raises:
            ChannelClosedError: If the reader end was closed.
            BaseException: The error the producer closed with, once the
                buffered data before it has been drained.
        """
        with self._condition:
            while not self._chunks and not self._writer_closed and not self._reader_closed:
                self._condition.wait()
            if self._reader_closed:
                raise ChannelClosedError("pipe channel reader is closed")
            if self._chunks:
                chunk = self._chunks.popleft()
                self._buffered -= len(chunk)
                self._condition.notify_all()
                return chunk
            if self._writer_error is not None:
                raise self._writer_error
            return b""

    def close_reader(self) -> None:
        """Stop consuming; the writer fails on its next write."""
        with self._condition:
            self._reader_closed = True
            self._chunks.clear()
            self._buffered = 0
            self._condition.notify_all()

    def chunks(self) -> Iterator[bytes]:
        """Iterate chunks until end of stream."""
        while True:
            chunk = self.read()
            if not chunk:
                return
            yield chunk
