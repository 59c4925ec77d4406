"""Unit tests for the in-process pipe channel."""

from __future__ import annotations

import threading

import pytest

from core.errors import ChannelClosedError, EngineExecutionError
from pipeline.pipe_channel import PipeChannel


def test_chunks_are_delivered_in_order_until_eof() -> None:
    """Reader should see every chunk then end of stream."""
    channel = PipeChannel(capacity=64)
    channel.write(b"one")
    channel.write(b"two")
    channel.close_writer()

    assert list(channel.chunks()) == [b"one", b"two"]


def test_writer_error_surfaces_after_buffered_data() -> None:
    """A producer failure should reach the reader after pending chunks."""
    channel = PipeChannel(capacity=64)
    channel.write(b"partial")
    channel.close_writer(EngineExecutionError("dump failed"))

    assert channel.read() == b"partial"
    with pytest.raises(EngineExecutionError):
        channel.read()


def test_close_reader_unblocks_full_writer() -> None:
    """A writer blocked on a full channel should fail once the reader leaves."""
    channel = PipeChannel(capacity=4)
    channel.write(b"full")
    errors: list[BaseException] = []

    def _write_more() -> None:
        try:
            channel.write(b"more")
        except ChannelClosedError as error:
            errors.append(error)

    writer = threading.Thread(target=_write_more)
    writer.start()
    channel.close_reader()
    writer.join(timeout=5)

    assert not writer.is_alive() and len(errors) == 1


def test_read_blocks_until_data_arrives() -> None:
    """Reader should wait for the producer instead of reporting EOF."""
    channel = PipeChannel(capacity=64)
    received: list[bytes] = []
    reader = threading.Thread(target=lambda: received.append(channel.read()))
    reader.start()

    channel.write(b"late")
    reader.join(timeout=5)

    assert received == [b"late"]


def test_write_after_close_writer_fails() -> None:
    """The producer end cannot be reused after closing."""
    channel = PipeChannel(capacity=64)
    channel.close_writer()

    with pytest.raises(ChannelClosedError):
        channel.write(b"x")


def test_capacity_must_be_positive() -> None:
    """A zero-capacity channel could never accept data."""
    with pytest.raises(ValueError):
        PipeChannel(capacity=0)
