"""Hash signature for clean output.

This module appends a SHA-256 comment line to dump text and verifies it
on the way back, so an edited dump is caught before it is restored.
"""

from __future__ import annotations

import hashlib
from typing import BinaryIO

from core.constants import HASH_PREFIX
from core.errors import SignatureError

_HASH_PREFIX_BYTES = HASH_PREFIX.encode("ascii")


class HashingWriter:
    """Binary sink wrapper that hashes everything written through it."""

    def __init__(self, sink: BinaryIO) -> None:
        self._sink = sink
        self._hasher = hashlib.sha256()

    def write(self, data: bytes) -> int:
        written = self._sink.write(data)
        self._hasher.update(data if written is None else data[:written])
        return written

    def flush(self) -> None:
        self._sink.flush()

    def hexdigest(self) -> str:
        """Return the hex digest of all bytes written so far."""
        return self._hasher.hexdigest()

    def signature_line(self) -> bytes:
        """Return the signature comment line for the bytes written so far."""
        return signature_line_for(self.hexdigest())


def signature_line_for(hex_digest: str) -> bytes:
    """Format a digest as a trailing SQL comment line."""
    return _HASH_PREFIX_BYTES + hex_digest.encode("ascii") + b"\n"


def has_signature(data: bytes) -> bool:
    """Return whether the last line of ``data`` is a signature line."""
    return _last_line(data)[0].startswith(_HASH_PREFIX_BYTES)


def verify_and_strip(data: bytes) -> bytes:
    """Check the trailing signature and return content without it.

    Args:
        data: Full dump text ending with a signature line.

    Returns:
        Content preceding the signature, LF-terminated.

    Raises:
        SignatureError: If input is empty, unsigned, or modified.
    """
    if not data:
        raise SignatureError("Cannot verify hash signature: input is empty.")
    last_line, content_lines = _last_line(data)
    if not last_line.startswith(_HASH_PREFIX_BYTES):
        raise SignatureError(
            "Missing gitsqlite hash signature "
            f"(expected last line to start with '{HASH_PREFIX}')."
        )
    expected = last_line[len(_HASH_PREFIX_BYTES) :].strip().decode("ascii", errors="replace")
    content = b"\n".join(content_lines)
    if content:
        content += b"\n"
    actual = hashlib.sha256(content).hexdigest()
    if actual != expected:
        raise SignatureError(
            f"Hash verification failed: expected {expected}, got {actual}. "
            "The dump was modified after it was generated."
        )
    return content


def strip_signature(data: bytes) -> bytes:
    """Remove a trailing signature line without verifying it."""
    if not data or not has_signature(data):
        return data
    _, content_lines = _last_line(data)
    content = b"\n".join(content_lines)
    return content + b"\n" if content else content


def _last_line(data: bytes) -> tuple[bytes, list[bytes]]:
    lines = data.split(b"\n")
    if len(lines) > 1 and not lines[-1]:
        lines.pop()
    last_line = lines.pop() if lines else b""
    return last_line.rstrip(b"\r"), lines
