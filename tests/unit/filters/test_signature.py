"""Unit tests for dump hash signatures."""

from __future__ import annotations

import hashlib
import io

import pytest

from core.errors import SignatureError
from filters.signature import (
    HashingWriter,
    has_signature,
    signature_line_for,
    strip_signature,
    verify_and_strip,
)
from pipeline.guarded_writer import TimeoutGuardedWriter

_CONTENT = b"BEGIN TRANSACTION;\nCREATE TABLE t(a);\nCOMMIT;\n"


def _signed(content: bytes) -> bytes:
    return content + signature_line_for(hashlib.sha256(content).hexdigest())


def test_hashing_writer_passes_bytes_through() -> None:
    """Writes should reach the sink and feed the digest."""
    sink = io.BytesIO()
    writer = HashingWriter(sink)

    writer.write(_CONTENT)
    writer.flush()

    assert sink.getvalue() == _CONTENT
    assert writer.signature_line() == signature_line_for(hashlib.sha256(_CONTENT).hexdigest())


def test_hashing_writer_digests_only_accepted_bytes() -> None:
    """Short writes retried by the guarded writer should be hashed once."""

    class _ShortWriteSink(io.BytesIO):
        def write(self, data) -> int:
            return super().write(bytes(data[:4]))

    sink = _ShortWriteSink()
    hashing = HashingWriter(sink)
    with TimeoutGuardedWriter(hashing, timeout=1.0) as guarded:
        guarded.write(_CONTENT)

    assert sink.getvalue() == _CONTENT
    assert hashing.hexdigest() == hashlib.sha256(_CONTENT).hexdigest()


def test_signature_line_format() -> None:
    """The signature should be an SQL comment line."""
    assert signature_line_for("abc") == b"-- gitsqlite-hash: sha256:abc\n"


def test_verify_and_strip_returns_content() -> None:
    """A valid signature should be removed after verification."""
    assert verify_and_strip(_signed(_CONTENT)) == _CONTENT


def test_verify_and_strip_accepts_crlf_signature_line() -> None:
    """A CRLF-terminated signature line should still verify."""
    signed = _signed(_CONTENT).rstrip(b"\n") + b"\r\n"

    assert verify_and_strip(signed) == _CONTENT


def test_verify_and_strip_detects_modification() -> None:
    """Edited content should fail verification."""
    tampered = _signed(_CONTENT).replace(b"TABLE t", b"TABLE u")

    with pytest.raises(SignatureError, match="Hash verification failed"):
        verify_and_strip(tampered)


@pytest.mark.parametrize("data", [b"", _CONTENT])
def test_verify_and_strip_requires_signature(data: bytes) -> None:
    """Empty or unsigned input should be rejected."""
    with pytest.raises(SignatureError):
        verify_and_strip(data)


def test_strip_signature_leaves_unsigned_input() -> None:
    """Unsigned text should pass through unchanged."""
    assert not has_signature(_CONTENT)
    assert strip_signature(_CONTENT) == _CONTENT
    assert strip_signature(_signed(_CONTENT)) == _CONTENT
