"""Canonical line normalization for sqlite dump text.

This module turns raw ``.dump`` lines into diff-stable text. Each line is
handled on its own, except for carried state: whether a multi-line
statement is still open and whether a quoted literal spans the line
break. Lines are bytes so text columns holding non-UTF-8 data pass
through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import re
from typing import Iterable, Iterator

from core.constants import (
    BOOKKEEPING_TABLE,
    PARTITION_ALL,
    PARTITION_DATA,
    PARTITION_SCHEMA,
    SUPPORTED_PARTITIONS,
)
from core.errors import ConfigError
from core.logging_config import get_logger
from core.types import LineClass, NormalizeOptions

_LOGGER = get_logger(__name__)

_BOOKKEEPING_RE = re.compile(
    rb'^\s*(?:CREATE\s+TABLE|INSERT\s+INTO|DELETE\s+FROM)\s+"?'
    + BOOKKEEPING_TABLE.encode("ascii")
    + rb'"?(?![\w$])',
    re.IGNORECASE,
)
_STRUCTURAL_RE = re.compile(
    rb"^\s*(?:PRAGMA\s+foreign_keys\s*=|BEGIN\s+TRANSACTION\s*;|COMMIT\s*;|"
    rb"ROLLBACK\s*;|END\s+TRANSACTION\s*;)",
    re.IGNORECASE,
)
_SCHEMA_RE = re.compile(
    rb"^\s*(?:CREATE\s+(?:(?:UNIQUE|TEMP|TEMPORARY|VIRTUAL)\s+)*(?:TABLE|INDEX|VIEW|TRIGGER)\b|"
    rb'INSERT\s+INTO\s+"?(?:sqlite_schema|sqlite_master)"?(?![\w$])|'
    rb"PRAGMA\s+writable_schema\b|ANALYZE\s+sqlite_)",
    re.IGNORECASE,
)
_TRIGGER_RE = re.compile(rb"^\s*CREATE\s+(?:(?:TEMP|TEMPORARY)\s+)?TRIGGER\b", re.IGNORECASE)
_DATA_RE = re.compile(rb"^\s*INSERT\s+INTO\b", re.IGNORECASE)
_TRIGGER_END_RE = re.compile(rb"\bEND\s*;$", re.IGNORECASE)
_QUOTE_START_RE = re.compile(rb"['\"]")
# Quoted literals, including one left open at end of line, are matched first
# so numbers inside strings are skipped.
_FLOAT_RE = re.compile(rb"'(?:[^']|'')*(?:'|$)|(?<![\w.])-?\d+\.\d+(?![\d.])")


@dataclass(frozen=True)
class StatementState:
    """Carried parse state between lines.

    Attributes:
        inside: Whether a statement opened on an earlier line is still open.
        line_class: Class of the open statement.
        trigger_body: Whether the open statement closes on ``END;``.
        quote_open: Whether a single-quoted literal runs past the line end.
    """

    inside: bool = False
    line_class: LineClass = LineClass.OTHER
    trigger_body: bool = False
    quote_open: bool = False


OUTSIDE_STATEMENT = StatementState()


def strip_line_ending(line: bytes) -> bytes:
    """Remove any trailing CR/LF sequence."""
    return line.rstrip(b"\r\n")


def is_bookkeeping_line(line: bytes) -> bool:
    """Return whether a line creates, fills, or clears ``sqlite_sequence``."""
    return _BOOKKEEPING_RE.match(line) is not None


def classify_line(line: bytes) -> LineClass:
    """Classify a statement-starting line for partitioning."""
    if _STRUCTURAL_RE.match(line):
        return LineClass.STRUCTURAL
    if _SCHEMA_RE.match(line):
        return LineClass.SCHEMA
    if _DATA_RE.match(line):
        return LineClass.DATA
    return LineClass.OTHER


def canonicalize_floats(line: bytes, precision: int) -> bytes:
    """Re-format decimal literals outside quoted strings.

    Args:
        line: One data line without its terminator.
        precision: Digits after the decimal point.

    Returns:
        Line with every unquoted decimal literal at fixed precision.
    """

    def _replace(match: re.Match[bytes]) -> bytes:
        literal = match.group(0)
        if literal.startswith(b"'"):
            return literal
        try:
            value = float(literal)
        except ValueError:
            return literal
        return format(value, f".{precision}f").encode("ascii")

    return _FLOAT_RE.sub(_replace, line)


def normalize(
    line: bytes,
    state: StatementState,
    options: NormalizeOptions,
) -> tuple[bytes | None, StatementState]:
    """Normalize one raw dump line.

    Args:
        line: Raw line, with or without its terminator.
        state: Carried statement state from the previous line.
        options: Float and partition settings.

    Returns:
        The canonical LF-terminated line, or ``None`` when dropped, and
        the state to carry into the next line.
    """
    content = strip_line_ending(line)
    if state.inside:
        next_state = _continued_state(content, state)
        if not _partition_keeps(state.line_class, options.partition):
            return None, next_state
        return content + b"\n", next_state
    if is_bookkeeping_line(content):
        return None, OUTSIDE_STATEMENT
    line_class = classify_line(content)
    next_state = _opened_state(content, line_class)
    if not _partition_keeps(line_class, options.partition):
        return None, next_state
    if line_class is LineClass.DATA and options.float_precision is not None:
        content = canonicalize_floats(content, options.float_precision)
    return content + b"\n", next_state


def validate_partition(partition: str) -> str:
    """Validate a partition mode name.

    Raises:
        ConfigError: If the mode is unknown.
    """
    if partition not in SUPPORTED_PARTITIONS:
        raise ConfigError(
            f"Unsupported partition mode '{partition}'. "
            f"Use one of: {', '.join(SUPPORTED_PARTITIONS)}."
        )
    return partition


class LineNormalizer:
    """Streaming normalizer that threads statement state across lines."""

    def __init__(self, options: NormalizeOptions) -> None:
        validate_partition(options.partition)
        self._options = options
        self._state = OUTSIDE_STATEMENT
        self.lines_kept = 0
        self.lines_dropped = 0

    @property
    def state(self) -> StatementState:
        return self._state

    def feed(self, line: bytes) -> bytes | None:
        """Normalize the next line and advance the carried state."""
        normalized, self._state = normalize(line, self._state, self._options)
        if normalized is None:
            self.lines_dropped += 1
        else:
            self.lines_kept += 1
        return normalized

    def finish(self) -> None:
        """Close the stream; an open statement is left as emitted."""
        if self._state.inside:
            _LOGGER.warning(
                "unterminated_statement_at_end",
                line_class=self._state.line_class.value,
                trigger_body=self._state.trigger_body,
            )
        self._state = OUTSIDE_STATEMENT


def split_lines(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Re-chunk a byte stream into LF-terminated lines.

    A final line without a terminator is still yielded.
    """
    pending: list[bytes] = []
    for chunk in chunks:
        start = 0
        while True:
            end = chunk.find(b"\n", start)
            if end < 0:
                if start < len(chunk):
                    pending.append(chunk[start:])
                break
            pending.append(chunk[start : end + 1])
            yield b"".join(pending)
            pending = []
            start = end + 1
    if pending:
        yield b"".join(pending)


def normalize_lines(lines: Iterable[bytes], options: NormalizeOptions) -> Iterator[bytes]:
    """Normalize a sequence of raw lines, yielding only kept lines."""
    normalizer = LineNormalizer(options)
    for line in lines:
        normalized = normalizer.feed(line)
        if normalized is not None:
            yield normalized
    normalizer.finish()


def _opened_state(content: bytes, line_class: LineClass) -> StatementState:
    if line_class not in (LineClass.SCHEMA, LineClass.DATA):
        return OUTSIDE_STATEMENT
    trigger_body = line_class is LineClass.SCHEMA and _TRIGGER_RE.match(content) is not None
    candidate = StatementState(inside=True, line_class=line_class, trigger_body=trigger_body)
    return _continued_state(content, candidate)


def _continued_state(content: bytes, state: StatementState) -> StatementState:
    quote_open = quote_open_after(content, state.quote_open)
    if not quote_open and _closes(content, state):
        return OUTSIDE_STATEMENT
    return replace(state, quote_open=quote_open)


def quote_open_after(content: bytes, quote_open: bool = False) -> bool:
    """Return whether a single-quoted literal is still open after ``content``.

    Doubled quotes inside a literal are escapes. Double-quoted identifiers
    are skipped so an apostrophe in a name does not open a literal.
    """
    position = 0
    while True:
        if quote_open:
            end = content.find(b"'", position)
            if end < 0:
                return True
            if content[end + 1 : end + 2] == b"'":
                position = end + 2
                continue
            quote_open = False
            position = end + 1
            continue
        match = _QUOTE_START_RE.search(content, position)
        if match is None:
            return False
        if match.group(0) == b'"':
            end = content.find(b'"', match.end())
            if end < 0:
                return False
            position = end + 1
            continue
        quote_open = True
        position = match.end()


def _closes(content: bytes, state: StatementState) -> bool:
    stripped = content.rstrip()
    if state.trigger_body:
        return _TRIGGER_END_RE.search(stripped) is not None
    return stripped.endswith(b";")


def _partition_keeps(line_class: LineClass, partition: str) -> bool:
    if partition == PARTITION_ALL:
        return True
    if line_class is LineClass.STRUCTURAL:
        return True
    if partition == PARTITION_DATA:
        return line_class is LineClass.DATA
    if partition == PARTITION_SCHEMA:
        return line_class is LineClass.SCHEMA
    return False
