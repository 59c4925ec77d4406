"""Shared typed models.

This module defines immutable data models used by the filters,
pipeline, conversion, and CLI layers to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from core.constants import DEFAULT_FLOAT_PRECISION, PARTITION_ALL


class LineClass(str, Enum):
    """Classification of one dump line for partitioning."""

    SCHEMA = "schema"
    DATA = "data"
    STRUCTURAL = "structural"
    OTHER = "other"


@dataclass(frozen=True)
class NormalizeOptions:
    """Line normalization settings.

    Attributes:
        float_precision: Digits after the decimal point for float literals
            in data lines, or ``None`` to leave them untouched.
        partition: One of ``all``, ``data``, or ``schema``.
    """

    float_precision: int | None = DEFAULT_FLOAT_PRECISION
    partition: str = PARTITION_ALL


@dataclass(frozen=True)
class CleanRequest:
    """Options for one database-to-text conversion.

    Attributes:
        source: Binary database input stream.
        sink: Binary output stream receiving the SQL text.
        normalize: Line normalization options.
        sign: Append a hash signature comment line to the output.
    """

    source: BinaryIO
    sink: BinaryIO
    normalize: NormalizeOptions = NormalizeOptions()
    sign: bool = False


@dataclass(frozen=True)
class SmudgeRequest:
    """Options for one text-to-database conversion.

    Attributes:
        source: SQL text input stream.
        sink: Binary output stream receiving the database file.
        schema_file: Optional schema script restored before the input.
        verify_signature: Require a valid trailing hash signature.
    """

    source: BinaryIO
    sink: BinaryIO
    schema_file: Path | None = None
    verify_signature: bool = False


@dataclass(frozen=True)
class DiffRequest:
    """Options for dumping a database path directly to text.

    Attributes:
        database_path: Existing database file to dump.
        sink: Binary output stream receiving the SQL text.
        normalize: Line normalization options.
    """

    database_path: Path
    sink: BinaryIO
    normalize: NormalizeOptions = NormalizeOptions()


@dataclass(frozen=True)
class PipelineResult:
    """Outcome statistics for one completed pipeline run.

    Attributes:
        bytes_read: Raw bytes received from the engine.
        bytes_written: Bytes delivered to the final sink.
        lines_kept: Lines emitted after normalization.
        lines_dropped: Lines removed by the normalizer.
        duration_seconds: Wall time of the pipeline.
    """

    bytes_read: int
    bytes_written: int
    lines_kept: int
    lines_dropped: int
    duration_seconds: float
