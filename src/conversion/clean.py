"""Database-to-text conversion for the git clean filter.

This module stages the incoming database bytes, dumps them through the
pipe coordinator, and optionally appends a hash signature line.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from core.config import GitSqliteConfig
from core.logging_config import get_logger
from core.types import CleanRequest, NormalizeOptions, PipelineResult
from engine.sqlite_engine import Engine
from filters.line_normalizer import validate_partition
from filters.signature import HashingWriter
from pipeline.guarded_writer import TimeoutGuardedWriter
from pipeline.pipe_coordinator import PipeCoordinator
from staging.staging_store import StagingStore, staged_database

_LOGGER = get_logger(__name__)


def run_clean(
    request: CleanRequest,
    engine: Engine,
    config: GitSqliteConfig,
    store: StagingStore | None = None,
) -> PipelineResult:
    """Convert a binary database stream into normalized SQL text.

    Args:
        request: Input/output streams and normalization options.
        engine: Engine used to dump the staged database.
        config: Runtime timeouts.
        store: Optional staging store; defaults to the system temp dir.

    Returns:
        Statistics of the dump pipeline.

    Raises:
        GitSqliteError: If staging, the engine, or the output fails.
    """
    validate_partition(request.normalize.partition)
    _LOGGER.info(
        "clean_started",
        float_precision=request.normalize.float_precision,
        partition=request.normalize.partition,
        sign=request.sign,
    )
    with staged_database(store) as staged:
        staged_size = staged.write_from(request.source)
        _LOGGER.info("clean_input_staged", path=str(staged.path), size_bytes=staged_size)
        result = dump_database(
            engine,
            staged.path,
            request.sink,
            request.normalize,
            config,
            sign=request.sign,
            operation="clean",
        )
    _LOGGER.info("clean_completed", bytes_written=result.bytes_written)
    return result


def dump_database(
    engine: Engine,
    database_path: Path,
    sink: BinaryIO,
    options: NormalizeOptions,
    config: GitSqliteConfig,
    sign: bool = False,
    operation: str = "clean",
) -> PipelineResult:
    """Dump one database file to ``sink`` through the normalizing pipeline.

    Args:
        engine: Engine used for the dump.
        database_path: Database file on disk.
        sink: Final binary output.
        options: Line normalization settings.
        config: Runtime timeouts.
        sign: Append a hash signature line after the dump.
        operation: Operation name used in log events and error messages.

    Returns:
        Statistics of the dump pipeline.
    """
    hashing_sink = HashingWriter(sink) if sign else None
    target = hashing_sink if hashing_sink is not None else sink
    with TimeoutGuardedWriter(target, timeout=config.write_timeout, operation=operation) as writer:
        coordinator = PipeCoordinator(
            engine,
            writer,
            options,
            pipeline_timeout=config.pipeline_timeout,
        )
        result = coordinator.run(database_path)
        if hashing_sink is not None:
            signature = hashing_sink.signature_line()
            writer.write(signature)
            _LOGGER.info("hash_signature_appended", digest=hashing_sink.hexdigest())
    return result
