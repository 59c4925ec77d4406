"""Text-to-database conversion for the git smudge filter.

SQL text is restored into a staged database file whose bytes are then
written to the output in timeout-guarded chunks. Input that is already a
SQLite database passes through unchanged.
"""

from __future__ import annotations

import io
from pathlib import Path

from core.config import GitSqliteConfig
from core.constants import SQLITE_HEADER
from core.errors import ConfigError
from core.logging_config import get_logger
from core.types import SmudgeRequest
from engine.sqlite_engine import Engine
from filters.signature import has_signature, strip_signature, verify_and_strip
from pipeline.guarded_writer import TimeoutGuardedWriter
from staging.staging_store import StagingStore, staged_database

_LOGGER = get_logger(__name__)


def is_sqlite_database(payload: bytes) -> bool:
    """Return whether ``payload`` starts with the SQLite file header."""
    return payload.startswith(SQLITE_HEADER)


def run_smudge(
    request: SmudgeRequest,
    engine: Engine,
    config: GitSqliteConfig,
    store: StagingStore | None = None,
) -> int:
    """Restore SQL text into a database and write its bytes to the sink.

    Args:
        request: Input/output streams, schema file, and signature mode.
        engine: Engine used for the restore.
        config: Runtime timeouts.
        store: Optional staging store; defaults to the system temp dir.

    Returns:
        Number of bytes written to the sink.

    Raises:
        ConfigError: If the schema file does not exist.
        SignatureError: If signature verification was requested and fails.
        GitSqliteError: If staging, the engine, or the output fails.
    """
    payload = request.source.read()
    _LOGGER.info("smudge_started", input_bytes=len(payload))
    with TimeoutGuardedWriter(
        request.sink, timeout=config.write_timeout, operation="smudge"
    ) as writer:
        if is_sqlite_database(payload):
            _LOGGER.info("smudge_passthrough", reason="input_is_sqlite_database")
            return writer.write_chunked(payload)
        sql_text = _prepare_sql(payload, request.verify_signature)
        if request.schema_file is not None:
            sql_text = _prepend_schema(request.schema_file, sql_text)
        with staged_database(store) as staged:
            engine.restore(staged.path, io.BytesIO(sql_text))
            database_bytes = staged.read_bytes()
        _LOGGER.info("smudge_restored", database_bytes=len(database_bytes))
        written = writer.write_chunked(database_bytes)
    _LOGGER.info("smudge_completed", bytes_written=written)
    return written


def _prepare_sql(payload: bytes, verify_signature: bool) -> bytes:
    if verify_signature:
        content = verify_and_strip(payload)
        _LOGGER.info("hash_signature_verified")
        return content
    if has_signature(payload):
        _LOGGER.debug("hash_signature_stripped")
        return strip_signature(payload)
    return payload


def _prepend_schema(schema_file: Path, sql_text: bytes) -> bytes:
    """Combine a schema script with the data script, schema first."""
    if not schema_file.is_file():
        raise ConfigError(
            f"Schema file not found: {schema_file}. "
            "Pass a file produced by 'gitsqlite clean --schema-only'."
        )
    schema_text = schema_file.read_bytes()
    _LOGGER.info("schema_file_combined", schema_file=str(schema_file), schema_bytes=len(schema_text))
    if schema_text and not schema_text.endswith(b"\n"):
        schema_text += b"\n"
    return schema_text + sql_text
