"""Database path dump for git textconv."""

from __future__ import annotations

from core.config import GitSqliteConfig
from core.errors import ConfigError
from core.logging_config import get_logger
from core.types import DiffRequest, PipelineResult
from conversion.clean import dump_database
from engine.sqlite_engine import Engine
from filters.line_normalizer import validate_partition

_LOGGER = get_logger(__name__)


def run_diff(request: DiffRequest, engine: Engine, config: GitSqliteConfig) -> PipelineResult:
    """Dump an existing database file as normalized SQL text.

    No staging copy is made; the engine reads the path directly.

    Raises:
        ConfigError: If the database path is not an existing file.
    """
    validate_partition(request.normalize.partition)
    if not request.database_path.is_file():
        raise ConfigError(
            f"Database file not found: {request.database_path}. "
            "Pass the path of an existing SQLite database."
        )
    _LOGGER.info("diff_started", database=str(request.database_path))
    return dump_database(
        engine,
        request.database_path,
        request.sink,
        request.normalize,
        config,
        operation="diff",
    )
