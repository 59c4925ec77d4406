"""Public API surface for gitsqlite.

This module provides a stable import path for library users.
It re-exports the conversions, the engine, and typed request models.
"""

from __future__ import annotations

from conversion.clean import dump_database, run_clean
from conversion.diff import run_diff
from conversion.smudge import run_smudge
from core.config import GitSqliteConfig
from core.errors import GitSqliteError
from core.types import (
    CleanRequest,
    DiffRequest,
    NormalizeOptions,
    PipelineResult,
    SmudgeRequest,
)
from engine.sqlite_engine import SqliteEngine
from filters.line_normalizer import normalize_lines

__all__ = [
    "CleanRequest",
    "DiffRequest",
    "GitSqliteConfig",
    "GitSqliteError",
    "NormalizeOptions",
    "PipelineResult",
    "SmudgeRequest",
    "SqliteEngine",
    "dump_database",
    "normalize_lines",
    "run_clean",
    "run_diff",
    "run_smudge",
]
