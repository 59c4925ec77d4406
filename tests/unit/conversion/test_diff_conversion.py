"""Unit tests for the diff conversion."""

from __future__ import annotations

import io

import pytest

from conversion.diff import run_diff
from core.config import GitSqliteConfig
from core.errors import ConfigError
from core.types import DiffRequest, NormalizeOptions
from tests.engine_fakes import FakeEngine
from tests.fixture_paths import read_dump_fixture


def test_run_diff_dumps_path_without_staging(tmp_path) -> None:
    """Diff should hand the given path straight to the engine."""
    database = tmp_path / "app.db"
    database.write_bytes(read_dump_fixture("autoincrement_table.sql"))
    engine = FakeEngine()
    sink = io.BytesIO()

    run_diff(DiffRequest(database_path=database, sink=sink), engine, GitSqliteConfig.from_env())

    assert engine.dumped_paths == [database]
    assert b"sqlite_sequence" not in sink.getvalue()


def test_run_diff_honours_data_only(tmp_path) -> None:
    """Diff should accept the same normalization options as clean."""
    database = tmp_path / "app.db"
    database.write_bytes(read_dump_fixture("autoincrement_table.sql"))
    sink = io.BytesIO()
    request = DiffRequest(
        database_path=database,
        sink=sink,
        normalize=NormalizeOptions(partition="data"),
    )

    run_diff(request, FakeEngine(), GitSqliteConfig.from_env())

    assert b"CREATE TABLE" not in sink.getvalue()
    assert b"INSERT INTO items" in sink.getvalue()


def test_run_diff_requires_existing_file(tmp_path) -> None:
    """A missing database path should be rejected before dumping."""
    engine = FakeEngine()

    with pytest.raises(ConfigError, match="Database file not found"):
        run_diff(
            DiffRequest(database_path=tmp_path / "missing.db", sink=io.BytesIO()),
            engine,
            GitSqliteConfig.from_env(),
        )

    assert engine.dumped_paths == []
