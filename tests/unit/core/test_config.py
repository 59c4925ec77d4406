"""Unit tests for core config parsing."""

from __future__ import annotations

import pytest

from core.config import GitSqliteConfig, parse_float_precision, parse_timeout
from core.errors import ConfigError


def test_from_env_uses_defaults() -> None:
    """Config should fall back to documented defaults."""
    config = GitSqliteConfig.from_env()

    assert (config.sqlite_binary, config.float_precision, config.log_target) == (
        "sqlite3",
        9,
        None,
    )


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve engine, precision, and timeouts from environment."""
    monkeypatch.setenv("GITSQLITE_SQLITE", "/opt/sqlite/bin/sqlite3")
    monkeypatch.setenv("GITSQLITE_FLOAT_PRECISION", "off")
    monkeypatch.setenv("GITSQLITE_WRITE_TIMEOUT", "2.5")
    monkeypatch.setenv("GITSQLITE_PIPELINE_TIMEOUT", "90")
    monkeypatch.setenv("GITSQLITE_LOG_DIR", "stderr")

    config = GitSqliteConfig.from_env()

    assert config == GitSqliteConfig(
        sqlite_binary="/opt/sqlite/bin/sqlite3",
        float_precision=None,
        write_timeout=2.5,
        pipeline_timeout=90.0,
        log_target="stderr",
    )


def test_from_env_raises_for_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric timeout values."""
    monkeypatch.setenv("GITSQLITE_WRITE_TIMEOUT", "soon")

    with pytest.raises(ConfigError, match="GITSQLITE_WRITE_TIMEOUT"):
        GitSqliteConfig.from_env()


@pytest.mark.parametrize("raw_value", ["-1", "18", "nine"])
def test_parse_float_precision_rejects_out_of_range(raw_value: str) -> None:
    """Precision outside 0..17 or non-integer should be rejected."""
    with pytest.raises(ConfigError):
        parse_float_precision(raw_value)


def test_parse_float_precision_accepts_zero() -> None:
    """Zero digits is a valid precision."""
    assert parse_float_precision("0") == 0


def test_parse_timeout_rejects_zero() -> None:
    """Timeouts must be strictly positive."""
    with pytest.raises(ConfigError, match="positive"):
        parse_timeout("--write-timeout", "0")
