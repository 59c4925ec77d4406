"""Runtime configuration model for gitsqlite.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from core.constants import (
    DEFAULT_FLOAT_PRECISION,
    DEFAULT_PIPELINE_TIMEOUT_SECONDS,
    DEFAULT_SQLITE_BINARY,
    DEFAULT_WRITE_TIMEOUT_SECONDS,
    MAX_FLOAT_PRECISION,
)
from core.errors import ConfigError


@dataclass(frozen=True)
class GitSqliteConfig:
    """Validated runtime configuration.

    Attributes:
        sqlite_binary: Name or path of the sqlite executable.
        float_precision: Digits after the decimal point for float
            literals, or ``None`` to leave floats untouched.
        write_timeout: Seconds a single output write may block.
        pipeline_timeout: Seconds the whole clean pipeline may run.
        log_target: ``None`` to discard logs, ``"stderr"``, or a directory.
    """

    sqlite_binary: str
    float_precision: int | None
    write_timeout: float
    pipeline_timeout: float
    log_target: str | None

    @classmethod
    def from_env(cls) -> "GitSqliteConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            ConfigError: If environment values are invalid.
        """
        sqlite_binary = os.getenv("GITSQLITE_SQLITE", DEFAULT_SQLITE_BINARY)
        precision_value = os.getenv("GITSQLITE_FLOAT_PRECISION", str(DEFAULT_FLOAT_PRECISION))
        write_timeout_value = os.getenv(
            "GITSQLITE_WRITE_TIMEOUT", str(DEFAULT_WRITE_TIMEOUT_SECONDS)
        )
        pipeline_timeout_value = os.getenv(
            "GITSQLITE_PIPELINE_TIMEOUT", str(DEFAULT_PIPELINE_TIMEOUT_SECONDS)
        )
        return cls(
            sqlite_binary=sqlite_binary,
            float_precision=parse_float_precision(precision_value),
            write_timeout=parse_timeout("GITSQLITE_WRITE_TIMEOUT", write_timeout_value),
            pipeline_timeout=parse_timeout("GITSQLITE_PIPELINE_TIMEOUT", pipeline_timeout_value),
            log_target=os.getenv("GITSQLITE_LOG_DIR") or None,
        )


def parse_float_precision(raw_value: str) -> int | None:
    """Parse a float precision setting.

    Args:
        raw_value: Digit count, or ``off``/``none`` to disable.

    Returns:
        Parsed precision or ``None`` when disabled.

    Raises:
        ConfigError: If value is not an integer in the supported range.
    """
    if raw_value.strip().lower() in ("off", "none"):
        return None
    try:
        precision = int(raw_value)
    except ValueError as error:
        raise ConfigError(
            f"Invalid float precision: expected integer or 'off', got '{raw_value}'. "
            f"Use a value between 0 and {MAX_FLOAT_PRECISION}."
        ) from error
    if not 0 <= precision <= MAX_FLOAT_PRECISION:
        raise ConfigError(
            f"Invalid float precision {precision}: "
            f"use a value between 0 and {MAX_FLOAT_PRECISION}, or 'off'."
        )
    return precision


def parse_timeout(name: str, raw_value: str) -> float:
    """Parse a positive timeout value in seconds.

    Args:
        name: Setting name used in error messages.
        raw_value: Raw string value.

    Returns:
        Parsed timeout in seconds.

    Raises:
        ConfigError: If value is not a positive number.
    """
    try:
        timeout = float(raw_value)
    except ValueError as error:
        raise ConfigError(
            f"Invalid {name} value: expected seconds, got '{raw_value}'. "
            f"Set {name} to a positive number."
        ) from error
    if timeout <= 0:
        raise ConfigError(f"Invalid {name} value {timeout}: timeouts must be positive.")
    return timeout
