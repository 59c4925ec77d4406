"""gitsqlite exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each failure category carries the process exit code the CLI reports,
so callers can tell a missing engine from a failed one.
"""

from __future__ import annotations

from core.constants import (
    EXIT_BAD_INVOCATION,
    EXIT_DOWNSTREAM_CLOSED,
    EXIT_ENGINE_FAILED,
    EXIT_ENGINE_NOT_FOUND,
    EXIT_NO_INPUT,
    EXIT_PIPELINE_TIMEOUT,
    EXIT_SIGNATURE_INVALID,
    EXIT_STAGING_FAILED,
)


class GitSqliteError(Exception):
    """Base exception for all gitsqlite failures."""

    exit_code = EXIT_BAD_INVOCATION


class ConfigError(GitSqliteError):
    """Raised for invalid runtime configuration or invocation."""

    exit_code = EXIT_BAD_INVOCATION


class NoInputError(GitSqliteError):
    """Raised when a conversion expects stdin data and none is available."""

    exit_code = EXIT_NO_INPUT


class StagingError(GitSqliteError):
    """Raised when the temporary database file cannot be created or removed."""

    exit_code = EXIT_STAGING_FAILED


class EngineNotFoundError(GitSqliteError):
    """Raised when the sqlite executable cannot be located."""

    exit_code = EXIT_ENGINE_NOT_FOUND


class EngineExecutionError(GitSqliteError):
    """Raised when the sqlite subprocess fails or exits non-zero."""

    exit_code = EXIT_ENGINE_FAILED

    def __init__(self, message: str, stderr_text: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.stderr_text = stderr_text
        self.returncode = returncode


class DownstreamClosedError(GitSqliteError):
    """Raised when the consumer of our output has stopped reading."""

    exit_code = EXIT_DOWNSTREAM_CLOSED


class WriteTimeoutError(DownstreamClosedError):
    """Raised when a guarded write does not complete before its deadline."""


class OutputWriteError(DownstreamClosedError):
    """Raised for other I/O failures while writing the final output."""


class PipelineTimeoutError(GitSqliteError):
    """Raised when the clean pipeline exceeds its master deadline."""

    exit_code = EXIT_PIPELINE_TIMEOUT


class ChannelClosedError(GitSqliteError):
    """Raised by a pipe channel end after its peer closed it."""


class SignatureError(GitSqliteError):
    """Raised when a dump hash signature is missing or does not match."""

    exit_code = EXIT_SIGNATURE_INVALID
