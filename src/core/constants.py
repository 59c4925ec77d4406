"""Core constants used across gitsqlite modules.

This module centralizes engine names, limits, and exit codes.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

TOOL_NAME = "gitsqlite"
TOOL_VERSION = "0.9.0"

DEFAULT_SQLITE_BINARY = "sqlite3"
SQLITE_DUMP_DIRECTIVE = ".dump"
SQLITE_VERSION_FLAG = "-version"
SQLITE_HEADER = b"SQLite format 3\x00"

STAGED_FILE_PREFIX = "gitsqlite-"
STAGED_FILE_SUFFIX = ".db"

DEFAULT_FLOAT_PRECISION = 9
MAX_FLOAT_PRECISION = 17
DEFAULT_WRITE_TIMEOUT_SECONDS = 1.0
DEFAULT_PIPELINE_TIMEOUT_SECONDS = 30.0
WRITE_CHUNK_SIZE = 64 * 1024
READ_CHUNK_SIZE = 4 * 1024
CHANNEL_CAPACITY_BYTES = 256 * 1024
PROGRESS_LOG_MIN_BYTES = 1024 * 1024
PROGRESS_LOG_INTERVAL_BYTES = 256 * 1024

PARTITION_ALL = "all"
PARTITION_DATA = "data"
PARTITION_SCHEMA = "schema"
SUPPORTED_PARTITIONS = (PARTITION_ALL, PARTITION_DATA, PARTITION_SCHEMA)

BOOKKEEPING_TABLE = "sqlite_sequence"
HASH_PREFIX = "-- gitsqlite-hash: sha256:"
LOG_TARGET_STDERR = "stderr"

LINUX_SQLITE_CANDIDATES = (
    "/usr/bin/sqlite3",
    "/usr/local/bin/sqlite3",
    "/bin/sqlite3",
    "/usr/sbin/sqlite3",
)
WINGET_SQLITE_PATTERNS = (
    "SQLite.SQLite_Microsoft.Winget.Source_*",
    "SQLite.SQLite_*",
)
WINDOWS_SQLITE_EXECUTABLE = "sqlite3.exe"

EXIT_OK = 0
EXIT_BAD_INVOCATION = 1
EXIT_ENGINE_NOT_FOUND = 2
EXIT_ENGINE_FAILED = 3
EXIT_NO_INPUT = 4
EXIT_STAGING_FAILED = 5
EXIT_DOWNSTREAM_CLOSED = 6
EXIT_PIPELINE_TIMEOUT = 7
EXIT_SIGNATURE_INVALID = 8
