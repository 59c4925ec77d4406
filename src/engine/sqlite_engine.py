"""sqlite subprocess invoker.

This module runs the external sqlite executable for dump and restore.
It wires standard streams, captures diagnostics, and turns non-zero
exits into typed errors. Dump bytes are never interpreted here.
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
import subprocess
import tempfile
from typing import IO, BinaryIO, Protocol

from core.constants import (
    DEFAULT_SQLITE_BINARY,
    READ_CHUNK_SIZE,
    SQLITE_DUMP_DIRECTIVE,
    SQLITE_VERSION_FLAG,
)
from core.errors import EngineExecutionError, EngineNotFoundError
from core.logging_config import get_logger
from engine.binary_locator import locate_engine

_LOGGER = get_logger(__name__)

_VERSION_TIMEOUT_SECONDS = 10.0


class DumpStream(Protocol):
    """Running dump whose output can be read and cancelled."""

    def read(self, size: int = READ_CHUNK_SIZE) -> bytes:
        """Read up to ``size`` bytes; ``b""`` means end of output."""

    def wait(self) -> None:
        """Wait for the dump to finish and raise on failure."""

    def terminate(self) -> None:
        """Stop the dump, including any subprocess behind it."""

    def close(self) -> None:
        """Release the output stream."""


class Engine(Protocol):
    """Dump/restore capability the conversions depend on."""

    def dump(self, database_path: Path) -> DumpStream:
        """Start dumping ``database_path`` as SQL text."""

    def restore(self, database_path: Path, sql_stream: BinaryIO) -> None:
        """Execute ``sql_stream`` against ``database_path``."""


class DumpProcess:
    """A running ``sqlite3 <db> .dump`` subprocess."""

    def __init__(
        self,
        process: subprocess.Popen[bytes],
        stderr_buffer: IO[bytes],
        database_path: Path,
    ) -> None:
        self._process = process
        self._stderr_buffer = stderr_buffer
        self._database_path = database_path
        self._terminated = False

    @property
    def pid(self) -> int:
        """Process id of the dump subprocess."""
        return self._process.pid

    def is_running(self) -> bool:
        """Return whether the subprocess has not exited yet."""
        return self._process.poll() is None

    def read(self, size: int = READ_CHUNK_SIZE) -> bytes:
        """Read the next chunk of dump output."""
        stdout = self._process.stdout
        if stdout is None or stdout.closed:
            return b""
        return stdout.read1(size)

    def wait(self) -> None:
        """Wait for exit and raise with captured stderr on failure.

        Raises:
            EngineExecutionError: If the dump exited non-zero.
        """
        returncode = self._process.wait()
        stderr_text = _drain_stderr(self._stderr_buffer)
        _LOGGER.debug(
            "sqlite_dump_exited",
            returncode=returncode,
            terminated=self._terminated,
            database=str(self._database_path),
        )
        if returncode != 0 and not self._terminated:
            raise _execution_error("dump", returncode, stderr_text)

    def terminate(self) -> None:
        """Kill the subprocess so blocked readers observe end of output."""
        self._terminated = True
        if self._process.poll() is None:
            _LOGGER.info("sqlite_dump_terminating", pid=self._process.pid)
            self._process.kill()
        self._process.wait()

    def close(self) -> None:
        """Close the stdout pipe and the stderr capture buffer."""
        if self._process.stdout is not None:
            self._process.stdout.close()
        if not self._stderr_buffer.closed:
            self._stderr_buffer.close()


class SqliteEngine:
    """Shells out to a sqlite executable."""

    def __init__(self, binary: str = DEFAULT_SQLITE_BINARY) -> None:
        self._binary = binary
        self._resolved_path: Path | None = None

    @property
    def binary(self) -> str:
        """Configured executable name or path."""
        return self._binary

    def binary_path(self) -> Path:
        """Resolve and cache the executable path.

        Raises:
            EngineNotFoundError: If the executable cannot be located.
        """
        if self._resolved_path is None:
            self._resolved_path = locate_engine(self._binary)
            _LOGGER.debug("sqlite_binary_resolved", path=str(self._resolved_path))
        return self._resolved_path

    def dump(self, database_path: Path) -> DumpProcess:
        """Start ``sqlite3 <db> .dump`` with stdout exposed as a stream.

        Args:
            database_path: Database file to dump.

        Returns:
            Handle to the running dump.

        Raises:
            EngineNotFoundError: If the executable cannot be started.
        """
        command = [
            *self._base_command(),
            str(database_path),
            SQLITE_DUMP_DIRECTIVE,
        ]
        stderr_buffer = tempfile.TemporaryFile()
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr_buffer,
            )
        except OSError as error:
            stderr_buffer.close()
            raise EngineNotFoundError(
                f"Failed to start SQLite dump with {command[0]}: {error}. "
                "Check the --sqlite path."
            ) from error
        _LOGGER.info("sqlite_dump_started", pid=process.pid, database=str(database_path))
        return DumpProcess(process, stderr_buffer, database_path)

    def restore(self, database_path: Path, sql_stream: BinaryIO) -> None:
        """Feed SQL text to ``sqlite3 <db>`` and wait for completion.

        Args:
            database_path: Database file to create or populate.
            sql_stream: Readable SQL text stream.

        Raises:
            EngineNotFoundError: If the executable cannot be started.
            EngineExecutionError: If the restore exits non-zero.
        """
        command = [*self._base_command(), str(database_path)]
        with tempfile.TemporaryFile() as stderr_buffer:
            try:
                process = subprocess.Popen(
                    command,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.DEVNULL,
                    stderr=stderr_buffer,
                )
            except OSError as error:
                raise EngineNotFoundError(
                    f"Failed to start SQLite restore with {command[0]}: {error}. "
                    "Check the --sqlite path."
                ) from error
            _LOGGER.info("sqlite_restore_started", pid=process.pid, database=str(database_path))
            stdin_closed_early = _feed_stdin(process, sql_stream)
            returncode = process.wait()
            stderr_text = _drain_stderr(stderr_buffer)
        if returncode != 0:
            raise _execution_error("restore", returncode, stderr_text)
        if stdin_closed_early:
            raise EngineExecutionError(
                "SQLite restore stopped reading input before the end of the script"
                + (f": {stderr_text}" if stderr_text else "."),
                stderr_text=stderr_text,
                returncode=returncode,
            )
        _LOGGER.info("sqlite_restore_completed", database=str(database_path))

    def version(self) -> str:
        """Return the ``sqlite3 -version`` banner.

        Raises:
            EngineExecutionError: If the version probe fails.
        """
        command = [str(self.binary_path()), SQLITE_VERSION_FLAG]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=_VERSION_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as error:
            raise EngineExecutionError(f"Failed to get SQLite version: {error}") from error
        if completed.returncode != 0:
            stderr_text = completed.stderr.decode("utf-8", errors="replace").strip()
            raise _execution_error("version check", completed.returncode, stderr_text)
        return completed.stdout.decode("utf-8", errors="replace").strip()

    def _base_command(self) -> list[str]:
        return [str(self.binary_path()), "-batch", "-init", os.devnull]


def _feed_stdin(process: subprocess.Popen[bytes], sql_stream: BinaryIO) -> bool:
    """Copy SQL into the subprocess stdin; return True if the pipe broke."""
    assert process.stdin is not None
    try:
        shutil.copyfileobj(sql_stream, process.stdin)
        process.stdin.close()
    except BrokenPipeError:
        _LOGGER.warning("sqlite_restore_stdin_closed", pid=process.pid)
        try:
            process.stdin.close()
        except BrokenPipeError:
            pass
        return True
    return False


def _drain_stderr(stderr_buffer: IO[bytes]) -> str:
    if stderr_buffer.closed:
        return ""
    stderr_buffer.seek(0)
    return stderr_buffer.read().decode("utf-8", errors="replace").strip()


def _execution_error(operation: str, returncode: int, stderr_text: str) -> EngineExecutionError:
    if stderr_text:
        message = f"SQLite {operation} failed (exit status {returncode}): {stderr_text}"
    else:
        message = f"SQLite {operation} failed with exit status {returncode}"
    return EngineExecutionError(message, stderr_text=stderr_text, returncode=returncode)
