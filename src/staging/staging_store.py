"""Temporary database file staging.

This module creates uniquely named database files for a single
conversion and guarantees their removal on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import os
from pathlib import Path
import shutil
import tempfile
from typing import BinaryIO, Iterator

from core.constants import STAGED_FILE_PREFIX, STAGED_FILE_SUFFIX
from core.errors import StagingError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class StagedDatabase:
    """Handle to one staged database file."""

    path: Path

    def write_from(self, stream: BinaryIO) -> int:
        """Materialize a binary stream into the staged file.

        Args:
            stream: Readable binary input.

        Returns:
            Number of bytes written.

        Raises:
            StagingError: If the staged file cannot be written.
        """
        try:
            with self.path.open("wb") as staged_file:
                shutil.copyfileobj(stream, staged_file)
                return staged_file.tell()
        except OSError as error:
            raise StagingError(
                f"Failed to write staged database {self.path}: {error}. "
                "Check free space and permissions of the temp directory."
            ) from error

    def read_bytes(self) -> bytes:
        """Read the full staged file contents."""
        try:
            return self.path.read_bytes()
        except OSError as error:
            raise StagingError(
                f"Failed to read staged database {self.path}: {error}."
            ) from error


class StagingStore:
    """Creates and removes staged database files in one directory."""

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory

    def acquire(self) -> StagedDatabase:
        """Create a new uniquely named, empty staged file.

        Returns:
            Handle bound to the created path.

        Raises:
            StagingError: If the filesystem refuses to create the file.
        """
        try:
            file_descriptor, raw_path = tempfile.mkstemp(
                prefix=STAGED_FILE_PREFIX,
                suffix=STAGED_FILE_SUFFIX,
                dir=self._directory,
            )
        except OSError as error:
            raise StagingError(
                f"Failed to create staged database in {self._directory or tempfile.gettempdir()}: "
                f"{error}. Check free space and permissions of the temp directory."
            ) from error
        os.close(file_descriptor)
        staged = StagedDatabase(path=Path(raw_path))
        _LOGGER.debug("staged_file_created", path=str(staged.path))
        return staged

    def release(self, staged: StagedDatabase) -> None:
        """Delete a staged file; a missing file counts as released.

        Raises:
            StagingError: If the file exists but cannot be removed.
        """
        try:
            staged.path.unlink()
        except FileNotFoundError:
            return
        except OSError as error:
            raise StagingError(
                f"Failed to remove staged database {staged.path}: {error}. "
                "Remove it manually."
            ) from error
        _LOGGER.debug("staged_file_removed", path=str(staged.path))


@contextmanager
def staged_database(store: StagingStore | None = None) -> Iterator[StagedDatabase]:
    """Yield a staged database file that is released on exit.

    Args:
        store: Optional store; defaults to the system temp directory.

    Yields:
        Handle to the staged file.
    """
    active_store = store or StagingStore()
    staged = active_store.acquire()
    try:
        yield staged
    finally:
        active_store.release(staged)
