"""sqlite executable discovery.

This module resolves the sqlite binary from PATH and, for the default
``sqlite3`` name, from package-manager install locations that are often
missing from PATH (apt on Linux, WinGet on Windows).
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
import subprocess
import sys
from typing import Callable, Mapping

from core.constants import (
    DEFAULT_SQLITE_BINARY,
    LINUX_SQLITE_CANDIDATES,
    SQLITE_VERSION_FLAG,
    WINDOWS_SQLITE_EXECUTABLE,
    WINGET_SQLITE_PATTERNS,
)
from core.errors import EngineNotFoundError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

_PROBE_TIMEOUT_SECONDS = 5.0


def linux_candidate_paths(platform: str | None = None) -> list[Path]:
    """Return common apt install locations of sqlite3 on Linux."""
    if (platform or sys.platform) != "linux":
        return []
    return [Path(candidate) for candidate in LINUX_SQLITE_CANDIDATES]


def winget_candidate_paths(
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[Path]:
    """Return sqlite3.exe paths inside WinGet package folders.

    Args:
        platform: Platform override, defaults to ``sys.platform``.
        environ: Environment override, defaults to ``os.environ``.

    Returns:
        Existing-or-not candidate executable paths in search order.
    """
    if (platform or sys.platform) != "win32":
        return []
    env = os.environ if environ is None else environ
    package_roots: list[Path] = []
    if env.get("USERPROFILE"):
        package_roots.append(
            Path(env["USERPROFILE"]) / "AppData" / "Local" / "Microsoft" / "WinGet" / "Packages"
        )
    if env.get("ProgramFiles"):
        package_roots.append(Path(env["ProgramFiles"]) / "WinGet" / "Packages")
    if env.get("ProgramData"):
        package_roots.append(Path(env["ProgramData"]) / "Microsoft" / "WinGet" / "Packages")
    candidates: list[Path] = []
    for package_root in package_roots:
        for pattern in WINGET_SQLITE_PATTERNS:
            for match in sorted(package_root.glob(pattern)):
                candidates.append(match / WINDOWS_SQLITE_EXECUTABLE)
    return candidates


def probe_executable(path: Path) -> bool:
    """Return whether ``path`` exists and answers ``-version``."""
    if not path.is_file():
        return False
    try:
        completed = subprocess.run(
            [str(path), SQLITE_VERSION_FLAG],
            capture_output=True,
            timeout=_PROBE_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return completed.returncode == 0


def locate_engine(
    binary: str = DEFAULT_SQLITE_BINARY,
    which: Callable[[str], str | None] = shutil.which,
    fallback_candidates: Callable[[], list[Path]] | None = None,
    probe: Callable[[Path], bool] = probe_executable,
) -> Path:
    """Resolve the sqlite executable path.

    Args:
        binary: Executable name or path.
        which: PATH lookup function.
        fallback_candidates: Package-manager candidate provider.
        probe: Candidate validation function.

    Returns:
        Absolute path of a usable executable.

    Raises:
        EngineNotFoundError: If neither PATH nor fallbacks yield one.
    """
    found = which(binary)
    if found:
        return Path(found)
    path_error = f"'{binary}' not found in PATH"
    if binary != DEFAULT_SQLITE_BINARY:
        raise EngineNotFoundError(
            f"SQLite executable {path_error}. "
            "Install SQLite or pass the correct path with --sqlite."
        )
    candidates = (fallback_candidates or _default_fallback_candidates)()
    for candidate in candidates:
        if probe(candidate):
            _LOGGER.info("sqlite_found_in_package_location", path=str(candidate))
            return candidate
    raise EngineNotFoundError(
        f"SQLite executable '{binary}' not found in PATH or package manager locations. "
        f"PATH error: {path_error}. Package manager search error: checked "
        f"{len(candidates)} candidate location(s). "
        "Install SQLite or pass the correct path with --sqlite."
    )


def _default_fallback_candidates() -> list[Path]:
    return linux_candidate_paths() + winget_candidate_paths()
