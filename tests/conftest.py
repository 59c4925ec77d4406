"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from tests.engine_fakes import write_fake_sqlite


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer GITSQLITE_* settings out of test runs."""
    for name in (
        "GITSQLITE_SQLITE",
        "GITSQLITE_FLOAT_PRECISION",
        "GITSQLITE_WRITE_TIMEOUT",
        "GITSQLITE_PIPELINE_TIMEOUT",
        "GITSQLITE_LOG_DIR",
        "FAKE_SQLITE_MODE",
        "FAKE_SQLITE_PID_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_sqlite(tmp_path: Path) -> Path:
    """Executable sqlite3 stand-in backed by the current interpreter."""
    if sys.platform == "win32":
        pytest.skip("shebang scripts are not executable on Windows")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return write_fake_sqlite(bin_dir)
