"""Unit tests for CLI command handling."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from cli.main import build_parser, main
from tests.fixture_paths import read_dump_fixture


def _run(argv: list[str], stdin: bytes = b"") -> tuple[int, bytes]:
    sink = io.BytesIO()
    exit_code = main(argv, stdin=io.BytesIO(stdin), stdout=sink)
    return exit_code, sink.getvalue()


def test_cli_clean_writes_normalized_sql(fake_sqlite: Path) -> None:
    """CLI clean should print the filtered dump."""
    exit_code, output = _run(
        ["--sqlite", str(fake_sqlite), "clean"],
        read_dump_fixture("autoincrement_table.sql"),
    )

    assert exit_code == 0
    assert b"INSERT INTO items VALUES(1,'apple',0.300000000);\n" in output
    assert b"sqlite_sequence" not in output


def test_cli_clean_honours_float_precision_flag(fake_sqlite: Path) -> None:
    """The per-command precision flag should override the default."""
    exit_code, output = _run(
        ["--sqlite", str(fake_sqlite), "clean", "--float-precision", "2", "--data-only"],
        read_dump_fixture("autoincrement_table.sql"),
    )

    assert exit_code == 0
    assert b"INSERT INTO items VALUES(2,'pear; 2.50 each',1.50);\n" in output
    assert b"CREATE TABLE" not in output


def test_cli_clean_then_smudge_round_trip(fake_sqlite: Path) -> None:
    """Signed clean output should be accepted by verifying smudge."""
    _, cleaned = _run(
        ["--sqlite", str(fake_sqlite), "clean", "--hash"],
        read_dump_fixture("multiline_schema.sql"),
    )

    exit_code, database = _run(["--sqlite", str(fake_sqlite), "smudge", "--verify-hash"], cleaned)

    assert exit_code == 0
    assert database.startswith(b"SQLite format 3\x00")
    assert b"gitsqlite-hash" not in database


def test_cli_diff_dumps_database_path(tmp_path, fake_sqlite: Path) -> None:
    """Diff should read the database path argument."""
    database = tmp_path / "app.db"
    database.write_bytes(read_dump_fixture("autoincrement_table.sql"))

    exit_code, output = _run(["--sqlite", str(fake_sqlite), "diff", str(database), "--schema-only"])

    assert exit_code == 0
    assert output.startswith(b"PRAGMA foreign_keys=OFF;\n")
    assert b"INSERT INTO" not in output


def test_cli_invalid_float_precision_exits_1(capsys) -> None:
    """Invalid option values should be usage errors."""
    exit_code, _ = _run(["clean", "--float-precision", "many"], b"x")

    assert exit_code == 1
    assert "Invalid float precision" in capsys.readouterr().err


def test_cli_conflicting_partition_flags_exit_1() -> None:
    """Argument parsing errors should use exit code 1."""
    with pytest.raises(SystemExit) as exit_info:
        build_parser().parse_args(["clean", "--data-only", "--schema-only"])

    assert exit_info.value.code == 1


def test_cli_missing_engine_exits_2(tmp_path, capsys) -> None:
    """An unknown sqlite executable should exit with code 2."""
    exit_code, output = _run(["--sqlite", str(tmp_path / "nope"), "clean"], b"data")

    assert exit_code == 2 and output == b""
    assert capsys.readouterr().err.startswith("Error: SQLite executable")


def test_cli_engine_failure_exits_3(fake_sqlite: Path, monkeypatch, capsys) -> None:
    """Engine errors should exit with code 3 and show its diagnostics."""
    monkeypatch.setenv("FAKE_SQLITE_MODE", "fail")

    exit_code, _ = _run(["--sqlite", str(fake_sqlite), "clean"], b"garbage")

    assert exit_code == 3
    assert "file is not a database" in capsys.readouterr().err


def test_cli_empty_redirected_stdin_exits_4(tmp_path, fake_sqlite: Path) -> None:
    """An empty redirected file should be reported as missing input."""
    empty_file = tmp_path / "empty.db"
    empty_file.write_bytes(b"")

    with empty_file.open("rb") as stdin:
        exit_code = main(["--sqlite", str(fake_sqlite), "clean"], stdin=stdin, stdout=io.BytesIO())

    assert exit_code == 4


def test_cli_closed_stdout_exits_6(fake_sqlite: Path) -> None:
    """A closed output stream should be reported as downstream closed."""
    sink = io.BytesIO()
    sink.close()

    exit_code = main(
        ["--sqlite", str(fake_sqlite), "clean"],
        stdin=io.BytesIO(b"COMMIT;\n"),
        stdout=sink,
    )

    assert exit_code == 6


def test_cli_tampered_signature_exits_8(fake_sqlite: Path) -> None:
    """A failed hash verification should exit with code 8."""
    tampered = b"COMMIT;\n-- gitsqlite-hash: sha256:" + b"0" * 64 + b"\n"

    exit_code, output = _run(["--sqlite", str(fake_sqlite), "smudge", "--verify-hash"], tampered)

    assert exit_code == 8 and output == b""


def test_cli_version_prints_tool_version(capsys) -> None:
    """Version command should print the tool name and version."""
    exit_code = main(["version"])

    assert exit_code == 0
    assert capsys.readouterr().out.startswith("gitsqlite 0.9.0\n")


def test_cli_sqlite_version_prints_engine(fake_sqlite: Path, capsys) -> None:
    """sqlite-version should report location and banner."""
    exit_code = main(["--sqlite", str(fake_sqlite), "sqlite-version"])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert f"sqlite: {fake_sqlite}" in output and "version: 3.45.1" in output


def test_cli_log_dir_writes_log_file(tmp_path, fake_sqlite: Path) -> None:
    """--log-dir should create one per-run log file."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    exit_code, _ = _run(
        ["--sqlite", str(fake_sqlite), "--log-dir", str(log_dir), "clean"],
        b"COMMIT;\n",
    )

    log_files = list(log_dir.glob("gitsqlite_*.log"))
    assert exit_code == 0 and len(log_files) == 1
    assert "pipeline_completed" in log_files[0].read_text(encoding="utf-8")
