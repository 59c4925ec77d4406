"""gitsqlite CLI entry points.
This module exposes the clean, smudge, and diff filters for git.
It maps argparse commands onto conversion calls and exit codes.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import io
import os
from pathlib import Path
import signal
import stat
import sys
import threading
from typing import Any, BinaryIO, NoReturn, Sequence

from conversion.clean import run_clean
from conversion.diff import run_diff
from conversion.smudge import run_smudge
from core.config import GitSqliteConfig, parse_float_precision, parse_timeout
from core.constants import (
    EXIT_BAD_INVOCATION,
    EXIT_OK,
    PARTITION_ALL,
    PARTITION_DATA,
    PARTITION_SCHEMA,
    TOOL_NAME,
    TOOL_VERSION,
)
from core.errors import DownstreamClosedError, GitSqliteError, NoInputError
from core.logging_config import close_logging, configure_logging, get_logger
from core.types import CleanRequest, DiffRequest, NormalizeOptions, SmudgeRequest
from engine.sqlite_engine import SqliteEngine

_LOGGER = get_logger(__name__)

_EXIT_INTERRUPTED = 130


class _GitSqliteArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit code 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_BAD_INVOCATION, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = _GitSqliteArgumentParser(
        prog=TOOL_NAME,
        description="Git clean/smudge/textconv filters for SQLite databases",
    )
    parser.add_argument("--sqlite", help="SQLite executable name or path (default: sqlite3)")
    parser.add_argument(
        "--log",
        action="store_true",
        help="Write a per-run log file to the current directory",
    )
    parser.add_argument(
        "--log-dir",
        help="Write a per-run log file to this directory ('stderr' logs to standard error)",
    )
    parser.add_argument("--write-timeout", help="Seconds a single output write may block")
    parser.add_argument("--pipeline-timeout", help="Seconds the whole dump pipeline may run")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_clean_command(subparsers)
    _add_smudge_command(subparsers)
    _add_diff_command(subparsers)
    _add_version_command(subparsers)
    _add_sqlite_version_command(subparsers)
    return parser


def main(
    argv: Sequence[str] | None = None,
    stdin: BinaryIO | None = None,
    stdout: BinaryIO | None = None,
) -> int:
    """Run the gitsqlite CLI.

    Args:
        argv: Optional argument vector.
        stdin: Binary input stream; defaults to the process stdin.
        stdout: Binary output stream; defaults to the process stdout.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
    except GitSqliteError as error:
        return _report_error(error)
    configure_logging(config.log_target)
    previous_handler = _install_sigterm_handler()
    _LOGGER.info("gitsqlite_started", command=args.command, version=TOOL_VERSION)
    try:
        exit_code = _dispatch(
            args,
            config,
            stdin if stdin is not None else sys.stdin.buffer,
            stdout if stdout is not None else sys.stdout.buffer,
        )
        _LOGGER.info("gitsqlite_finished", command=args.command, exit_code=exit_code)
    except DownstreamClosedError as error:
        if stdout is None:
            _silence_stdout()
        return _report_error(error)
    except GitSqliteError as error:
        return _report_error(error)
    except KeyboardInterrupt:
        _LOGGER.warning("gitsqlite_interrupted", command=args.command)
        sys.stderr.write("Error: interrupted\n")
        return _EXIT_INTERRUPTED
    finally:
        _restore_sigterm_handler(previous_handler)
        close_logging()
    return exit_code


def _dispatch(
    args: argparse.Namespace,
    config: GitSqliteConfig,
    stdin: BinaryIO,
    stdout: BinaryIO,
) -> int:
    engine = SqliteEngine(config.sqlite_binary)
    if args.command == "clean":
        return _run_clean_command(engine, config, args, stdin, stdout)
    if args.command == "smudge":
        return _run_smudge_command(engine, config, args, stdin, stdout)
    if args.command == "diff":
        return _run_diff_command(engine, config, args, stdout)
    if args.command == "version":
        return _run_version_command()
    if args.command == "sqlite-version":
        return _run_sqlite_version_command(engine)
    return _report_error(GitSqliteError(f"Unsupported command: {args.command}"))


def _build_config(args: argparse.Namespace) -> GitSqliteConfig:
    """Build runtime config from env with CLI overrides.

    Args:
        args: Parsed CLI args.

    Returns:
        Validated config.

    Raises:
        ConfigError: If any override is invalid.
    """
    config = GitSqliteConfig.from_env()
    if args.sqlite:
        config = replace(config, sqlite_binary=args.sqlite)
    if args.write_timeout is not None:
        config = replace(
            config, write_timeout=parse_timeout("--write-timeout", args.write_timeout)
        )
    if args.pipeline_timeout is not None:
        config = replace(
            config, pipeline_timeout=parse_timeout("--pipeline-timeout", args.pipeline_timeout)
        )
    if args.log_dir:
        config = replace(config, log_target=args.log_dir)
    elif args.log:
        config = replace(config, log_target=".")
    precision_value = getattr(args, "float_precision", None)
    if precision_value is not None:
        config = replace(config, float_precision=parse_float_precision(precision_value))
    return config


def _run_clean_command(
    engine: SqliteEngine,
    config: GitSqliteConfig,
    args: argparse.Namespace,
    stdin: BinaryIO,
    stdout: BinaryIO,
) -> int:
    """Handle clean command.

    Args:
        engine: SQLite engine.
        config: Runtime config.
        args: Parsed CLI args.
        stdin: Database input.
        stdout: SQL output.

    Returns:
        Exit code.
    """
    _ensure_stdin_available(stdin, "clean")
    request = CleanRequest(
        source=stdin,
        sink=stdout,
        normalize=_normalize_options(config, args),
        sign=args.hash,
    )
    run_clean(request, engine, config)
    return EXIT_OK


def _run_smudge_command(
    engine: SqliteEngine,
    config: GitSqliteConfig,
    args: argparse.Namespace,
    stdin: BinaryIO,
    stdout: BinaryIO,
) -> int:
    """Handle smudge command.

    Args:
        engine: SQLite engine.
        config: Runtime config.
        args: Parsed CLI args.
        stdin: SQL input.
        stdout: Database output.

    Returns:
        Exit code.
    """
    _ensure_stdin_available(stdin, "smudge")
    request = SmudgeRequest(
        source=stdin,
        sink=stdout,
        schema_file=Path(args.schema_file) if args.schema_file else None,
        verify_signature=args.verify_hash,
    )
    run_smudge(request, engine, config)
    return EXIT_OK


def _run_diff_command(
    engine: SqliteEngine,
    config: GitSqliteConfig,
    args: argparse.Namespace,
    stdout: BinaryIO,
) -> int:
    """Handle diff command."""
    request = DiffRequest(
        database_path=Path(args.database),
        sink=stdout,
        normalize=_normalize_options(config, args),
    )
    run_diff(request, engine, config)
    return EXIT_OK


def _run_version_command() -> int:
    """Handle version command."""
    print(f"{TOOL_NAME} {TOOL_VERSION}")
    print(f"executable: {Path(sys.argv[0]).resolve()}")
    return EXIT_OK


def _run_sqlite_version_command(engine: SqliteEngine) -> int:
    """Handle sqlite-version command."""
    binary_path = engine.binary_path()
    version = engine.version()
    print(f"sqlite: {binary_path}")
    print(f"version: {version}")
    return EXIT_OK


def _normalize_options(config: GitSqliteConfig, args: argparse.Namespace) -> NormalizeOptions:
    partition = PARTITION_ALL
    if args.data_only:
        partition = PARTITION_DATA
    elif args.schema_only:
        partition = PARTITION_SCHEMA
    return NormalizeOptions(float_precision=config.float_precision, partition=partition)


def _ensure_stdin_available(stream: BinaryIO, operation: str) -> None:
    """Reject an interactive terminal or an empty file as stdin.

    Raises:
        NoInputError: If no input data can arrive on the stream.
    """
    try:
        file_descriptor = stream.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return
    if os.isatty(file_descriptor):
        raise NoInputError(
            f"No input provided via stdin. The {operation} operation requires input data, "
            f"e.g. '{TOOL_NAME} {operation} < input_file'."
        )
    file_stat = os.fstat(file_descriptor)
    if stat.S_ISREG(file_stat.st_mode) and file_stat.st_size == 0:
        raise NoInputError(
            f"No input provided via stdin: the redirected file is empty. "
            f"The {operation} operation requires input data."
        )


def _report_error(error: GitSqliteError) -> int:
    _LOGGER.error(
        "gitsqlite_failed",
        error=str(error),
        error_type=type(error).__name__,
        exit_code=error.exit_code,
    )
    sys.stderr.write(f"Error: {error}\n")
    return error.exit_code


def _silence_stdout() -> None:
    """Point stdout at devnull so flushing at exit cannot raise again."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        os.close(devnull)
    except (OSError, ValueError, io.UnsupportedOperation) as error:
        _LOGGER.debug("stdout_redirect_skipped", error=str(error))


def _handle_sigterm(signum: int, frame: Any) -> NoReturn:
    raise SystemExit(128 + signum)


def _install_sigterm_handler() -> Any:
    if threading.current_thread() is not threading.main_thread():
        return None
    return signal.signal(signal.SIGTERM, _handle_sigterm)


def _restore_sigterm_handler(previous_handler: Any) -> None:
    if previous_handler is None:
        return
    signal.signal(signal.SIGTERM, previous_handler)


def _add_partition_arguments(parser: argparse.ArgumentParser) -> None:
    """Register float and partition options shared by dump commands."""
    parser.add_argument(
        "--float-precision",
        help="Digits after the decimal point for float literals, or 'off'",
    )
    partition = parser.add_mutually_exclusive_group()
    partition.add_argument("--data-only", action="store_true", help="Emit only data statements")
    partition.add_argument(
        "--schema-only",
        action="store_true",
        help="Emit only schema statements",
    )


def _add_clean_command(subparsers: Any) -> None:
    """Register clean subcommand."""
    parser = subparsers.add_parser("clean", help="Convert a database on stdin to SQL on stdout")
    _add_partition_arguments(parser)
    parser.add_argument(
        "--hash",
        action="store_true",
        help="Append a SHA-256 signature comment line",
    )


def _add_smudge_command(subparsers: Any) -> None:
    """Register smudge subcommand."""
    parser = subparsers.add_parser("smudge", help="Convert SQL on stdin to a database on stdout")
    parser.add_argument(
        "--schema-file",
        help="Schema script restored before stdin (pairs with clean --data-only)",
    )
    parser.add_argument(
        "--verify-hash",
        action="store_true",
        help="Require a valid SHA-256 signature line on the input",
    )


def _add_diff_command(subparsers: Any) -> None:
    """Register diff subcommand."""
    parser = subparsers.add_parser("diff", help="Dump a database file as SQL (git textconv)")
    parser.add_argument("database", help="Path of the database file")
    _add_partition_arguments(parser)


def _add_version_command(subparsers: Any) -> None:
    """Register version subcommand."""
    subparsers.add_parser("version", help="Print gitsqlite version")


def _add_sqlite_version_command(subparsers: Any) -> None:
    """Register sqlite-version subcommand."""
    subparsers.add_parser("sqlite-version", help="Print SQLite location and version")
