from __future__ import annotations

import argparse
import json
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich_argparse import RawTextRichHelpFormatter
from zq_runner import (
    ProcessEngine,
    QueryProcessingError,
    RunnerSettings,
    ZqRunnerError,
    build_output_items,
    normalize_output,
    run_query,
)
from zq_runner.execution.config import engine_is_available, validate_engine_command

_CONSOLE = Console(no_color=False)
_ERR_CONSOLE = Console(stderr=True)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="zqr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def _configure_logging(verbose: bool) -> None:
    """Route library logging through a Rich handler on stderr.

    Example:
        ```python
        _configure_logging(verbose=True)
        ```
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=_ERR_CONSOLE, show_path=False)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running zq queries over JSON payloads.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="zqr",
        description=(
            "zq-runner CLI\n"
            "Run a zq query over a JSON payload and print normalized JSON records.\n"
            "The engine is invoked as: <engine> -j -i json <query> -"
        ),
        epilog=(
            "Quick Examples:\n"
            "  zqr run 'sort id' --data '[{\"id\": 2}, {\"id\": 1}]'\n"
            "  cat people.json | zqr run 'cut name' --format table\n"
            "  zqr run 'count()' --data-file people.json --format json\n"
            "  zq -j 'yield this' data.json | zqr normalize\n"
            "  zqr check"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a settings TOML file.\n"
            "Example: --config ~/.config/zq_runner.toml"
        ),
    )
    parser.add_argument(
        "--engine",
        help="Engine binary to run (default: $ZQ_RUNNER_ENGINE or zq).",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=int,
        help="Kill the engine after N seconds (default: from settings, 0 disables).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details to stderr.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Run a query over a JSON payload.",
        description=(
            "Run one zq query over a JSON payload.\n"
            "The payload comes from --data, --data-file, or stdin."
        ),
        epilog=(
            "Examples:\n"
            "  zqr run 'head 1' --data '{\"name\": \"Alice\"}'\n"
            "  zqr run 'sort -r age' --data-file people.json --format items"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("query")
    source = run_cmd.add_mutually_exclusive_group()
    source.add_argument("--data", help="Inline JSON payload.")
    source.add_argument("--data-file", help="Path to a JSON payload file.")
    _add_format_argument(run_cmd)

    normalize_cmd = sub.add_parser(
        "normalize",
        help="Normalize already-captured engine output.",
        description=(
            "Parse engine output (newline-delimited objects, one array, or one value)\n"
            "into records without running the engine."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    normalize_cmd.add_argument("--file", help="Read output from a file instead of stdin.")
    _add_format_argument(normalize_cmd)

    sub.add_parser(
        "check",
        help="Check that the engine binary is available.",
        description="Report whether the configured engine binary resolves on PATH.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def _add_format_argument(cmd: argparse.ArgumentParser) -> None:
    """Attach the shared --format option to a subcommand.

    Example:
        ```python
        _add_format_argument(run_cmd)
        ```
    """
    cmd.add_argument(
        "--format",
        choices=["ndjson", "json", "items", "table"],
        default="ndjson",
        help="Output format (default: ndjson).",
    )


def build_settings(args: argparse.Namespace) -> RunnerSettings:
    """Resolve settings from --config, then apply CLI overrides.

    Example:
        ```python
        settings = build_settings(args)
        ```
    """
    settings = RunnerSettings.from_file(args.config) if args.config else RunnerSettings()
    if args.engine:
        settings.engine_command = validate_engine_command([args.engine])
    if args.timeout_seconds is not None:
        if args.timeout_seconds < 0:
            raise ValueError("--timeout-seconds must be zero or positive")
        settings.timeout_seconds = args.timeout_seconds
    settings.config_path = None
    return settings


def build_engine(settings: RunnerSettings) -> ProcessEngine:
    """Create the process engine for resolved settings.

    Example:
        ```python
        engine = build_engine(RunnerSettings())
        ```
    """
    return ProcessEngine.from_settings(settings)


def _read_text(path: str | None) -> str:
    """Read text from a file path, or from stdin when no path is given.

    Example:
        ```python
        text = _read_text("people.json")
        ```
    """
    if path is None:
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _print_records(records: list[Any], fmt: str) -> None:
    """Render records in the requested output format.

    Example:
        ```python
        _print_records([{"id": 1}], "ndjson")
        ```
    """
    if fmt == "ndjson":
        for record in records:
            print(json.dumps(record, ensure_ascii=False))
    elif fmt == "json":
        print(json.dumps(records, ensure_ascii=False, indent=2))
    elif fmt == "items":
        print(json.dumps(build_output_items(records), ensure_ascii=False, indent=2))
    else:
        _print_table(records)


def _print_table(records: list[Any]) -> None:
    """Render records in a rich table, one column per top-level key.

    Example:
        ```python
        _print_table([{"id": 1, "name": "Alice"}])
        ```
    """
    columns: list[str] = []
    for record in records:
        keys = record.keys() if isinstance(record, dict) else ["value"]
        for key in keys:
            if key not in columns:
                columns.append(key)
    table = Table(title=f"Records ({len(records)})")
    for column in columns:
        table.add_column(str(column), style="cyan" if column == columns[0] else None)
    for record in records:
        row = record if isinstance(record, dict) else {"value": record}
        table.add_row(*[_cell(row.get(column)) for column in columns])
    _CONSOLE.print(table)


def _cell(value: Any) -> str:
    """Format one table cell.

    Example:
        ```python
        assert _cell({"a": 1}) == '{"a": 1}'
        ```
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `zqr` CLI command handler.

    Example:
        ```python
        code = main(["run", "head 1", "--data", "[1, 2]"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    try:
        settings = build_settings(args)
    except (OSError, ValueError) as exc:
        _CONSOLE.print(Panel.fit(f"Invalid settings: {exc}", style="bold red"))
        return 1

    if args.command == "check":
        available, reason = engine_is_available(settings.engine_command)
        if not available:
            _CONSOLE.print(Panel.fit(reason or "Engine not available", style="bold red"))
            return 1
        _CONSOLE.print(Panel.fit(f"Engine '{settings.engine_command[0]}' is available", style="bold green"))
        return 0

    if args.command == "normalize":
        try:
            normalized = normalize_output(_read_text(args.file), excerpt_chars=settings.excerpt_chars)
        except (OSError, UnicodeDecodeError, ZqRunnerError) as exc:
            _CONSOLE.print(Panel.fit(str(exc), title="Normalize Failed", border_style="red"))
            return 1
        _print_records(normalized.records, args.format)
        if normalized.discarded_lines:
            _ERR_CONSOLE.print(f"[yellow]Discarded {normalized.discarded_lines} unparseable line(s)[/yellow]")
        return 0

    if args.command == "run":
        try:
            payload = args.data if args.data is not None else _read_text(args.data_file)
        except (OSError, UnicodeDecodeError) as exc:
            _CONSOLE.print(Panel.fit(f"Cannot read payload: {exc}", style="bold red"))
            return 1
        try:
            result = run_query(payload, args.query, engine=build_engine(settings), settings=settings)
        except QueryProcessingError as exc:
            _CONSOLE.print(Panel.fit(str(exc), title="Query Failed", border_style="red"))
            return 1
        _print_records(result.records, args.format)
        return 0

    parser.error("Unhandled command")
    return 2
