"""CLI entrypoints for what-git-branch commands."""

from __future__ import annotations

import argparse
import csv
import io
import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from .config import ConfigError, WhatGitBranchConfig, load_config
from .coordinator import Coordinator
from .locator import (
    CONTEXT_CLI,
    CONTEXT_MAINTENANCE,
    CacheWriteError,
    RepositoryLocator,
    ScanNotPermittedError,
)
from .logging import configure_logging, get_logger
from .repository import OverrideError

LIST_FIELDS = ("name", "ref", "path")

logger = get_logger("cli")


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="what-git-branch",
        description="Report the checked-out branch or commit of repositories on this host.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-c",
        "--config",
        default=".",
        help="Path to .what-git-branch.yml or the directory holding it (defaults to current directory).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write log records to this file (overrides logging.file).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List all repositories.")
    _add_verbose_option(list_parser, suppress_default=True)
    list_parser.add_argument(
        "--format",
        choices=("table", "json", "csv"),
        default="table",
        help="Output format.",
    )
    list_parser.add_argument(
        "--fields",
        default=",".join(LIST_FIELDS),
        help="Comma-separated columns to include (name, ref, path).",
    )

    directories_parser = subparsers.add_parser(
        "directories", help="Manage the cached list of repository directories."
    )
    _add_verbose_option(directories_parser, suppress_default=True)
    directories_parser.add_argument("action", help="`scan` or `clear-cache`.")

    primary_parser = subparsers.add_parser(
        "primary", help="Inspect or override the primary repository's head reference."
    )
    _add_verbose_option(primary_parser, suppress_default=True)
    primary_parser.add_argument("action", help="`identify`, `set` or `reset`.")
    primary_parser.add_argument(
        "value",
        nargs="?",
        help="For `identify`: `ref` (default) or `path`. For `set`: the head reference.",
    )
    primary_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt when creating an override file.",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP polling service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")

    return parser


def main(
    argv: list[str] | None = None,
    *,
    confirm: Callable[[str], bool] | None = None,
) -> None:
    """CLI entrypoint for what-git-branch commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    configure_logging(
        verbose=bool(args.verbose),
        log_file=args.log_file or config.logging.file,
        levels=config.logging.levels,
    )

    if args.command == "list":
        _run_list(parser, config, args.format, args.fields)
    elif args.command == "directories":
        _run_directories(parser, config, args.action)
    elif args.command == "primary":
        _run_primary(parser, config, args.action, args.value, args.yes, confirm or _prompt)
    elif args.command == "serve":
        from .service import run_service

        run_service(config, host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_list(
    parser: argparse.ArgumentParser,
    config: WhatGitBranchConfig,
    output_format: str,
    fields_arg: str,
) -> None:
    requested = [field.strip() for field in fields_arg.split(",") if field.strip()]
    fields = [field for field in LIST_FIELDS if field in requested]
    if not fields:
        parser.exit(1, f"No valid fields requested; choose from {', '.join(LIST_FIELDS)}\n")

    coordinator = Coordinator(config, context=CONTEXT_CLI)
    rows = [row.as_dict() for row in coordinator.rows()]
    print(format_rows(rows, fields, output_format))


def _run_directories(
    parser: argparse.ArgumentParser, config: WhatGitBranchConfig, action: str
) -> None:
    if action == "scan":
        logger.debug("Checking if scanning from the CLI is permitted")
        locator = RepositoryLocator(config, context=CONTEXT_MAINTENANCE)
        try:
            directories = locator.rescan()
        except ScanNotPermittedError as exc:
            parser.exit(1, f"{exc}\n")
        except CacheWriteError as exc:
            parser.exit(1, f"{exc}\n")
        count = len(directories)
        noun = "directory" if count == 1 else "directories"
        print(f"Found {count} {noun}.")
    elif action == "clear-cache":
        locator = RepositoryLocator(config, context=CONTEXT_CLI)
        if not locator.invalidate_cache():
            parser.exit(1, "Unable to clear directories cache\n")
        print("Cleared directories cache.")
    else:
        parser.exit(1, f"Unrecognized subcommand: directories {action}\n")


def _run_primary(
    parser: argparse.ArgumentParser,
    config: WhatGitBranchConfig,
    action: str,
    value: str | None,
    assume_yes: bool,
    confirm: Callable[[str], bool],
) -> None:
    coordinator = Coordinator(config, context=CONTEXT_CLI)
    primary = coordinator.primary()
    if primary is None:
        parser.exit(1, "No primary repository.\n")

    if action == "identify":
        if value in (None, "", "ref"):
            print(primary.get_head_ref())
        elif value == "path":
            print(primary.path)
        else:
            parser.exit(1, f"Unrecognized subcommand: primary identify {value}\n")
    elif action == "set":
        if not value:
            parser.exit(1, "A head reference is required: primary set <ref>\n")
        if not primary.has_override() and not assume_yes:
            question = (
                f"Create {primary.marker_path}? It will take precedence over git metadata."
            )
            if not confirm(question):
                parser.exit(1, "Aborted.\n")
        try:
            stored = coordinator.set_primary_head_ref(value)
        except OverrideError as exc:
            parser.exit(1, f"Unable to write file: {exc}\n")
        print(f"Set primary repository head reference to {stored}.")
    elif action == "reset":
        try:
            fallback = coordinator.reset_primary_head_ref()
        except OverrideError as exc:
            parser.exit(1, f"{exc}\n")
        print("Deleted primary repository override file.")
        print(f"Head reference is now {fallback or '(unknown)'}.")
    else:
        parser.exit(1, f"Unrecognized subcommand: primary {action}\n")


def format_rows(
    rows: Sequence[Dict[str, object]], fields: Sequence[str], output_format: str
) -> str:
    """Render rows as an aligned table, JSON array or CSV."""
    projected = [{field: row.get(field, "") for field in fields} for row in rows]
    if output_format == "json":
        return json.dumps(projected, indent=2)
    if output_format == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(fields), lineterminator="\n")
        writer.writeheader()
        writer.writerows(projected)
        return buffer.getvalue().rstrip("\n")

    table: List[List[str]] = [list(fields)]
    table.extend([str(row[field]) for field in fields] for row in projected)
    widths = [max(len(line[index]) for line in table) for index in range(len(fields))]
    lines = []
    for line in table:
        cells = [cell.ljust(width) for cell, width in zip(line, widths)]
        lines.append("  ".join(cells).rstrip())
    return "\n".join(lines)


def _prompt(question: str) -> bool:
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


if __name__ == "__main__":
    main(sys.argv[1:])
