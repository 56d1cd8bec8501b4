"""CLI entrypoints for usage-rules commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

from .config import LINK_STYLES, ConfigError, UsageRulesConfig
from .logging import configure_logging
from .orchestrator import Orchestrator, SyncOptions
from .providers import ProviderError
from .render import OutputWriteError


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    flag_default: object = argparse.SUPPRESS if suppress_default else False
    path_default: object = argparse.SUPPRESS if suppress_default else None
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=flag_default,
        help="Increase log verbosity for troubleshooting.",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=flag_default,
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=path_default,
        help="Also write DEBUG-level logs to this file.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _comma_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usage-rules",
        description="Aggregate usage-rules.md files shipped by project dependencies.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Sync usage rules from dependencies into the output document.",
    )
    _add_logging_options(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument(
        "--all",
        action="store_true",
        default=None,
        help="Include every dependency that ships usage rules.",
    )
    sync_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output document path (defaults to AGENTS.md).",
    )
    sync_parser.add_argument(
        "--link-folder",
        type=Path,
        help="Write each package's rules to its own file in this folder and link them.",
    )
    sync_parser.add_argument(
        "--link-style",
        choices=LINK_STYLES,
        help="How linked packages are referenced from the output document.",
    )
    sync_parser.add_argument(
        "--inline",
        type=_comma_list,
        action="extend",
        default=[],
        help="Comma-separated package names to inline, even in linked mode.",
    )
    sync_parser.add_argument(
        "--remove",
        type=_comma_list,
        action="extend",
        default=[],
        help="Comma-separated package names to exclude.",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render output without writing any files.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List dependencies and whether they ship usage rules.",
    )
    _add_logging_options(list_parser, suppress_default=True)
    _add_path_argument(list_parser)

    return parser


def _sync_options(args: argparse.Namespace, config: UsageRulesConfig) -> SyncOptions:
    options = SyncOptions.from_config(config)
    if args.all:
        options.include_all = True
    options.inline = sorted({*options.inline, *args.inline})
    options.remove = sorted({*options.remove, *args.remove})
    if args.output is not None:
        options.output = args.output
    if args.link_folder is not None:
        options.link_folder = args.link_folder
    if args.link_style is not None:
        options.link_style = args.link_style
    options.dry_run = bool(args.dry_run)
    return options


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for usage-rules commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), quiet=bool(args.quiet), log_file=args.log_file
    )

    orchestrator = Orchestrator()

    try:
        config = orchestrator.load_config(args.path)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "sync":
        options = _sync_options(args, config)
        try:
            outcome = orchestrator.run_sync(args.path, options, config=config)
        except (ProviderError, OutputWriteError) as exc:
            parser.exit(1, f"usage-rules sync failed: {exc}\nRun with --verbose for more details.\n")
        if not outcome.written:
            print("No packages selected for output. Use --all to include all packages.")
            return
        verb = "Would write" if outcome.dry_run else "Wrote"
        for path in outcome.written:
            print(f"{verb} {_relativize(path)}")
        print(
            f"Processed {outcome.processed} package(s) with usage rules; "
            f"excluded {outcome.excluded}."
        )
        if outcome.warnings:
            print(f"{len(outcome.warnings)} reference(s) skipped:")
            for warning in outcome.warnings:
                print(f"  - {warning.describe()}")
    elif args.command == "list":
        try:
            reports, warnings = orchestrator.run_list(args.path, config=config)
        except ProviderError as exc:
            parser.exit(1, f"usage-rules list failed: {exc}\nRun with --verbose for more details.\n")
        if not reports:
            print("No dependencies found.")
            return
        print("Dependencies:\n")
        for report in reports:
            marker = "✓" if report.has_guidance else " "
            sub_files = f" ({report.sub_file_count} sub-files)" if report.sub_file_count else ""
            print(
                f"  [{marker}] {report.package.name} v{report.package.version}"
                f"{sub_files} -> {report.decision.value}"
            )
        if warnings:
            print(f"\n{len(warnings)} reference(s) skipped.")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
