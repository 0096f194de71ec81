"""CLI entrypoints for memoize commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .builder import SiteBuilder
from .config import load_config
from .errors import BuildAbortedError, ConfigError
from .logging import configure_logging, get_logger
from .models import BuildReport

EXIT_OK = 0
EXIT_FAILED_JOBS = 1
EXIT_FATAL = 2


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


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Source directory of Markdown notes (defaults to current directory).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output directory (defaults to _public inside the source directory).",
    )
    parser.add_argument(
        "--jobs",
        type=_positive_int,
        default=None,
        help="Number of parallel build workers (defaults to the CPU count).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .memoize.yml file (defaults to the one in the source directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memoize",
        description="Render a directory of Markdown notes into a static HTML site.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write timestamped log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Build the site once.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_source_options(build_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Build, watch for changes and serve the site with live reload.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_source_options(serve_parser)
    serve_parser.add_argument(
        "--watch-dir",
        type=Path,
        default=None,
        help="Directory to watch and build from (overrides the positional path).",
    )
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default 3000).")
    serve_parser.add_argument("--host", default=None, help="Interface to bind (default 127.0.0.1).")
    serve_parser.add_argument(
        "--debounce",
        type=float,
        default=None,
        help="Seconds of quiet before a batch of changes triggers a rebuild.",
    )
    serve_parser.add_argument(
        "--incremental",
        action="store_true",
        default=None,
        help="Rebuild only changed pages and pages linking to them instead of the whole site.",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for memoize commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)
    logger = get_logger("cli")

    source = Path(getattr(args, "watch_dir", None) or args.path).expanduser()
    if not source.is_dir():
        parser.exit(EXIT_FATAL, f"Source directory not found: {source}\n")
    try:
        config = load_config(args.config or source)
    except ConfigError as exc:
        parser.exit(EXIT_FATAL, f"{exc}\n")
    config.root = source.resolve()

    if args.command == "build":
        try:
            builder = SiteBuilder.from_config(config, output_root=args.output, jobs=args.jobs)
            report = builder.build(clean=True)
        except BuildAbortedError as exc:
            parser.exit(EXIT_FATAL, f"memoize build failed: {exc}\n")
        print(_format_report(report, builder.output_root))
        return EXIT_OK if report.ok else EXIT_FAILED_JOBS

    if args.command == "serve":
        from .server import run_server

        try:
            run_server(
                config,
                output_root=args.output,
                host=args.host,
                port=args.port,
                debounce=args.debounce,
                incremental=args.incremental,
                jobs=args.jobs,
            )
        except BuildAbortedError as exc:
            parser.exit(EXIT_FATAL, f"memoize serve failed: {exc}\n")
        except KeyboardInterrupt:
            logger.info("Interrupted")
        return EXIT_OK

    parser.exit(EXIT_FATAL, "Unknown command\n")  # pragma: no cover - argparse enforces choices
    return EXIT_FATAL  # pragma: no cover


def _format_report(report: BuildReport, output_root: Path) -> str:
    lines = [
        f"Built {len(report.pages_rendered)} pages and {len(report.assets_copied)} assets "
        f"into {_relativize(output_root)}"
    ]
    if report.scan_errors:
        lines.append("Skipped entries:")
        lines.extend(f"  {error.rel_path}: {error.message}" for error in report.scan_errors)
    if report.warnings:
        lines.append("Broken links:")
        lines.extend(f"  {warning.rel_path}: {warning.target}" for warning in report.warnings)
    if report.failures:
        lines.append("Failed:")
        lines.extend(f"  {failure.rel_path}: {failure.message}" for failure in report.failures)
    return "\n".join(lines)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
