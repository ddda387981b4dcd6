"""CLI entry point for tif2pyramid.

Batch-convert a tree of TIFF images into tiled, pyramidal,
deflate-compressed TIFFs using libvips.  Reruns are cheap: finished
outputs are detected by a single scan of the output tree and skipped.

Usage::

    tif2pyramid convert /data/in /data/out
    tif2pyramid convert /data/in /data/out -j 8 --no-cache
    tif2pyramid status /data/in /data/out
    tif2pyramid show-command
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import colorlog

from tif2pyramid import __version__
from tif2pyramid.config import RunConfig
from tif2pyramid.converter import VipsConverter
from tif2pyramid.errors import Tif2PyramidError
from tif2pyramid.logcontext import ItemContextFilter
from tif2pyramid.pipeline import BatchPipeline


_log = logging.getLogger("tif2pyramid")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
"""Accepted values for the ``LOG_LEVEL`` environment variable."""


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_colorized_logging(level: int = logging.INFO) -> None:
    """Configure colorized logging output."""
    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s "
            "%(blue)s%(name)-10s%(reset)s: %(item_prefix)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler.addFilter(ItemContextFilter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def _resolve_log_level(verbose: bool) -> int:
    """``-v`` wins; otherwise ``LOG_LEVEL`` from the environment, else INFO."""
    if verbose:
        return logging.DEBUG
    name = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
    if name not in _LOG_LEVELS:
        return logging.INFO
    return getattr(logging, name)


def _setup_logging(verbose: bool) -> None:
    setup_colorized_logging(_resolve_log_level(verbose))


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    # -- Parent parsers for shared argument groups -----------------------------
    verbose_parent = argparse.ArgumentParser(add_help=False)
    verbose_parent.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (overrides LOG_LEVEL)",
    )

    dirs_parent = argparse.ArgumentParser(add_help=False)
    dirs_parent.add_argument(
        "input_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Root of the source TIFF tree (default: $INPUT_DIR or /app/input)",
    )
    dirs_parent.add_argument(
        "output_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Root of the output tree (default: $OUTPUT_DIR or /app/output)",
    )

    # -- Main parser -----------------------------------------------------------
    parser = argparse.ArgumentParser(
        prog="tif2pyramid",
        description="Convert TIFF trees to tiled pyramidal TIFFs with libvips",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  convert       Convert all pending TIFF files (requires vips)
  status        Show how many files are done / pending (no conversion)
  show-command  Print the vips command used for each file

Run '%(prog)s COMMAND --help' for command-specific options.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # -- convert ---------------------------------------------------------------
    p_convert = subparsers.add_parser(
        "convert",
        parents=[verbose_parent, dirs_parent],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        help="Convert all pending TIFF files",
        description="Discover TIFF files, skip those already converted, "
                    "and convert the rest in parallel.",
        epilog="""
Examples:
  %(prog)s /data/in /data/out               Convert with defaults
  %(prog)s /data/in /data/out -j 8          Eight parallel workers
  %(prog)s /data/in /data/out --no-cache    Write directly (local storage)
  %(prog)s /data/in /data/out --joblog jobs.jsonl

Environment:
  THREADS, USE_LOCAL_CACHE, LOCAL_CACHE_DIR, LOG_LEVEL, INPUT_DIR, OUTPUT_DIR
        """,
    )
    p_convert.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="Number of parallel workers (default: $THREADS or 4)",
    )
    cache_group = p_convert.add_mutually_exclusive_group()
    cache_group.add_argument(
        "--cache",
        dest="use_cache",
        action="store_const",
        const=True,
        default=None,
        help="Stage each file through a local cache directory "
             "(NFS optimization; default unless USE_LOCAL_CACHE=false)",
    )
    cache_group.add_argument(
        "--no-cache",
        dest="use_cache",
        action="store_const",
        const=False,
        help="Convert directly next to the final output",
    )
    p_convert.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Local staging directory; emptied at start and end "
             "(default: $LOCAL_CACHE_DIR or /tmp/cache)",
    )
    p_convert.add_argument(
        "--joblog",
        type=Path,
        default=None,
        metavar="FILE",
        help="Append one JSON line per processed file to FILE",
    )
    p_convert.add_argument(
        "--vips",
        dest="vips_executable",
        default=None,
        metavar="PATH",
        help="vips executable to invoke (default: $VIPS or 'vips')",
    )

    # -- status ----------------------------------------------------------------
    subparsers.add_parser(
        "status",
        parents=[verbose_parent, dirs_parent],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        help="Show done / pending counts without converting",
        description="Scan the input and output trees and report how many "
                    "files are already converted and how many are pending.",
    )

    # -- show-command ----------------------------------------------------------
    subparsers.add_parser(
        "show-command",
        help="Print the vips command template",
        description="Print the converter command used for each file and exit.",
    )

    return parser


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _config_from_args(args: argparse.Namespace) -> RunConfig:
    """Merge CLI arguments over environment variables."""
    return RunConfig.from_env(
        os.environ,
        input_root=args.input_dir,
        output_root=args.output_dir,
        threads=getattr(args, "jobs", None),
        use_local_cache=getattr(args, "use_cache", None),
        cache_dir=getattr(args, "cache_dir", None),
        joblog=getattr(args, "joblog", None),
        vips_executable=getattr(args, "vips_executable", None),
    )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_show_command(args: argparse.Namespace) -> int:
    """Handle the ``show-command`` command."""
    converter = VipsConverter(os.environ.get("VIPS", "vips"))
    print(" ".join(converter.build_command(Path("SOURCE"), Path("DEST"))))
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    """Handle the ``status`` command."""
    _setup_logging(args.verbose)
    try:
        config = _config_from_args(args)
        result = BatchPipeline(config).check()
    except Tif2PyramidError as e:
        _log.error("Fatal error: %s", e)
        return 1

    _log.info("tif2pyramid %s", __version__)
    _log.info("Files: %d total", result.total)
    _log.info("  ✓ Already complete: %d", result.completed_count)
    _log.info("  … Pending:          %d", len(result.pending))
    for source in result.pending:
        _log.debug("    %s", source)
    return 0


def _cmd_convert(args: argparse.Namespace) -> int:
    """Handle the ``convert`` command."""
    _setup_logging(args.verbose)
    _log.info("tif2pyramid %s", __version__)
    try:
        config = _config_from_args(args)
        report = BatchPipeline(config).run()
    except Tif2PyramidError as e:
        _log.error("Fatal error: %s", e)
        return 1
    return report.exit_code


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = _build_parser()

    if argv is None:
        argv = sys.argv[1:]

    # Show help if no arguments provided.
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)

    # No subcommand given (e.g. only --version was handled by argparse).
    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        "convert": _cmd_convert,
        "status": _cmd_status,
        "show-command": _cmd_show_command,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
