"""Command-line front door for lazyls.

Parses CLI options, resolves settings from config plus flags, configures
logging, and dispatches into the interactive browser runtime.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import LOG_LEVELS, load_settings
from .errors import DirectoryUnreadable
from .listing import SORT_ORDERS
from .logging_config import configure_logging
from .runtime import run_browser

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _nonnegative_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazyls",
        description="Browse a directory with background size totals and live updates.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Directory to browse. Defaults to current directory.")
    parser.add_argument("--workers", type=_positive_int, default=None, help="Size computation worker threads.")
    parser.add_argument(
        "--coalesce-interval",
        type=_nonnegative_float,
        default=None,
        help="Minimum seconds between change events delivered for one entry.",
    )
    parser.add_argument("--preview-max-bytes", type=_positive_int, default=None, help="Cap on bytes read for previews.")
    parser.add_argument(
        "--poll-interval",
        type=_nonnegative_float,
        default=None,
        help="Seconds between polls when live watching is unavailable.",
    )
    parser.add_argument(
        "--no-auto-size",
        action="store_true",
        help="Only compute directory sizes on request (S).",
    )
    parser.add_argument("--show-hidden", action="store_true", default=None, help="Show dotfiles.")
    parser.add_argument("--sort", choices=SORT_ORDERS, default=None, help="Initial sort order.")
    parser.add_argument("--style", default=None, help="Pygments style name for previews.")
    parser.add_argument("--no-color", action="store_true", default=None, help="Disable color output.")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default=None, help="Log level for --log-file.")
    parser.add_argument("--log-file", default=None, help="Write logs to this file (never to the terminal).")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, object]:
    """Map parsed flags onto settings keys; unset flags are omitted."""
    overrides: dict[str, object] = {
        "worker_pool_size": args.workers,
        "watch_coalesce_interval": args.coalesce_interval,
        "preview_max_bytes": args.preview_max_bytes,
        "poll_interval": args.poll_interval,
        "show_hidden": args.show_hidden,
        "sort_by": args.sort,
        "style": args.style,
        "no_color": args.no_color,
        "log_level": args.log_level,
        "log_file": args.log_file,
    }
    if args.no_auto_size:
        overrides["auto_size_directories"] = False
    return {key: value for key, value in overrides.items() if value is not None}


def main(argv: list[str] | None = None, default_path: Path | None = None) -> None:
    """Parse CLI arguments and launch lazyls on a directory.

    ``default_path`` is primarily for tests; when omitted the current working
    directory is used.
    """
    args = build_parser().parse_args(argv)
    settings = load_settings(overrides_from_args(args))
    configure_logging(level=settings.log_level, log_file=settings.log_file)

    if default_path is None:
        default_path = Path.cwd()
    path = Path(args.path or default_path)
    if not path.exists():
        raise SystemExit(f"Path not found: {path}")
    if not path.is_dir():
        raise SystemExit(f"Not a directory: {path}")

    try:
        run_browser(path, settings)
    except DirectoryUnreadable as exc:
        logger.error("cannot read %s: %s", path, exc.error)
        raise SystemExit(f"Cannot read directory {path}: {exc.error.strerror or exc.error}") from exc


if __name__ == "__main__":
    main()
