"""Runtime composition layer for lazyls.

Builds the model, controller and terminal adapters, wires persistence
callbacks, and runs the loop. Everything started here is shut down on exit.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import TextIO

from ..config import BrowserSettings, save_show_hidden, save_sort_by
from ..errors import DirectoryUnreadable
from ..listing import Listing
from ..model import DirectoryModel
from ..navigation import NavigationController
from ..preview import TextPreviewProvider
from .keys import TerminalCommandSource
from .loop import RuntimeLoopTiming, run_main_loop
from .preview_scheduler import PreviewScheduler
from .render import format_size
from .terminal import TerminalController
from .theme import theme_for

logger = logging.getLogger(__name__)


def print_listing(listing: Listing, out: TextIO) -> None:
    """Plain, non-interactive listing used when stdin is not a terminal."""
    for entry in listing.entries:
        suffix = "/" if entry.is_dir else ""
        out.write(f"{format_size(entry.size):>10}  {entry.name}{suffix}\n")


def _open_start(model: DirectoryModel, path: Path) -> Listing:
    try:
        return model.open(path)
    except OSError as exc:
        raise DirectoryUnreadable(path, exc) from exc


def run_browser(path: Path, settings: BrowserSettings) -> None:
    """Browse ``path`` interactively.

    Raises ``DirectoryUnreadable`` when ``path`` cannot be listed at startup;
    later ``OSError``s propagate unchanged.
    """
    interactive = os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())
    if not interactive:
        model = DirectoryModel(replace(settings, auto_size_directories=False))
        try:
            print_listing(_open_start(model, path), sys.stdout)
        finally:
            model.shutdown()
        return

    model = DirectoryModel(settings)
    updates = model.updates()
    preview = PreviewScheduler(
        TextPreviewProvider(
            max_bytes=settings.preview_max_bytes,
            style=settings.style,
            colorize=not settings.no_color,
        )
    )
    controller = NavigationController(
        model,
        preview,
        on_show_hidden_changed=save_show_hidden,
        on_sort_changed=save_sort_by,
    )
    try:
        try:
            controller.start(path)
        except OSError as exc:
            raise DirectoryUnreadable(path, exc) from exc
        stdin_fd = sys.stdin.fileno()
        run_main_loop(
            controller,
            updates,
            TerminalController(stdin_fd, sys.stdout.fileno()),
            TerminalCommandSource(stdin_fd),
            theme_for(settings.no_color),
            RuntimeLoopTiming(),
        )
    finally:
        preview.cancel()
        model.shutdown()
        logger.debug("browser session for %s ended", path)


__all__ = ["print_listing", "run_browser"]
