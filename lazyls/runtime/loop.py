"""Main interactive event loop for the terminal UI.

Each iteration folds model updates and finished previews into the navigation
state, renders when dirty, then blocks on input for at most one tick. The
loop never waits on size workers or watch threads directly.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from os import terminal_size

from ..model import UpdateStream
from ..navigation import CommandSource, NavigationController
from .render import FrameGeometry, render_frame
from .terminal import TerminalController
from .theme import UITheme

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    input_timeout_seconds: float = 0.12


def run_main_loop(
    controller: NavigationController,
    updates: UpdateStream,
    terminal: TerminalController,
    commands: CommandSource,
    theme: UITheme,
    timing: RuntimeLoopTiming = RuntimeLoopTiming(),
    get_terminal_size: Callable[[tuple[int, int]], terminal_size] = shutil.get_terminal_size,
) -> None:
    """Run the interactive loop until a ``Quit`` command is handled."""
    state = controller.state
    if state is None:
        raise RuntimeError("navigation not started")
    last_size: tuple[int, int] | None = None

    with terminal.raw_mode():
        while True:
            term = get_terminal_size((80, 24))
            size = (term.columns, term.lines)
            if size != last_size:
                last_size = size
                state.dirty = True

            controller.expire_status()
            controller.apply_updates(updates.drain())
            controller.poll_preview()

            if state.dirty:
                render_frame(
                    terminal,
                    state,
                    controller.visible_entries(),
                    FrameGeometry(width=term.columns, height=term.lines),
                    theme,
                )
                state.dirty = False

            try:
                command = commands.read_command(state.mode, timing.input_timeout_seconds)
            except KeyboardInterrupt:
                continue
            if command is None:
                continue
            logger.debug("command %r in %s mode", command, state.mode)
            if controller.handle(command):
                return


__all__ = ["RuntimeLoopTiming", "run_main_loop"]
