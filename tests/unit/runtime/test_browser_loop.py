"""Tests for the interactive loop and browser composition.

The loop is driven with a scripted command source and a recording terminal,
so no tty is required.
"""

from __future__ import annotations

import contextlib
import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazyls.config import BrowserSettings
from lazyls.errors import DirectoryUnreadable
from lazyls.model import DirectoryModel
from lazyls.navigation import Descend, MoveDown, NavigationController, Quit
from lazyls.runtime.app import print_listing, run_browser
from lazyls.runtime.loop import RuntimeLoopTiming, run_main_loop
from lazyls.runtime.theme import PLAIN_THEME
from lazyls.watcher import WatchSubscription


class RecordingTerminal:
    def __init__(self) -> None:
        self.frames: list[str] = []
        self.entered = 0
        self.exited = 0

    @contextlib.contextmanager
    def raw_mode(self):
        self.entered += 1
        try:
            yield
        finally:
            self.exited += 1

    def write(self, text: str) -> None:
        self.frames.append(text)


class ScriptedCommands:
    def __init__(self, commands: list) -> None:
        self.commands = list(commands)
        self.modes: list[str] = []

    def read_command(self, mode, timeout_seconds):
        self.modes.append(mode)
        if not self.commands:
            return Quit()
        command = self.commands.pop(0)
        if isinstance(command, BaseException):
            raise command
        return command


class NullWatcher:
    def subscribe(self, path: Path) -> WatchSubscription:
        return WatchSubscription(path, coalesce_interval=0.0)

    def stop(self) -> None:
        pass


class NullPreview:
    def schedule(self, target: Path) -> int:
        return 1

    def cancel(self) -> None:
        pass

    def drain_results(self) -> list:
        return []


def _fixed_size(_fallback):
    return os.terminal_size((60, 10))


class RunMainLoopTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name).resolve()
        (self.root / "alpha").mkdir()
        (self.root / "beta.txt").write_text("beta", encoding="utf-8")
        self.model = DirectoryModel(
            BrowserSettings(auto_size_directories=False, watch_coalesce_interval=0.0),
            watcher=NullWatcher(),
        )
        self.addCleanup(self.model.shutdown)
        self.controller = NavigationController(self.model, NullPreview())
        self.updates = self.model.updates()

    def _run(self, commands: list) -> RecordingTerminal:
        terminal = RecordingTerminal()
        run_main_loop(
            self.controller,
            self.updates,
            terminal,
            ScriptedCommands(commands),
            PLAIN_THEME,
            RuntimeLoopTiming(input_timeout_seconds=0.01),
            get_terminal_size=_fixed_size,
        )
        return terminal

    def test_renders_then_quits(self) -> None:
        self.controller.start(self.root)
        terminal = self._run([MoveDown(), Quit()])

        self.assertEqual((terminal.entered, terminal.exited), (1, 1))
        self.assertGreaterEqual(len(terminal.frames), 2)
        self.assertIn("alpha/", terminal.frames[0])
        self.assertIn("2/2", terminal.frames[-1])

    def test_idle_ticks_and_interrupts_do_not_end_the_loop(self) -> None:
        self.controller.start(self.root)
        terminal = self._run([None, KeyboardInterrupt(), Descend(), Quit()])

        self.assertEqual(self.controller.state.current_path, self.root / "alpha")
        self.assertIn(str(self.root / "alpha"), terminal.frames[-1])

    def test_requires_started_controller(self) -> None:
        with self.assertRaises(RuntimeError):
            self._run([Quit()])


class BrowserCompositionTests(unittest.TestCase):
    def test_print_listing_formats_sizes_and_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "docs").mkdir()
            (root / "a.txt").write_bytes(b"x" * 12)
            model = DirectoryModel(BrowserSettings(auto_size_directories=False), watcher=NullWatcher())
            try:
                out = io.StringIO()
                print_listing(model.open(root), out)
            finally:
                model.shutdown()

        self.assertEqual(out.getvalue().splitlines(), ["         -  docs/", "      12 B  a.txt"])

    def test_run_browser_without_tty_prints_listing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a.txt").write_bytes(b"x" * 3)
            out = io.StringIO()
            fake_stdin = mock.Mock()
            fake_stdin.fileno.return_value = 0
            fake_stdout = mock.Mock(wraps=out)
            fake_stdout.fileno.return_value = 1
            with mock.patch("lazyls.runtime.app.sys.stdin", fake_stdin), mock.patch(
                "lazyls.runtime.app.sys.stdout", fake_stdout
            ), mock.patch("lazyls.runtime.app.os.isatty", return_value=False), mock.patch(
                "lazyls.runtime.app.DirectoryModel",
                side_effect=lambda settings: DirectoryModel(settings, watcher=NullWatcher()),
            ):
                run_browser(root, BrowserSettings())

        self.assertEqual(out.getvalue(), "       3 B  a.txt\n")

    def test_run_browser_wraps_startup_listing_failure(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            fake_stdin = mock.Mock()
            fake_stdin.fileno.return_value = 0
            fake_stdout = mock.Mock(wraps=io.StringIO())
            fake_stdout.fileno.return_value = 1
            denied = PermissionError(13, "Permission denied")
            with mock.patch("lazyls.runtime.app.sys.stdin", fake_stdin), mock.patch(
                "lazyls.runtime.app.sys.stdout", fake_stdout
            ), mock.patch("lazyls.runtime.app.os.isatty", return_value=False), mock.patch(
                "lazyls.runtime.app.DirectoryModel",
                side_effect=lambda settings: DirectoryModel(settings, watcher=NullWatcher()),
            ), mock.patch.object(DirectoryModel, "open", side_effect=denied):
                with self.assertRaises(DirectoryUnreadable) as ctx:
                    run_browser(root, BrowserSettings())

        self.assertIs(ctx.exception.error, denied)
        self.assertEqual(ctx.exception.path, root)


if __name__ == "__main__":
    unittest.main()
