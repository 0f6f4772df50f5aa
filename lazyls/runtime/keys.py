"""Raw key decoding and per-mode key bindings.

``read_key`` turns stdin bytes into normalized key tokens. Per-mode
``KeyCommandRegistry`` tables map tokens onto logical navigation commands,
and ``TerminalCommandSource`` combines both behind the ``CommandSource``
protocol.
"""

from __future__ import annotations

import os
import select
from collections.abc import Callable
from dataclasses import dataclass

from ..navigation import (
    Ascend,
    Backspace,
    Command,
    CycleSort,
    Descend,
    FilterChar,
    Mode,
    MoveBottom,
    MoveDown,
    MoveTop,
    MoveUp,
    OpenExternally,
    Quit,
    Refresh,
    RequestSize,
    ToggleHidden,
    ToggleMode,
)

ESC_SEQUENCE_TIMEOUT_MS = 25
_PENDING_BYTES: list[bytes] = []


def _read_ready_byte(fd: int, timeout_ms: int) -> bytes | None:
    ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
    if not ready:
        return None
    ch = os.read(fd, 1)
    if not ch:
        return None
    return ch


def _read_utf8_tail(fd: int, first: bytes) -> bytes:
    lead = first[0]
    if lead >= 0xF0:
        needed = 3
    elif lead >= 0xE0:
        needed = 2
    elif lead >= 0xC0:
        needed = 1
    else:
        return first
    out = first
    for _ in range(needed):
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            break
        out += part
    return out


def read_key(fd: int, timeout_ms: int | None = None) -> str:
    """Read one key token; returns ``""`` on timeout or EOF."""
    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return ""

        ch = os.read(fd, 1)
        if not ch:
            return ""

    if ch == b"\x03":
        return "CTRL_C"
    if ch == b"\t":
        return "TAB"
    if ch in {b"\x08", b"\x7f"}:
        return "BACKSPACE"
    if ch in {b"\r", b"\n"}:
        return "ENTER"

    if ch != b"\x1b":
        return _read_utf8_tail(fd, ch).decode("utf-8", errors="replace")

    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq not in {b"[", b"O"}:
        _PENDING_BYTES.append(seq)
        return "ESC"
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq == b"A":
        return "UP"
    if seq == b"B":
        return "DOWN"
    if seq == b"C":
        return "RIGHT"
    if seq == b"D":
        return "LEFT"
    if seq == b"H":
        return "HOME"
    if seq == b"F":
        return "END"
    return "ESC"


@dataclass(frozen=True)
class KeyCommandBinding:
    """Mapping from one or more key tokens to a single command."""

    combos: tuple[str, ...]
    command: Command


class KeyCommandRegistry:
    """Small key-to-command table with optional fallback for unbound keys."""

    def __init__(self, fallback: Callable[[str], Command | None] | None = None) -> None:
        self._commands: dict[str, Command] = {}
        self._fallback = fallback

    def register_binding(self, binding: KeyCommandBinding) -> KeyCommandRegistry:
        for combo in binding.combos:
            self._commands[combo] = binding.command
        return self

    def register_bindings(self, *bindings: KeyCommandBinding) -> KeyCommandRegistry:
        """Register multiple bindings and return ``self`` for fluent usage."""
        for binding in bindings:
            self.register_binding(binding)
        return self

    def lookup(self, key: str) -> Command | None:
        command = self._commands.get(key)
        if command is not None or self._fallback is None:
            return command
        return self._fallback(key)


def _filter_char(key: str) -> Command | None:
    if len(key) == 1 and key.isprintable():
        return FilterChar(key)
    return None


_MOVEMENT = (
    KeyCommandBinding(("UP",), MoveUp()),
    KeyCommandBinding(("DOWN",), MoveDown()),
    KeyCommandBinding(("HOME",), MoveTop()),
    KeyCommandBinding(("END",), MoveBottom()),
    KeyCommandBinding(("CTRL_C",), Quit()),
)


def build_key_registries() -> dict[Mode, KeyCommandRegistry]:
    """Default VIM-style bindings for each navigation mode."""
    normal = KeyCommandRegistry().register_bindings(
        *_MOVEMENT,
        KeyCommandBinding(("k",), MoveUp()),
        KeyCommandBinding(("j",), MoveDown()),
        KeyCommandBinding(("g",), MoveTop()),
        KeyCommandBinding(("G",), MoveBottom()),
        KeyCommandBinding(("l", "RIGHT", "ENTER"), Descend()),
        KeyCommandBinding(("h", "LEFT", "BACKSPACE"), Ascend()),
        KeyCommandBinding(("p", "TAB", " "), ToggleMode("preview")),
        KeyCommandBinding(("/",), ToggleMode("search")),
        KeyCommandBinding(("ESC",), ToggleMode("normal")),
        KeyCommandBinding(("o",), OpenExternally()),
        KeyCommandBinding(("q",), Quit()),
        KeyCommandBinding(("s",), CycleSort()),
        KeyCommandBinding((".",), ToggleHidden()),
        KeyCommandBinding(("r",), Refresh()),
        KeyCommandBinding(("S",), RequestSize()),
    )
    preview = KeyCommandRegistry().register_bindings(
        *_MOVEMENT,
        KeyCommandBinding(("k",), MoveUp()),
        KeyCommandBinding(("j",), MoveDown()),
        KeyCommandBinding(("g",), MoveTop()),
        KeyCommandBinding(("G",), MoveBottom()),
        KeyCommandBinding(("l", "RIGHT", "ENTER"), Descend()),
        KeyCommandBinding(("h", "LEFT"), Ascend()),
        KeyCommandBinding(("p", "TAB", " ", "ESC"), ToggleMode("preview")),
        KeyCommandBinding(("/",), ToggleMode("search")),
        KeyCommandBinding(("o",), OpenExternally()),
        KeyCommandBinding(("q",), Quit()),
        KeyCommandBinding(("S",), RequestSize()),
    )
    search = KeyCommandRegistry(fallback=_filter_char).register_bindings(
        *_MOVEMENT,
        KeyCommandBinding(("ENTER",), Descend()),
        KeyCommandBinding(("ESC",), ToggleMode("normal")),
        KeyCommandBinding(("BACKSPACE",), Backspace()),
    )
    return {"normal": normal, "preview": preview, "search": search}


class TerminalCommandSource:
    """Decode raw tty input into commands for the active mode."""

    def __init__(
        self,
        stdin_fd: int,
        registries: dict[Mode, KeyCommandRegistry] | None = None,
        read_key_fn: Callable[..., str] = read_key,
    ) -> None:
        self.stdin_fd = stdin_fd
        self.registries = registries if registries is not None else build_key_registries()
        self._read_key = read_key_fn

    def read_command(self, mode: Mode, timeout_seconds: float) -> Command | None:
        key = self._read_key(self.stdin_fd, timeout_ms=int(timeout_seconds * 1000))
        if not key:
            return None
        return self.registries[mode].lookup(key)


__all__ = [
    "KeyCommandBinding",
    "KeyCommandRegistry",
    "TerminalCommandSource",
    "build_key_registries",
    "read_key",
]
