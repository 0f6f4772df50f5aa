"""Text previews for the entry under the cursor.

Reads at most ``max_bytes`` of a file, neutralizes terminal control bytes and
highlights the snippet with Pygments. Binary files and directories produce a
short summary instead of content.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .listing import format_bytes

DEFAULT_STYLE = "monokai"
BINARY_PROBE_BYTES = 4096
DIRECTORY_PREVIEW_MAX_ENTRIES = 200

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_FORMATTERS: dict[str, TerminalFormatter] = {}


class PreviewProvider(Protocol):
    def preview(self, path: Path) -> Iterator[str]: ...


def sanitize_terminal_text(source: str) -> str:
    """Escape terminal control bytes to avoid side effects (bell, cursor moves, etc.)."""
    if _CONTROL_RE.search(source) is None:
        return source

    out: list[str] = []
    for ch in source:
        code = ord(ch)
        if ch in {"\n", "\r", "\t"}:
            out.append(ch)
            continue
        if code < 32 or code == 127 or 0x80 <= code <= 0x9F:
            out.append(f"\\x{code:02x}")
            continue
        out.append(ch)
    return "".join(out)


def decode_text(data: bytes, truncated: bool = False) -> str:
    """Decode UTF-8, else latin-1.

    With ``truncated`` set, a multi-byte character split by the read cap is
    dropped instead of forcing the latin-1 fallback.
    """
    for encoding in ("utf-8", "utf-8-sig"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as exc:
            if truncated and exc.reason == "unexpected end of data":
                return data[: exc.start].decode(encoding)
            continue
    return data.decode("latin-1")


def looks_binary(sample: bytes) -> bool:
    return b"\x00" in sample[:BINARY_PROBE_BYTES]


def _formatter_for_style(style: str) -> TerminalFormatter:
    formatter = _FORMATTERS.get(style)
    if formatter is not None:
        return formatter
    try:
        get_style_by_name(style)
    except ClassNotFound:
        style = DEFAULT_STYLE
    formatter = TerminalFormatter(style=style)
    _FORMATTERS[style] = formatter
    return formatter


def colorize_source(source: str, path: Path, style: str = DEFAULT_STYLE) -> str:
    try:
        lexer = get_lexer_for_filename(path.name, source)
    except ClassNotFound:
        lexer = TextLexer()
    return highlight(source, lexer, _formatter_for_style(style))


class TextPreviewProvider:
    """Default preview provider for files and directories."""

    def __init__(self, max_bytes: int = 64 * 1024, style: str = DEFAULT_STYLE, colorize: bool = True) -> None:
        self.max_bytes = max(1, max_bytes)
        self.style = style
        self.colorize = colorize

    def preview(self, path: Path) -> Iterator[str]:
        """Yield display lines for ``path``; ``OSError`` propagates."""
        if path.is_dir():
            yield from self._directory_summary(path)
            return

        with path.open("rb") as handle:
            data = handle.read(self.max_bytes + 1)
        truncated = len(data) > self.max_bytes
        data = data[: self.max_bytes]

        if looks_binary(data):
            size = path.stat().st_size
            yield f"Binary file, {format_bytes(size)}"
            return

        source = sanitize_terminal_text(decode_text(data, truncated))
        if self.colorize and source:
            source = colorize_source(source, path, self.style)
        yield from source.splitlines()
        if truncated:
            yield f"... preview truncated at {format_bytes(self.max_bytes)}"

    def _directory_summary(self, path: Path) -> Iterator[str]:
        with os.scandir(path) as children:
            names = sorted(
                (child.name + ("/" if child.is_dir(follow_symlinks=False) else "") for child in children),
                key=str.casefold,
            )
        yield f"Directory, {len(names)} entries"
        yield ""
        for name in names[:DIRECTORY_PREVIEW_MAX_ENTRIES]:
            yield sanitize_terminal_text(name)
        if len(names) > DIRECTORY_PREVIEW_MAX_ENTRIES:
            yield f"... and {len(names) - DIRECTORY_PREVIEW_MAX_ENTRIES} more"


__all__ = [
    "PreviewProvider",
    "TextPreviewProvider",
    "colorize_source",
    "decode_text",
    "looks_binary",
    "sanitize_terminal_text",
]
