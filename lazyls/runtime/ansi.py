"""Display-width helpers for styled terminal rows.

Escape sequences pass through untouched and count as zero columns; wide East
Asian characters count as two and tabs advance to the next stop.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterator

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
TAB_STOP = 8


def char_display_width(ch: str, col: int) -> int:
    """Columns taken by ``ch`` when printed at visual column ``col``."""
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def iter_ansi_chunks(text: str) -> Iterator[tuple[bool, str]]:
    """Split ``text`` into ``(is_escape, chunk)`` pieces in order."""
    pos = 0
    for match in ANSI_ESCAPE_RE.finditer(text):
        if match.start() > pos:
            yield False, text[pos : match.start()]
        yield True, match.group(0)
        pos = match.end()
    if pos < len(text):
        yield False, text[pos:]


def display_width(text: str) -> int:
    col = 0
    for is_escape, chunk in iter_ansi_chunks(text):
        if is_escape:
            continue
        for ch in chunk:
            col += char_display_width(ch, col)
    return col


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Cut a styled line after ``max_cols`` columns, keeping every escape.

    Escapes after the cut are kept too, so a trailing reset still applies.
    Tabs become spaces.
    """
    if max_cols <= 0 or not text:
        return ""
    out: list[str] = []
    col = 0
    full = False
    for is_escape, chunk in iter_ansi_chunks(text):
        if is_escape:
            out.append(chunk)
            continue
        if full:
            continue
        for ch in chunk:
            width = char_display_width(ch, col)
            if col + width > max_cols:
                full = True
                break
            out.append(" " * width if ch == "\t" else ch)
            col += width
    return "".join(out)


def fit_ansi_line(text: str, width: int) -> str:
    """Clip ``text`` to ``width`` columns and pad the remainder with spaces."""
    clipped = clip_ansi_line(text, width)
    return clipped + " " * max(0, width - display_width(clipped))


def truncate_text(text: str, max_cols: int, marker: str = "~") -> str:
    """Shorten plain ``text`` to ``max_cols`` columns, ending with ``marker``."""
    if display_width(text) <= max_cols:
        return text
    if max_cols <= len(marker):
        return marker[: max(0, max_cols)]
    return clip_ansi_line(text, max_cols - len(marker)) + marker


__all__ = [
    "ANSI_ESCAPE_RE",
    "char_display_width",
    "clip_ansi_line",
    "display_width",
    "fit_ansi_line",
    "iter_ansi_chunks",
    "truncate_text",
]
