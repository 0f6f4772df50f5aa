"""Frame rendering for the directory listing and preview overlay.

``build_frame`` is pure: it turns navigation state into screen lines.
``render_frame`` writes one full frame to the terminal.
"""

from __future__ import annotations

import grp
import pwd
import stat
import time
from dataclasses import dataclass
from functools import lru_cache

from ..listing import (
    Entry,
    EntrySize,
    SizeFailed,
    SizeKnown,
    SizePending,
    format_bytes,
    sort_label,
)
from ..navigation import NavState
from .ansi import clip_ansi_line, display_width, fit_ansi_line, truncate_text
from .terminal import TerminalController
from .theme import UITheme

NAME_MIN_WIDTH = 12
SIZE_WIDTH = 10
OWNER_WIDTH = 8
PERMS_WIDTH = 3
MTIME_WIDTH = 16
DETAIL_MIN_WIDTH = 72

HINTS = {
    "normal": "j/k move  l open  h back  p preview  / search  o open  s sort  . hidden  S size  q quit",
    "preview": "j/k move  p close  o open  q quit",
    "search": "type to filter  enter open  esc clear",
}


@dataclass(frozen=True)
class FrameGeometry:
    width: int
    height: int

    @property
    def body_rows(self) -> int:
        # header, column titles and status line
        return max(1, self.height - 3)


def format_size(size: EntrySize) -> str:
    if isinstance(size, SizeKnown):
        return format_bytes(size.size_bytes)
    if isinstance(size, SizePending):
        if size.partial_bytes is None:
            return "..."
        return f"{format_bytes(size.partial_bytes)}+"
    if isinstance(size, SizeFailed):
        return "n/a"
    return "-"


def format_permissions(mode: int) -> tuple[str, str, str]:
    """Split ``rwxr-x---`` style permissions into user, group and other."""
    perms = stat.filemode(mode)[1:] if mode else "---------"
    return perms[0:3], perms[3:6], perms[6:9]


@lru_cache(maxsize=256)
def user_name(uid: int | None) -> str:
    if uid is None:
        return "?"
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


@lru_cache(maxsize=256)
def group_name(gid: int | None) -> str:
    if gid is None:
        return "?"
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def format_mtime(mtime_ns: int | None) -> str:
    if mtime_ns is None:
        return ""
    return time.strftime("%Y-%m-%d %H:%M", time.localtime(mtime_ns / 1_000_000_000))


def scroll_start(cursor: int, start: int, rows: int, total: int) -> int:
    """Keep ``cursor`` inside the ``rows``-tall window beginning at ``start``."""
    if cursor < start:
        start = cursor
    elif cursor >= start + rows:
        start = cursor - rows + 1
    return max(0, min(start, max(0, total - rows)))


def _name_style(entry: Entry, theme: UITheme) -> str:
    if entry.kind == "dir":
        return theme.entry_dir
    if entry.kind == "symlink":
        return theme.entry_symlink
    if entry.kind == "other":
        return theme.entry_other
    return theme.entry_file


def _size_style(size: EntrySize, theme: UITheme) -> str:
    if isinstance(size, SizePending):
        return theme.size_pending
    if isinstance(size, SizeFailed):
        return theme.size_failed
    return theme.size


def _columns(width: int) -> tuple[int, bool]:
    """Return the name column width and whether detail columns fit."""
    detailed = width >= DETAIL_MIN_WIDTH
    fixed = SIZE_WIDTH + 1
    if detailed:
        fixed += 2 * (OWNER_WIDTH + 1) + 3 * (PERMS_WIDTH + 1) + MTIME_WIDTH + 1
    return max(NAME_MIN_WIDTH, width - fixed - 1), detailed


def format_entry_row(entry: Entry, width: int, theme: UITheme) -> str:
    name_width, detailed = _columns(width)
    name = entry.name + ("/" if entry.is_dir else "")
    name = truncate_text(name, name_width)
    padding = " " * max(0, name_width - display_width(name))
    parts = [
        f"{_name_style(entry, theme)}{name}{theme.reset}{padding}",
        f"{_size_style(entry.size, theme)}{format_size(entry.size).rjust(SIZE_WIDTH)}{theme.reset}",
    ]
    if detailed:
        user_perms, group_perms, other_perms = format_permissions(entry.mode)
        parts.extend(
            [
                user_name(entry.uid)[:OWNER_WIDTH].ljust(OWNER_WIDTH),
                group_name(entry.gid)[:OWNER_WIDTH].ljust(OWNER_WIDTH),
                user_perms,
                group_perms,
                other_perms,
                f"{theme.dim}{format_mtime(entry.mtime_ns)}{theme.reset}",
            ]
        )
    return " ".join(parts)


def _column_titles(width: int, theme: UITheme) -> str:
    name_width, detailed = _columns(width)
    parts = ["Name".ljust(name_width), "Size".rjust(SIZE_WIDTH)]
    if detailed:
        parts.extend(
            [
                "User".ljust(OWNER_WIDTH),
                "Group".ljust(OWNER_WIDTH),
                "Usr",
                "Grp",
                "Oth",
                "Modified",
            ]
        )
    return f"{theme.column_title}{' '.join(parts)}{theme.reset}"


def _header(state: NavState, theme: UITheme) -> str:
    listing = state.listing
    watch = listing.watch_state if listing is not None else "off"
    watch_style = {
        "live": theme.watch_live,
        "polling": theme.watch_polling,
    }.get(watch, theme.watch_off)
    sort_text = sort_label(listing.sort_by) if listing is not None else ""
    hidden = "  [hidden]" if state.show_hidden else ""
    return (
        f"{theme.header}{state.current_path}{theme.reset}"
        f"  {watch_style}[{watch}]{theme.reset}"
        f"  {theme.dim}sort: {sort_text}{hidden}{theme.reset}"
    )


def _status(state: NavState, entry_count: int, theme: UITheme) -> str:
    if state.mode == "search":
        left = f"/{theme.search_query}{state.search_query}{theme.reset}"
    elif state.status_message:
        left = f"{theme.status}{state.status_message}{theme.reset}"
    else:
        left = f"{theme.dim}{HINTS[state.mode]}{theme.reset}"
    position = f"{min(state.cursor_index + 1, entry_count)}/{entry_count}" if entry_count else "0/0"
    return f"[{state.mode.upper()}] {position}  {left}"


def build_frame(
    state: NavState,
    entries: list[Entry],
    geometry: FrameGeometry,
    theme: UITheme,
) -> list[str]:
    """Return exactly ``geometry.height`` screen lines for ``state``."""
    width = max(1, geometry.width)
    rows = geometry.body_rows
    lines = [fit_ansi_line(_header(state, theme), width)]

    if state.mode == "preview":
        title = state.preview_path.name if state.preview_path is not None else ""
        lines.append(fit_ansi_line(f"{theme.column_title}Preview: {title}{theme.reset}", width))
        body = list(state.preview_lines)
        if state.preview_loading and not body:
            body = [f"{theme.dim}loading...{theme.reset}"]
        for row in range(rows):
            text = body[row] if row < len(body) else ""
            lines.append(fit_ansi_line(text, width) + theme.reset)
    else:
        lines.append(fit_ansi_line(_column_titles(width, theme), width))
        state.list_start = scroll_start(state.cursor_index, state.list_start, rows, len(entries))
        for row in range(rows):
            idx = state.list_start + row
            if idx >= len(entries):
                lines.append(" " * width)
                continue
            text = fit_ansi_line(format_entry_row(entries[idx], width, theme), width)
            if idx == state.cursor_index:
                text = theme.reverse + text.replace(theme.reset, theme.reset + theme.reverse) + theme.reset
            lines.append(text)
        if not entries:
            message = "no matches" if state.search_query else "empty directory"
            lines[2] = fit_ansi_line(f"{theme.dim}{message}{theme.reset}", width)

    lines.append(clip_ansi_line(_status(state, len(entries), theme), max(1, width - 1)) + theme.reset)
    return lines[: max(1, geometry.height)]


def render_frame(
    terminal: TerminalController,
    state: NavState,
    entries: list[Entry],
    geometry: FrameGeometry,
    theme: UITheme,
) -> None:
    lines = build_frame(state, entries, geometry, theme)
    terminal.write("\033[H\033[J" + "\r\n".join(lines))


__all__ = [
    "FrameGeometry",
    "build_frame",
    "format_entry_row",
    "format_mtime",
    "format_permissions",
    "format_size",
    "render_frame",
    "scroll_start",
]
