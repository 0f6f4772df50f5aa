"""UI theme definitions.

Themes are UI-only ANSI palettes for the listing chrome. Syntax highlighting
style for previews remains a separate setting.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UITheme:
    """Semantic ANSI palette used by renderers."""

    name: str
    reset: str
    reverse: str
    header: str
    column_title: str
    entry_dir: str
    entry_symlink: str
    entry_file: str
    entry_other: str
    size: str
    size_pending: str
    size_failed: str
    dim: str
    search_query: str
    status: str
    watch_live: str
    watch_polling: str
    watch_off: str


DEFAULT_THEME = UITheme(
    name="default",
    reset="\033[0m",
    reverse="\033[7m",
    header="\033[1;38;5;81m",
    column_title="\033[2;38;5;250m",
    entry_dir="\033[1;34m",
    entry_symlink="\033[38;5;44m",
    entry_file="\033[38;5;252m",
    entry_other="\033[38;5;214m",
    size="\033[38;5;109m",
    size_pending="\033[2;38;5;109m",
    size_failed="\033[38;5;167m",
    dim="\033[2;38;5;250m",
    search_query="\033[1;38;5;81m",
    status="\033[38;5;229m",
    watch_live="\033[38;5;42m",
    watch_polling="\033[38;5;214m",
    watch_off="\033[38;5;167m",
)

PLAIN_THEME = UITheme(
    name="plain",
    reset="\033[0m",
    reverse="\033[7m",
    header="",
    column_title="",
    entry_dir="",
    entry_symlink="",
    entry_file="",
    entry_other="",
    size="",
    size_pending="",
    size_failed="",
    dim="",
    search_query="",
    status="",
    watch_live="",
    watch_polling="",
    watch_off="",
)


def theme_for(no_color: bool) -> UITheme:
    return PLAIN_THEME if no_color else DEFAULT_THEME


__all__ = ["DEFAULT_THEME", "PLAIN_THEME", "UITheme", "theme_for"]
