"""Filesystem scanning for non-recursive directory listings."""

from __future__ import annotations

import os
import stat as stat_module
from pathlib import Path

from .types import SIZE_UNKNOWN, Entry, EntryKind, SizeFailed, SizeKnown


def kind_for_mode(mode: int) -> EntryKind:
    """Map an ``lstat`` mode to an entry kind."""
    if stat_module.S_ISDIR(mode):
        return "dir"
    if stat_module.S_ISLNK(mode):
        return "symlink"
    if stat_module.S_ISREG(mode):
        return "file"
    return "other"


def entry_from_stat(name: str, st: os.stat_result) -> Entry:
    """Build an entry from ``lstat`` data.

    Non-directories get their size immediately; directories stay unknown until
    a recursive computation is requested.
    """
    kind = kind_for_mode(st.st_mode)
    size = SIZE_UNKNOWN if kind == "dir" else SizeKnown(int(st.st_size))
    return Entry(
        name=name,
        kind=kind,
        size=size,
        mtime_ns=int(st.st_mtime_ns),
        mode=int(st.st_mode),
        uid=int(st.st_uid),
        gid=int(st.st_gid),
    )


def stat_entry(path: Path) -> Entry:
    """Return a fresh entry for ``path``.

    Raises ``FileNotFoundError`` when the path vanished. Other stat failures
    produce an entry of kind ``other`` with a failed size.
    """
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        raise
    except PermissionError:
        return Entry(name=path.name, kind="other", size=SizeFailed("permission denied"))
    except OSError as exc:
        return Entry(name=path.name, kind="other", size=SizeFailed(exc.strerror or str(exc)))
    return entry_from_stat(path.name, st)


def list_entries(directory: Path, show_hidden: bool) -> list[Entry]:
    """List direct children of ``directory`` without recursing.

    Raises ``OSError`` (including ``PermissionError``) if the directory itself
    cannot be read. Per-child stat failures become failed-size entries instead
    of failing the whole listing.
    """
    entries: list[Entry] = []
    with os.scandir(directory) as children:
        for child in children:
            name = child.name
            if not show_hidden and name.startswith("."):
                continue
            try:
                st = child.stat(follow_symlinks=False)
            except FileNotFoundError:
                continue
            except PermissionError:
                entries.append(Entry(name=name, kind="other", size=SizeFailed("permission denied")))
                continue
            except OSError as exc:
                entries.append(Entry(name=name, kind="other", size=SizeFailed(exc.strerror or str(exc))))
                continue
            entries.append(entry_from_stat(name, st))
    return entries


def child_stat_signatures(directory: Path, show_hidden: bool) -> dict[str, tuple[str, int, int, int]]:
    """Return ``name -> (kind, mtime_ns, size, mode)`` for direct children.

    Used by poll-based watching to diff successive observations.
    """
    signatures: dict[str, tuple[str, int, int, int]] = {}
    with os.scandir(directory) as children:
        for child in children:
            name = child.name
            if not show_hidden and name.startswith("."):
                continue
            try:
                st = child.stat(follow_symlinks=False)
            except FileNotFoundError:
                continue
            except OSError:
                signatures[name] = ("error", 0, 0, 0)
                continue
            signatures[name] = (kind_for_mode(st.st_mode), st.st_mtime_ns, st.st_size, st.st_mode)
    return signatures


__all__ = [
    "kind_for_mode",
    "entry_from_stat",
    "stat_entry",
    "list_entries",
    "child_stat_signatures",
]
