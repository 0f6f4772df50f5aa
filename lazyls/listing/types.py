"""Domain datatypes for one directory listing and its entries."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal

EntryKind = Literal["file", "dir", "symlink", "other"]
WatchState = Literal["live", "polling", "off"]


@dataclass(frozen=True)
class SizeUnknown:
    """Size not requested yet."""


@dataclass(frozen=True)
class SizePending:
    """Recursive size computation queued or running.

    ``partial_bytes`` carries the running total reported so far, if any.
    """

    partial_bytes: int | None = None


@dataclass(frozen=True)
class SizeKnown:
    size_bytes: int


@dataclass(frozen=True)
class SizeFailed:
    """Size unavailable, rendered as a sentinel instead of an error."""

    reason: str


EntrySize = SizeUnknown | SizePending | SizeKnown | SizeFailed

SIZE_UNKNOWN = SizeUnknown()
SIZE_PENDING = SizePending()


@dataclass(frozen=True)
class Entry:
    """One filesystem child of a listed directory."""

    name: str
    kind: EntryKind
    size: EntrySize = SIZE_UNKNOWN
    mtime_ns: int | None = None
    mode: int = 0
    uid: int | None = None
    gid: int | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"

    def with_size(self, size: EntrySize) -> Entry:
        return replace(self, size=size)


@dataclass(frozen=True)
class Listing:
    """Immutable, versioned snapshot of one open directory."""

    path: Path
    entries: tuple[Entry, ...]
    version: int
    generation: int
    watch_state: WatchState = "live"
    sort_by: str = "type-asc"

    def entry(self, name: str) -> Entry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


@dataclass(frozen=True)
class ListingUpdate:
    """One published mutation of an open listing.

    ``entry`` is ``None`` when ``name`` was removed. An empty ``name`` marks a
    listing-wide change (resort, watch-state change).
    """

    path: Path
    version: int
    name: str
    entry: Entry | None


def format_bytes(size: int) -> str:
    """Decimal-unit size label such as ``10 B`` or ``1.23 KB``."""
    if size < 1000:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB", "TB"):
        value /= 1000
        if value < 1000:
            return f"{value:.2f} {unit}"
    return f"{value / 1000:.2f} PB"


__all__ = [
    "format_bytes",
    "EntryKind",
    "WatchState",
    "SizeUnknown",
    "SizePending",
    "SizeKnown",
    "SizeFailed",
    "EntrySize",
    "SIZE_UNKNOWN",
    "SIZE_PENDING",
    "Entry",
    "Listing",
    "ListingUpdate",
]
