"""Sort orders for directory listings.

Each order is a ``<field>-<direction>`` token. ``type`` groups directories
first and then sorts by name.
"""

from __future__ import annotations

from collections.abc import Iterable

from .types import Entry, SizeKnown, SizePending

SORT_ORDERS: tuple[str, ...] = (
    "type-asc",
    "type-desc",
    "mtime-asc",
    "mtime-desc",
    "name-asc",
    "name-desc",
    "size-asc",
    "size-desc",
)
DEFAULT_SORT = "type-asc"

SORT_LABELS: dict[str, str] = {
    "type": "TypeName",
    "mtime": "DateTime",
    "name": "Name",
    "size": "Size",
}


def normalize_sort(value: object) -> str:
    """Return ``value`` if it names a known sort order, else the default."""
    if isinstance(value, str) and value in SORT_ORDERS:
        return value
    return DEFAULT_SORT


def next_sort(current: str) -> str:
    """Cycle to the next sort order."""
    try:
        idx = SORT_ORDERS.index(current)
    except ValueError:
        return DEFAULT_SORT
    return SORT_ORDERS[(idx + 1) % len(SORT_ORDERS)]


def sort_label(sort_by: str) -> str:
    """Human label such as ``Size (DEC)``."""
    field, _sep, direction = normalize_sort(sort_by).partition("-")
    return f"{SORT_LABELS[field]} ({'ASC' if direction == 'asc' else 'DEC'})"


def _size_key(entry: Entry) -> int:
    if isinstance(entry.size, SizeKnown):
        return entry.size.size_bytes
    if isinstance(entry.size, SizePending) and entry.size.partial_bytes is not None:
        return entry.size.partial_bytes
    return -1


def sort_entries(entries: Iterable[Entry], sort_by: str) -> list[Entry]:
    """Return entries ordered by ``sort_by``; ties fall back to the name."""
    field, _sep, direction = normalize_sort(sort_by).partition("-")
    reverse = direction == "desc"
    items = sorted(entries, key=lambda item: (item.name.casefold(), item.name))
    if field == "type":
        items.sort(key=lambda item: not item.is_dir)
    elif field == "mtime":
        items.sort(key=lambda item: item.mtime_ns or 0)
    elif field == "size":
        items.sort(key=_size_key)
    if reverse:
        items.reverse()
    return items


__all__ = [
    "SORT_ORDERS",
    "DEFAULT_SORT",
    "normalize_sort",
    "next_sort",
    "sort_label",
    "sort_entries",
]
