"""Domain model for one directory listing.

This package contains non-UI listing primitives:
- entry/listing datatypes with size variants
- non-recursive filesystem scanning helpers
- sort orders applied to listings
"""

from __future__ import annotations

from .fs import child_stat_signatures, entry_from_stat, kind_for_mode, list_entries, stat_entry
from .sorting import DEFAULT_SORT, SORT_ORDERS, next_sort, normalize_sort, sort_entries, sort_label
from .types import (
    SIZE_PENDING,
    SIZE_UNKNOWN,
    Entry,
    EntryKind,
    EntrySize,
    Listing,
    ListingUpdate,
    SizeFailed,
    SizeKnown,
    SizePending,
    SizeUnknown,
    WatchState,
    format_bytes,
)

__all__ = [
    "format_bytes",
    "Entry",
    "EntryKind",
    "EntrySize",
    "Listing",
    "ListingUpdate",
    "SizeFailed",
    "SizeKnown",
    "SizePending",
    "SizeUnknown",
    "SIZE_PENDING",
    "SIZE_UNKNOWN",
    "WatchState",
    "kind_for_mode",
    "entry_from_stat",
    "stat_entry",
    "list_entries",
    "child_stat_signatures",
    "DEFAULT_SORT",
    "SORT_ORDERS",
    "next_sort",
    "normalize_sort",
    "sort_entries",
    "sort_label",
]
