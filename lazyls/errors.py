"""Exception types shared across the browser core.

Listing and stat failures use the builtin ``OSError`` hierarchy directly.
"""

from __future__ import annotations

from pathlib import Path


class WatchTerminated(Exception):
    """The OS-level change subscription for ``path`` died or could not start."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"watch for {path} terminated: {reason}")
        self.path = path
        self.reason = reason


class SizeComputationCancelled(Exception):
    """Raised inside a size traversal once its cancel token is set."""


class DirectoryUnreadable(Exception):
    """The starting directory could not be listed when the session began."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__(f"cannot read {path}: {error}")
        self.path = path
        self.error = error


__all__ = ["DirectoryUnreadable", "WatchTerminated", "SizeComputationCancelled"]
