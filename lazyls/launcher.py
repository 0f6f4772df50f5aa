"""Open an entry with the desktop's default application.

The child process is detached and never awaited; only a failure to launch it
is reported, as a message string rather than an exception.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path


def default_open_command() -> list[str] | None:
    """Resolve the opener: ``$LAZYLS_OPENER``, then ``open`` or ``xdg-open``."""
    override = os.environ.get("LAZYLS_OPENER", "").strip()
    if override:
        return shlex.split(override) or None
    candidate = "open" if sys.platform == "darwin" else "xdg-open"
    return [candidate] if shutil.which(candidate) else None


def open_externally(target: Path) -> str | None:
    cmd = default_open_command()
    if not cmd:
        return "Cannot open: no default opener found (set $LAZYLS_OPENER)."
    try:
        subprocess.Popen(
            [*cmd, str(target)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        return f"Failed to launch opener: {exc}"
    return None


__all__ = ["default_open_command", "open_externally"]
