"""Interactive runtime: terminal, input decoding, rendering and the main loop.

``run_browser`` composes the model, controller and terminal adapters; the
lower-level loop contracts are exposed for tests and composition code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .loop import RuntimeLoopTiming


def run_browser(*args, **kwargs):
    """Lazily import browser entrypoint to avoid heavy runtime bootstrap on import."""
    from .app import run_browser as _run_browser

    return _run_browser(*args, **kwargs)


def run_main_loop(*args, **kwargs):
    """Lazily import loop runner to avoid package-import cycles."""
    from .loop import run_main_loop as _run_main_loop

    return _run_main_loop(*args, **kwargs)


def __getattr__(name: str):
    if name == "RuntimeLoopTiming":
        from . import loop as _loop

        return getattr(_loop, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "run_browser",
    "RuntimeLoopTiming",
    "run_main_loop",
]
