"""Public package surface for lazyls.

Exports ``main`` for programmatic CLI invocation.
The browser core lives in ``listing``, ``sizes``, ``watcher``, ``model`` and
``navigation``; terminal adapters live under ``lazyls.runtime``.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
