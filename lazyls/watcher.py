"""Filesystem change subscriptions for one directory's direct children.

Live subscriptions are backed by a shared watchdog observer. Polling
subscriptions diff stat signatures on a background thread and serve as the
fallback once a live watch terminates. Both deliver normalized, coalesced
``WatchEvent``s through ``drain``.
"""

from __future__ import annotations

import itertools
import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue
from typing import Literal

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatchTerminated
from .listing.fs import child_stat_signatures

logger = logging.getLogger(__name__)

DEFAULT_COALESCE_INTERVAL = 0.25
DEFAULT_POLL_INTERVAL = 1.0

WatchEventKind = Literal["created", "modified", "removed", "renamed"]

_subscription_ids = itertools.count(1)


@dataclass(frozen=True)
class WatchEvent:
    """Change to one direct child; ``new_name`` is set for renames."""

    kind: WatchEventKind
    name: str
    new_name: str | None = None


def _child_parts(watched: Path, raw_path: str | bytes) -> tuple[str, ...] | None:
    """Return ``raw_path`` parts relative to ``watched`` or ``None`` if outside."""
    if not raw_path:
        return None
    path = Path(os.fsdecode(raw_path))
    try:
        return path.relative_to(watched).parts
    except ValueError:
        return None


def translate_event(
    watched: Path,
    event_type: str,
    src_path: str | bytes,
    dest_path: str | bytes = "",
) -> list[WatchEvent] | str:
    """Normalize one raw notification relative to ``watched``.

    Returns the events to deliver, or a reason string when the notification
    means the subscription itself is dead (watched directory gone).
    """
    src_parts = _child_parts(watched, src_path)
    if src_parts == ():
        if event_type in {"deleted", "moved"}:
            return "watched directory was removed"
        return []

    if event_type == "moved":
        dest_parts = _child_parts(watched, dest_path)
        if dest_parts == ():
            return []
        src_direct = src_parts is not None and len(src_parts) == 1
        dest_direct = dest_parts is not None and len(dest_parts) == 1
        if src_direct and dest_direct:
            assert src_parts is not None and dest_parts is not None
            return [WatchEvent("renamed", src_parts[0], dest_parts[0])]
        out: list[WatchEvent] = []
        if src_parts:
            out.append(WatchEvent("removed", src_parts[0]) if src_direct else WatchEvent("modified", src_parts[0]))
        if dest_parts:
            event = WatchEvent("created", dest_parts[0]) if dest_direct else WatchEvent("modified", dest_parts[0])
            if event not in out:
                out.append(event)
        return out

    if not src_parts:
        return []
    if len(src_parts) > 1:
        if event_type in {"created", "deleted", "modified", "closed"}:
            return [WatchEvent("modified", src_parts[0])]
        return []
    name = src_parts[0]
    if event_type == "created":
        return [WatchEvent("created", name)]
    if event_type == "deleted":
        return [WatchEvent("removed", name)]
    if event_type in {"modified", "closed"}:
        return [WatchEvent("modified", name)]
    return []


class EventCoalescer:
    """Rate-limit ``modified`` events per name.

    A ``modified`` arriving within ``interval`` of the last delivery for the
    same name is held (merging with any already held one) and released by
    ``due``. Structural events pass immediately: a held modification is
    flushed ahead of them, or discarded when the name was removed.
    """

    def __init__(self, interval: float) -> None:
        self.interval = max(0.0, interval)
        self._held: dict[str, WatchEvent] = {}
        self._last_delivered: dict[str, float] = {}

    @property
    def has_held(self) -> bool:
        return bool(self._held)

    def offer(self, event: WatchEvent, now: float) -> list[WatchEvent]:
        if event.kind == "modified":
            if event.name in self._held:
                return []
            last = self._last_delivered.get(event.name)
            if last is None or now - last >= self.interval:
                self._last_delivered[event.name] = now
                return [event]
            self._held[event.name] = event
            return []

        out: list[WatchEvent] = []
        if event.kind == "removed":
            self._held.pop(event.name, None)
        else:
            held = self._held.pop(event.name, None)
            if held is not None:
                out.append(held)
        if event.new_name is not None:
            self._held.pop(event.new_name, None)
            self._last_delivered[event.new_name] = now
        self._last_delivered[event.name] = now
        out.append(event)
        return out

    def due(self, now: float) -> list[WatchEvent]:
        out: list[WatchEvent] = []
        for name in list(self._held):
            if now - self._last_delivered.get(name, 0.0) >= self.interval:
                out.append(self._held.pop(name))
                self._last_delivered[name] = now
        horizon = now - self.interval
        for name in [name for name, at in self._last_delivered.items() if at < horizon and name not in self._held]:
            del self._last_delivered[name]
        return out


class WatchSubscription:
    """Base subscription: raw event queue plus coalescing drain."""

    kind = "live"

    def __init__(
        self,
        path: Path,
        coalesce_interval: float = DEFAULT_COALESCE_INTERVAL,
        wakeup: Callable[[], None] | None = None,
    ) -> None:
        self.path = path
        self.subscription_id = next(_subscription_ids)
        self.terminated: str | None = None
        self.closed = False
        self._raw: Queue[WatchEvent] = Queue()
        self._coalescer = EventCoalescer(coalesce_interval)
        self._wakeup = wakeup

    def deliver(self, events: list[WatchEvent]) -> None:
        if self.closed:
            return
        for event in events:
            self._raw.put(event)
        if events and self._wakeup is not None:
            self._wakeup()

    def terminate(self, reason: str) -> None:
        if self.closed or self.terminated is not None:
            return
        self.terminated = reason
        logger.info("watch for %s terminated: %s", self.path, reason)
        if self._wakeup is not None:
            self._wakeup()

    def check_alive(self) -> None:
        """Surface a dead backend as ``terminated``."""

    def drain(self, now: float | None = None) -> list[WatchEvent]:
        """Return coalesced events ready for delivery."""
        if now is None:
            now = time.monotonic()
        out: list[WatchEvent] = []
        while True:
            try:
                event = self._raw.get_nowait()
            except Empty:
                break
            out.extend(self._coalescer.offer(event, now))
        out.extend(self._coalescer.due(now))
        return out

    def close(self) -> None:
        self.closed = True


class _ChildEventHandler(FileSystemEventHandler):
    """Forward watchdog notifications for one subscription."""

    def __init__(self, subscription: WatchSubscription) -> None:
        super().__init__()
        self._subscription = subscription

    def on_any_event(self, event: FileSystemEvent) -> None:
        translated = translate_event(
            self._subscription.path,
            event.event_type,
            event.src_path,
            getattr(event, "dest_path", "") or "",
        )
        if isinstance(translated, str):
            self._subscription.terminate(translated)
            return
        self._subscription.deliver(translated)


class LiveWatchSubscription(WatchSubscription):
    """Subscription scheduled on a watchdog observer."""

    kind = "live"

    def __init__(self, watcher: Watcher, path: Path, coalesce_interval: float, wakeup) -> None:
        super().__init__(path, coalesce_interval, wakeup)
        self._watcher = watcher
        self.watch: object | None = None

    def check_alive(self) -> None:
        if not self.closed and not self._watcher.observer_alive():
            self.terminate("change observer stopped")

    def close(self) -> None:
        if self.closed:
            return
        self._watcher.unsubscribe(self)


class Watcher:
    """Shared watchdog observer handing out non-recursive subscriptions."""

    def __init__(
        self,
        coalesce_interval: float = DEFAULT_COALESCE_INTERVAL,
        wakeup: Callable[[], None] | None = None,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        self.coalesce_interval = coalesce_interval
        self._wakeup = wakeup
        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.Lock()

    def _ensure_observer(self):
        with self._lock:
            if self._observer is None:
                observer = self._observer_factory()
                observer.daemon = True
                observer.start()
                self._observer = observer
            return self._observer

    def observer_alive(self) -> bool:
        with self._lock:
            return self._observer is not None and self._observer.is_alive()

    def subscribe(self, path: Path) -> LiveWatchSubscription:
        """Start delivering events for direct children of ``path``.

        Raises ``WatchTerminated`` when the OS watch cannot be established.
        """
        subscription = LiveWatchSubscription(self, path, self.coalesce_interval, self._wakeup)
        handler = _ChildEventHandler(subscription)
        try:
            observer = self._ensure_observer()
            subscription.watch = observer.schedule(handler, str(path), recursive=False)
        except (OSError, RuntimeError) as exc:
            subscription.closed = True
            raise WatchTerminated(path, str(exc)) from exc
        logger.debug("watching %s (subscription %d)", path, subscription.subscription_id)
        return subscription

    def unsubscribe(self, subscription: LiveWatchSubscription) -> None:
        """Stop delivery and release the OS watch, even if the backend already died."""
        try:
            with self._lock:
                observer = self._observer
            if subscription.watch is not None and observer is not None:
                observer.unschedule(subscription.watch)
        except (KeyError, OSError, RuntimeError) as exc:
            logger.debug("unschedule for %s failed: %s", subscription.path, exc)
        finally:
            subscription.watch = None
            subscription.closed = True

    def stop(self) -> None:
        with self._lock:
            observer = self._observer
            self._observer = None
        if observer is None:
            return
        try:
            observer.unschedule_all()
            observer.stop()
            observer.join(timeout=1.0)
        except RuntimeError as exc:
            logger.debug("observer shutdown failed: %s", exc)


def diff_child_signatures(
    previous: dict[str, tuple[str, int, int, int]],
    current: dict[str, tuple[str, int, int, int]],
) -> list[WatchEvent]:
    """Derive events from two observations of the same directory."""
    events: list[WatchEvent] = []
    for name in sorted(previous.keys() - current.keys()):
        events.append(WatchEvent("removed", name))
    for name in sorted(current.keys() - previous.keys()):
        events.append(WatchEvent("created", name))
    for name in sorted(previous.keys() & current.keys()):
        if previous[name] != current[name]:
            events.append(WatchEvent("modified", name))
    return events


class PollingWatchSubscription(WatchSubscription):
    """Stat-signature poller used when live notification is unavailable."""

    kind = "polling"

    def __init__(
        self,
        path: Path,
        coalesce_interval: float = DEFAULT_COALESCE_INTERVAL,
        wakeup: Callable[[], None] | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(path, coalesce_interval, wakeup)
        self.poll_interval = max(0.01, poll_interval)
        self._stop = threading.Event()
        self._previous = child_stat_signatures(path, show_hidden=True)
        self._thread = threading.Thread(
            target=self._poll_loop,
            name=f"lazyls-poll-{self.subscription_id}",
            daemon=True,
        )
        self._thread.start()

    def _poll_loop(self) -> None:
        while not self._stop.wait(self.poll_interval):
            try:
                current = child_stat_signatures(self.path, show_hidden=True)
            except FileNotFoundError:
                self.terminate("watched directory was removed")
                return
            except OSError as exc:
                self.terminate(exc.strerror or str(exc))
                return
            events = diff_child_signatures(self._previous, current)
            self._previous = current
            self.deliver(events)

    def check_alive(self) -> None:
        if not self.closed and not self._thread.is_alive() and self.terminated is None:
            self.terminate("poller stopped")

    def close(self) -> None:
        self.closed = True
        self._stop.set()


__all__ = [
    "DEFAULT_COALESCE_INTERVAL",
    "DEFAULT_POLL_INTERVAL",
    "EventCoalescer",
    "LiveWatchSubscription",
    "PollingWatchSubscription",
    "WatchEvent",
    "WatchSubscription",
    "Watcher",
    "diff_child_signatures",
    "translate_event",
]
