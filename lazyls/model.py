"""Authoritative store of open directory listings.

Size workers and watch subscriptions never touch listing state directly:
they post messages (``SizeReport``s, wake-ups) into the model inbox, and
``pump`` applies them on the consumer thread under one lock. Every accepted
mutation bumps the listing version and is published to the active
``UpdateStream``.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path
from queue import Empty, Queue
import threading

from .config import BrowserSettings
from .errors import WatchTerminated
from .listing import (
    SIZE_PENDING,
    SIZE_UNKNOWN,
    Entry,
    Listing,
    ListingUpdate,
    SizeFailed,
    SizeKnown,
    SizePending,
    SizeUnknown,
    WatchState,
    list_entries,
    normalize_sort,
    sort_entries,
    stat_entry,
)
from .sizes import SizeComputer, SizeReport, compute_tree_size
from .watcher import PollingWatchSubscription, Watcher, WatchEvent, WatchSubscription

logger = logging.getLogger(__name__)

_WAKE = object()


@dataclass
class _OpenDirectory:
    path: Path
    generation: int
    entries: dict[str, Entry]
    sort_by: str
    version: int = 0
    watch_state: WatchState = "off"
    subscription: WatchSubscription | None = None
    size_task_ids: dict[str, int] = field(default_factory=dict)
    snapshot: Listing | None = None


class UpdateStream:
    """Lazy, infinite sequence of ``ListingUpdate``s for one consumer.

    Iterating blocks in short pump slices; ``drain`` is the non-blocking form
    used by the interactive loop. A stream ends once the model hands out a
    newer one.
    """

    def __init__(self, model: DirectoryModel) -> None:
        self._model = model
        self._pending: Queue[ListingUpdate] = Queue()
        self.closed = False

    def publish(self, update: ListingUpdate) -> None:
        if not self.closed:
            self._pending.put(update)

    def drain(self, timeout_seconds: float = 0.0) -> list[ListingUpdate]:
        if self.closed:
            return []
        self._model.pump(timeout_seconds)
        out: list[ListingUpdate] = []
        while True:
            try:
                out.append(self._pending.get_nowait())
            except Empty:
                return out

    def close(self) -> None:
        self.closed = True

    def __iter__(self) -> Iterator[ListingUpdate]:
        while not self.closed:
            yield from self.drain(timeout_seconds=0.1)


class DirectoryModel:
    """Open, version, and reconcile directory listings."""

    def __init__(
        self,
        settings: BrowserSettings | None = None,
        *,
        compute: Callable[..., int] = compute_tree_size,
        watcher: Watcher | None = None,
        polling_factory: Callable[[Path], WatchSubscription] | None = None,
    ) -> None:
        self.settings = settings if settings is not None else BrowserSettings()
        self.show_hidden = self.settings.show_hidden
        self.default_sort = normalize_sort(self.settings.sort_by)
        self._inbox: Queue[object] = Queue()
        self._lock = threading.RLock()
        self._open: dict[Path, _OpenDirectory] = {}
        self._by_generation: dict[int, _OpenDirectory] = {}
        self._generations = itertools.count(1)
        self._stream: UpdateStream | None = None
        self._sizes = SizeComputer(
            self.settings.worker_pool_size,
            report=self._inbox.put,
            compute=compute,
        )
        self._watcher = watcher if watcher is not None else Watcher(
            self.settings.watch_coalesce_interval,
            wakeup=self.wake,
        )
        self._polling_factory = polling_factory if polling_factory is not None else self._default_polling

    def _default_polling(self, path: Path) -> WatchSubscription:
        return PollingWatchSubscription(
            path,
            self.settings.watch_coalesce_interval,
            wakeup=self.wake,
            poll_interval=self.settings.poll_interval,
        )

    def wake(self) -> None:
        """Nudge a blocked ``pump`` so it drains watch subscriptions."""
        self._inbox.put(_WAKE)

    # lifecycle
    def open(self, path: Path, sort_by: str | None = None) -> Listing:
        """List ``path`` non-recursively and start sizing and watching it.

        Raises ``OSError`` when the directory itself cannot be read. Opening an
        already open path replaces it with a new generation.
        """
        path = Path(path).resolve()
        entries = list_entries(path, self.show_hidden)

        with self._lock:
            previous = self._open.get(path)
            if sort_by is None:
                sort_by = previous.sort_by if previous is not None else self.default_sort
            if previous is not None:
                self._close_locked(previous)
            directory = _OpenDirectory(
                path=path,
                generation=next(self._generations),
                entries={entry.name: entry for entry in entries},
                sort_by=normalize_sort(sort_by),
                version=previous.version if previous is not None else 0,
            )
            self._open[path] = directory
            self._by_generation[directory.generation] = directory

            if self.settings.auto_size_directories:
                for entry in list(directory.entries.values()):
                    if entry.is_dir:
                        task = self._sizes.request((directory.generation, entry.name), path / entry.name)
                        directory.size_task_ids[entry.name] = task.task_id
                        directory.entries[entry.name] = entry.with_size(SIZE_PENDING)

            try:
                directory.subscription = self._watcher.subscribe(path)
                directory.watch_state = "live"
            except WatchTerminated as exc:
                logger.info("live watch unavailable for %s: %s", path, exc.reason)
                self._fall_back_locked(directory)

            directory.version += 1
            listing = self._snapshot_locked(directory)
            self._publish_locked(directory, "", None)
        logger.debug("opened %s (generation %d, %d entries)", path, directory.generation, len(entries))
        return listing

    def close(self, path: Path) -> bool:
        """Cancel size work and release the watch for ``path``."""
        with self._lock:
            directory = self._open.get(Path(path).resolve())
            if directory is None:
                return False
            self._close_locked(directory)
        return True

    def _close_locked(self, directory: _OpenDirectory) -> None:
        self._open.pop(directory.path, None)
        self._by_generation.pop(directory.generation, None)
        generation = directory.generation
        try:
            self._sizes.cancel_where(lambda key: key[0] == generation)
        finally:
            subscription = directory.subscription
            directory.subscription = None
            if subscription is not None:
                subscription.close()
        logger.debug("closed %s (generation %d)", directory.path, generation)

    def refresh(self, path: Path) -> Listing:
        return self.open(path)

    def shutdown(self) -> None:
        with self._lock:
            directories = list(self._open.values())
            for directory in directories:
                self._close_locked(directory)
            if self._stream is not None:
                self._stream.close()
        self._sizes.shutdown()
        self._watcher.stop()

    # queries
    def listing(self, path: Path) -> Listing | None:
        with self._lock:
            directory = self._open.get(Path(path).resolve())
            if directory is None:
                return None
            return self._snapshot_locked(directory)

    def is_open(self, path: Path) -> bool:
        with self._lock:
            return Path(path).resolve() in self._open

    def updates(self) -> UpdateStream:
        """Start a new update subscription, ending the previous one."""
        with self._lock:
            if self._stream is not None:
                self._stream.close()
            self._stream = UpdateStream(self)
            return self._stream

    # requests
    def request_size(self, path: Path, name: str) -> bool:
        """Queue recursive sizing for directory ``name`` inside open ``path``."""
        with self._lock:
            directory = self._open.get(Path(path).resolve())
            if directory is None:
                return False
            entry = directory.entries.get(name)
            if entry is None or not entry.is_dir:
                return False
            task = self._sizes.request((directory.generation, name), directory.path / name)
            directory.size_task_ids[name] = task.task_id
            if not isinstance(entry.size, SizePending):
                self._set_entry_locked(directory, entry.with_size(SIZE_PENDING))
        return True

    def set_sort(self, path: Path, sort_by: str) -> Listing | None:
        with self._lock:
            directory = self._open.get(Path(path).resolve())
            if directory is None:
                return None
            sort_by = normalize_sort(sort_by)
            self.default_sort = sort_by
            if sort_by == directory.sort_by:
                return self._snapshot_locked(directory)
            directory.sort_by = sort_by
            directory.version += 1
            directory.snapshot = None
            self._publish_locked(directory, "", None)
            return self._snapshot_locked(directory)

    def set_show_hidden(self, show_hidden: bool) -> None:
        """Change hidden-file visibility for listings opened afterwards."""
        self.show_hidden = bool(show_hidden)

    # the serialization point
    def pump(self, timeout_seconds: float = 0.0) -> int:
        """Apply queued worker messages and watch events; return accepted count.

        Waits up to ``timeout_seconds`` for the first message when nothing is
        queued.
        """
        messages: list[object] = []
        try:
            if timeout_seconds > 0:
                messages.append(self._inbox.get(timeout=timeout_seconds))
            else:
                messages.append(self._inbox.get_nowait())
        except Empty:
            pass
        while True:
            try:
                messages.append(self._inbox.get_nowait())
            except Empty:
                break

        accepted = 0
        with self._lock:
            now = time.monotonic()
            for directory in list(self._open.values()):
                subscription = directory.subscription
                if subscription is None:
                    continue
                subscription.check_alive()
                for event in subscription.drain(now):
                    if self._open.get(directory.path) is not directory:
                        break
                    accepted += self._apply_watch_event_locked(directory, event)
                if subscription.terminated is not None and directory.subscription is subscription:
                    accepted += self._handle_watch_terminated_locked(directory, subscription.terminated)

            for message in messages:
                if isinstance(message, SizeReport):
                    accepted += self._apply_size_report_locked(message)
        return accepted

    def _apply_size_report_locked(self, report: SizeReport) -> int:
        generation, name = report.key
        directory = self._by_generation.get(generation)
        if directory is None:
            logger.debug("dropping %s size report for closed generation %d", report.state, generation)
            return 0
        if directory.size_task_ids.get(name) != report.task_id:
            logger.debug("dropping superseded size report for %s/%s", directory.path, name)
            return 0
        entry = directory.entries.get(name)
        if entry is None:
            directory.size_task_ids.pop(name, None)
            return 0

        if report.state == "progress":
            if not isinstance(entry.size, SizePending):
                return 0
            return self._set_entry_locked(directory, entry.with_size(SizePending(report.size_bytes)))

        directory.size_task_ids.pop(name, None)
        if report.state == "done":
            size = SizeKnown(int(report.size_bytes or 0))
        elif report.state == "failed":
            size = SizeFailed(report.reason or "size unavailable")
        elif isinstance(entry.size, SizePending):
            size = SIZE_UNKNOWN
        else:
            return 0
        return self._set_entry_locked(directory, entry.with_size(size))

    def _visible(self, name: str | None) -> bool:
        return name is not None and (self.show_hidden or not name.startswith("."))

    def _apply_watch_event_locked(self, directory: _OpenDirectory, event: WatchEvent) -> int:
        if event.kind == "renamed":
            old_visible = self._visible(event.name)
            new_visible = self._visible(event.new_name)
            assert event.new_name is not None
            if old_visible and new_visible:
                return self._rename_entry_locked(directory, event.name, event.new_name)
            accepted = 0
            if old_visible:
                accepted += self._remove_entry_locked(directory, event.name)
            if new_visible:
                accepted += self._refresh_child_locked(directory, event.new_name)
            return accepted

        if not self._visible(event.name):
            return 0
        if event.kind == "removed":
            return self._remove_entry_locked(directory, event.name)
        return self._refresh_child_locked(directory, event.name)

    def _remove_entry_locked(self, directory: _OpenDirectory, name: str) -> int:
        if name not in directory.entries:
            return 0
        del directory.entries[name]
        if directory.size_task_ids.pop(name, None) is not None:
            self._sizes.cancel((directory.generation, name))
        directory.version += 1
        directory.snapshot = None
        self._publish_locked(directory, name, None)
        return 1

    def _rename_entry_locked(self, directory: _OpenDirectory, old_name: str, new_name: str) -> int:
        entry = directory.entries.get(old_name)
        if entry is None:
            return self._refresh_child_locked(directory, new_name)
        accepted = self._remove_entry_locked(directory, new_name)
        was_pending = directory.size_task_ids.get(old_name) is not None
        accepted += self._remove_entry_locked(directory, old_name)
        moved = replace(entry, name=new_name)
        if was_pending and moved.is_dir:
            task = self._sizes.request((directory.generation, new_name), directory.path / new_name)
            directory.size_task_ids[new_name] = task.task_id
            moved = moved.with_size(SIZE_PENDING)
        return accepted + self._set_entry_locked(directory, moved)

    def _refresh_child_locked(self, directory: _OpenDirectory, name: str) -> int:
        try:
            fresh = stat_entry(directory.path / name)
        except FileNotFoundError:
            return self._remove_entry_locked(directory, name)

        existing = directory.entries.get(name)
        if fresh.is_dir:
            tracked = existing is not None and existing.is_dir and not isinstance(existing.size, SizeUnknown)
            if self.settings.auto_size_directories or tracked:
                task = self._sizes.request(
                    (directory.generation, name),
                    directory.path / name,
                    restart=True,
                )
                directory.size_task_ids[name] = task.task_id
                partial = existing.size.partial_bytes if existing is not None and isinstance(existing.size, SizePending) else None
                fresh = fresh.with_size(SizePending(partial))
        elif directory.size_task_ids.pop(name, None) is not None:
            self._sizes.cancel((directory.generation, name))
        return self._set_entry_locked(directory, fresh)

    def _handle_watch_terminated_locked(self, directory: _OpenDirectory, reason: str) -> int:
        subscription = directory.subscription
        directory.subscription = None
        if subscription is not None:
            subscription.close()
        logger.warning("watch for %s ended: %s", directory.path, reason)
        if subscription is None or subscription.kind != "polling":
            self._fall_back_locked(directory)
        else:
            directory.watch_state = "off"
        directory.version += 1
        directory.snapshot = None
        self._publish_locked(directory, "", None)
        return 1

    def _fall_back_locked(self, directory: _OpenDirectory) -> None:
        if not self.settings.watch_fallback_polling:
            directory.watch_state = "off"
            return
        try:
            directory.subscription = self._polling_factory(directory.path)
            directory.watch_state = "polling"
        except OSError as exc:
            logger.warning("polling fallback for %s failed: %s", directory.path, exc)
            directory.subscription = None
            directory.watch_state = "off"

    # publication
    def _set_entry_locked(self, directory: _OpenDirectory, entry: Entry) -> int:
        if directory.entries.get(entry.name) == entry:
            return 0
        directory.entries[entry.name] = entry
        directory.version += 1
        directory.snapshot = None
        self._publish_locked(directory, entry.name, entry)
        return 1

    def _snapshot_locked(self, directory: _OpenDirectory) -> Listing:
        if directory.snapshot is None or directory.snapshot.version != directory.version:
            directory.snapshot = Listing(
                path=directory.path,
                entries=tuple(sort_entries(directory.entries.values(), directory.sort_by)),
                version=directory.version,
                generation=directory.generation,
                watch_state=directory.watch_state,
                sort_by=directory.sort_by,
            )
        return directory.snapshot

    def _publish_locked(self, directory: _OpenDirectory, name: str, entry: Entry | None) -> None:
        if self._stream is not None:
            self._stream.publish(ListingUpdate(directory.path, directory.version, name, entry))


__all__ = ["DirectoryModel", "UpdateStream"]
