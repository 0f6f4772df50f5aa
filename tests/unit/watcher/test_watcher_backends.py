"""Tests for the observer-backed watcher using a fake observer."""

from __future__ import annotations

import unittest
from pathlib import Path

from watchdog.events import DirDeletedEvent, FileCreatedEvent, FileMovedEvent

from lazyls.errors import WatchTerminated
from lazyls.watcher import WatchEvent, Watcher


class FakeObserver:
    def __init__(self, fail_schedule: bool = False, fail_unschedule: bool = False) -> None:
        self.fail_schedule = fail_schedule
        self.fail_unschedule = fail_unschedule
        self.daemon = False
        self.started = False
        self.alive = True
        self.scheduled: list[tuple[object, str, bool]] = []
        self.unscheduled: list[object] = []

    def start(self) -> None:
        self.started = True

    def is_alive(self) -> bool:
        return self.alive

    def schedule(self, handler, path: str, recursive: bool = False):
        if self.fail_schedule:
            raise OSError(28, "inotify watch limit reached")
        watch = object()
        self.scheduled.append((handler, path, recursive))
        return watch

    def unschedule(self, watch) -> None:
        if self.fail_unschedule:
            raise KeyError(watch)
        self.unscheduled.append(watch)

    def unschedule_all(self) -> None:
        pass

    def stop(self) -> None:
        self.alive = False

    def join(self, timeout: float | None = None) -> None:
        pass


class WatcherTests(unittest.TestCase):
    def test_subscribe_schedules_non_recursive_watch_and_forwards_events(self) -> None:
        observer = FakeObserver()
        watcher = Watcher(coalesce_interval=0.0, observer_factory=lambda: observer)
        root = Path("/data/watched")

        subscription = watcher.subscribe(root)
        handler, path, recursive = observer.scheduled[0]
        handler.dispatch(FileCreatedEvent("/data/watched/new.txt"))
        handler.dispatch(FileMovedEvent("/data/watched/a", "/data/watched/b"))

        self.assertTrue(observer.started)
        self.assertTrue(observer.daemon)
        self.assertEqual(path, str(root))
        self.assertFalse(recursive)
        self.assertEqual(
            subscription.drain(now=1.0),
            [WatchEvent("created", "new.txt"), WatchEvent("renamed", "a", "b")],
        )

    def test_schedule_failure_raises_watch_terminated(self) -> None:
        watcher = Watcher(observer_factory=lambda: FakeObserver(fail_schedule=True))
        with self.assertRaises(WatchTerminated) as ctx:
            watcher.subscribe(Path("/data/watched"))
        self.assertIn("inotify", ctx.exception.reason)

    def test_unsubscribe_releases_even_when_backend_errors(self) -> None:
        observer = FakeObserver(fail_unschedule=True)
        watcher = Watcher(observer_factory=lambda: observer)
        subscription = watcher.subscribe(Path("/data/watched"))

        subscription.close()

        self.assertTrue(subscription.closed)
        self.assertIsNone(subscription.watch)

    def test_deleting_watched_directory_terminates_subscription(self) -> None:
        observer = FakeObserver()
        watcher = Watcher(observer_factory=lambda: observer)
        subscription = watcher.subscribe(Path("/data/watched"))
        handler = observer.scheduled[0][0]

        handler.dispatch(DirDeletedEvent("/data/watched"))

        self.assertIsNotNone(subscription.terminated)

    def test_dead_observer_surfaces_as_termination(self) -> None:
        observer = FakeObserver()
        watcher = Watcher(observer_factory=lambda: observer)
        subscription = watcher.subscribe(Path("/data/watched"))

        observer.alive = False
        subscription.check_alive()

        self.assertEqual(subscription.terminated, "change observer stopped")


if __name__ == "__main__":
    unittest.main()
