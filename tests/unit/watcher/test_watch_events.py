"""Tests for watch event normalization, coalescing and poll diffing."""

from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path

from lazyls.watcher import (
    EventCoalescer,
    PollingWatchSubscription,
    WatchEvent,
    WatchSubscription,
    diff_child_signatures,
    translate_event,
)

WATCHED = Path("/data/watched")


class TranslateEventTests(unittest.TestCase):
    def test_direct_child_events_map_one_to_one(self) -> None:
        self.assertEqual(translate_event(WATCHED, "created", "/data/watched/a"), [WatchEvent("created", "a")])
        self.assertEqual(translate_event(WATCHED, "deleted", "/data/watched/a"), [WatchEvent("removed", "a")])
        self.assertEqual(translate_event(WATCHED, "modified", "/data/watched/a"), [WatchEvent("modified", "a")])
        self.assertEqual(translate_event(WATCHED, "closed", "/data/watched/a"), [WatchEvent("modified", "a")])

    def test_read_only_notifications_are_ignored(self) -> None:
        self.assertEqual(translate_event(WATCHED, "opened", "/data/watched/a"), [])
        self.assertEqual(translate_event(WATCHED, "closed_no_write", "/data/watched/a"), [])

    def test_deeper_changes_surface_as_modified_on_containing_child(self) -> None:
        events = translate_event(WATCHED, "created", "/data/watched/sub/deep/file.txt")
        self.assertEqual(events, [WatchEvent("modified", "sub")])

    def test_rename_within_directory(self) -> None:
        events = translate_event(WATCHED, "moved", "/data/watched/old", "/data/watched/new")
        self.assertEqual(events, [WatchEvent("renamed", "old", "new")])

    def test_moves_across_the_boundary_become_create_or_remove(self) -> None:
        self.assertEqual(
            translate_event(WATCHED, "moved", "/data/watched/out", "/elsewhere/out"),
            [WatchEvent("removed", "out")],
        )
        self.assertEqual(
            translate_event(WATCHED, "moved", "/elsewhere/in", "/data/watched/in"),
            [WatchEvent("created", "in")],
        )

    def test_removal_of_watched_directory_is_terminal(self) -> None:
        reason = translate_event(WATCHED, "deleted", "/data/watched")
        self.assertIsInstance(reason, str)
        self.assertEqual(translate_event(WATCHED, "modified", "/data/watched"), [])

    def test_events_outside_watched_directory_are_dropped(self) -> None:
        self.assertEqual(translate_event(WATCHED, "created", "/data/other/a"), [])


class EventCoalescerTests(unittest.TestCase):
    def test_burst_of_modifications_is_merged(self) -> None:
        coalescer = EventCoalescer(0.5)
        delivered = coalescer.offer(WatchEvent("modified", "log"), now=0.0)
        for step in range(1, 10):
            delivered += coalescer.offer(WatchEvent("modified", "log"), now=step * 0.01)

        self.assertEqual(delivered, [WatchEvent("modified", "log")])
        self.assertTrue(coalescer.has_held)
        self.assertEqual(coalescer.due(now=0.2), [])
        self.assertEqual(coalescer.due(now=0.6), [WatchEvent("modified", "log")])
        self.assertFalse(coalescer.has_held)

    def test_structural_events_pass_immediately_and_flush_held_modify(self) -> None:
        coalescer = EventCoalescer(0.5)
        coalescer.offer(WatchEvent("modified", "a"), now=0.0)
        coalescer.offer(WatchEvent("modified", "a"), now=0.1)

        out = coalescer.offer(WatchEvent("renamed", "a", "b"), now=0.2)

        self.assertEqual(out, [WatchEvent("modified", "a"), WatchEvent("renamed", "a", "b")])
        self.assertFalse(coalescer.has_held)

    def test_removal_discards_held_modification(self) -> None:
        coalescer = EventCoalescer(0.5)
        coalescer.offer(WatchEvent("modified", "a"), now=0.0)
        coalescer.offer(WatchEvent("modified", "a"), now=0.1)

        out = coalescer.offer(WatchEvent("removed", "a"), now=0.2)

        self.assertEqual(out, [WatchEvent("removed", "a")])
        self.assertEqual(coalescer.due(now=5.0), [])

    def test_coalescing_never_fabricates_structural_events(self) -> None:
        coalescer = EventCoalescer(0.5)
        incoming = [WatchEvent("modified", "a")] * 5 + [WatchEvent("modified", "b")] * 5
        delivered: list[WatchEvent] = []
        for idx, event in enumerate(incoming):
            delivered += coalescer.offer(event, now=idx * 0.01)
        delivered += coalescer.due(now=10.0)

        self.assertTrue(all(event.kind == "modified" for event in delivered))
        self.assertEqual({event.name for event in delivered}, {"a", "b"})


class SubscriptionTests(unittest.TestCase):
    def test_deliver_wakes_consumer_and_drain_returns_events(self) -> None:
        wakes: list[int] = []
        subscription = WatchSubscription(WATCHED, coalesce_interval=0.0, wakeup=lambda: wakes.append(1))

        subscription.deliver([WatchEvent("created", "a"), WatchEvent("modified", "a")])

        self.assertEqual(wakes, [1])
        self.assertEqual(
            subscription.drain(now=1.0),
            [WatchEvent("created", "a"), WatchEvent("modified", "a")],
        )

    def test_closed_subscription_drops_deliveries(self) -> None:
        subscription = WatchSubscription(WATCHED)
        subscription.close()
        subscription.deliver([WatchEvent("created", "a")])
        self.assertEqual(subscription.drain(), [])

    def test_terminate_is_recorded_once(self) -> None:
        wakes: list[int] = []
        subscription = WatchSubscription(WATCHED, wakeup=lambda: wakes.append(1))
        subscription.terminate("gone")
        subscription.terminate("again")
        self.assertEqual(subscription.terminated, "gone")
        self.assertEqual(wakes, [1])


class PollingTests(unittest.TestCase):
    def test_diff_detects_create_modify_remove(self) -> None:
        previous = {"keep": ("file", 1, 1, 0o644), "gone": ("file", 1, 1, 0o644), "edit": ("file", 1, 1, 0o644)}
        current = {"keep": ("file", 1, 1, 0o644), "edit": ("file", 2, 5, 0o644), "new": ("dir", 3, 0, 0o755)}

        events = diff_child_signatures(previous, current)

        self.assertEqual(
            events,
            [WatchEvent("removed", "gone"), WatchEvent("created", "new"), WatchEvent("modified", "edit")],
        )

    def test_polling_subscription_reports_new_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            woke = threading.Event()
            subscription = PollingWatchSubscription(root, coalesce_interval=0.0, wakeup=woke.set, poll_interval=0.05)
            try:
                (root / "fresh.txt").write_text("x", encoding="utf-8")
                self.assertTrue(woke.wait(5))
                self.assertIn(WatchEvent("created", "fresh.txt"), subscription.drain())
            finally:
                subscription.close()

    def test_polling_subscription_terminates_when_directory_disappears(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve() / "watched"
            root.mkdir()
            woke = threading.Event()
            subscription = PollingWatchSubscription(root, wakeup=woke.set, poll_interval=0.05)
            try:
                root.rmdir()
                self.assertTrue(woke.wait(5))
                self.assertIsNotNone(subscription.terminated)
            finally:
                subscription.close()


if __name__ == "__main__":
    unittest.main()
