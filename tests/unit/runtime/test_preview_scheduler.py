"""Tests for the latest-request-wins preview worker."""

from __future__ import annotations

import threading
import time
import unittest
from pathlib import Path

from lazyls.runtime.preview_scheduler import PreviewScheduler


class BlockingProvider:
    def __init__(self) -> None:
        self.release = threading.Event()
        self.started = threading.Event()
        self.calls: list[Path] = []

    def preview(self, path: Path):
        self.calls.append(path)
        self.started.set()
        self.release.wait(5)
        if path.name == "locked":
            raise PermissionError(13, "Permission denied", str(path))
        for idx in range(10):
            yield f"{path.name}:{idx}"


def _wait_results(scheduler: PreviewScheduler, timeout: float = 5.0) -> list:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        results = scheduler.drain_results()
        if results:
            return results
        time.sleep(0.01)
    return []


class PreviewSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = BlockingProvider()
        self.addCleanup(self.provider.release.set)

    def test_result_carries_request_id_and_respects_line_cap(self) -> None:
        scheduler = PreviewScheduler(self.provider, max_lines=3)
        self.provider.release.set()

        request_id = scheduler.schedule(Path("/data/a.txt"))
        results = _wait_results(scheduler)

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].request_id, request_id)
        self.assertEqual(results[0].lines, ("a.txt:0", "a.txt:1", "a.txt:2"))
        self.assertIsNone(results[0].error)

    def test_superseded_request_is_dropped(self) -> None:
        scheduler = PreviewScheduler(self.provider)
        scheduler.schedule(Path("/data/first"))
        self.assertTrue(self.provider.started.wait(5))
        second = scheduler.schedule(Path("/data/second"))
        third = scheduler.schedule(Path("/data/third"))
        self.provider.release.set()

        results = _wait_results(scheduler)
        time.sleep(0.1)
        results += scheduler.drain_results()

        self.assertEqual([result.request_id for result in results], [third])
        self.assertNotIn(Path("/data/second"), self.provider.calls)
        self.assertGreater(third, second)

    def test_cancel_discards_in_flight_preview(self) -> None:
        scheduler = PreviewScheduler(self.provider)
        scheduler.schedule(Path("/data/a.txt"))
        self.assertTrue(self.provider.started.wait(5))

        scheduler.cancel()
        self.provider.release.set()
        time.sleep(0.2)

        self.assertEqual(scheduler.drain_results(), [])

    def test_unreadable_file_becomes_message_line(self) -> None:
        scheduler = PreviewScheduler(self.provider)
        self.provider.release.set()

        scheduler.schedule(Path("/data/locked"))
        results = _wait_results(scheduler)

        self.assertEqual(results[0].lines, ("Cannot preview locked: Permission denied",))
        self.assertEqual(results[0].error, "Permission denied")


if __name__ == "__main__":
    unittest.main()
