"""Background recursive size computation.

Runs subtree traversals on a bounded thread pool, one live task per key.
Results are delivered as ``SizeReport`` messages through a callback, which
the directory model points at its inbox queue.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Hashable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .errors import SizeComputationCancelled

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_SECONDS = 0.2

TaskState = Literal["queued", "running", "done", "cancelled", "failed"]
ReportState = Literal["progress", "done", "failed", "cancelled"]


def default_worker_count() -> int:
    """Default pool size: one worker per available CPU."""
    return max(1, os.cpu_count() or 1)


def compute_tree_size(
    root: Path,
    cancel_event: threading.Event,
    on_progress: Callable[[int], None] | None = None,
) -> int:
    """Return the summed ``lstat`` size of every non-directory under ``root``.

    Traversal is depth-first with a single ``scandir`` handle open at a time;
    only subdirectory paths are retained between reads. ``cancel_event`` is
    checked before every directory read. Symlinks are counted, not followed.
    Entries that vanish mid-walk are skipped; other ``OSError``s propagate.
    """
    total = 0
    pending: list[str] = [os.fspath(root)]
    root_str = pending[0]
    last_progress = time.monotonic()
    while pending:
        if cancel_event.is_set():
            raise SizeComputationCancelled(root_str)
        directory = pending.pop()
        try:
            with os.scandir(directory) as children:
                for child in children:
                    try:
                        if child.is_dir(follow_symlinks=False):
                            pending.append(child.path)
                            continue
                        total += child.stat(follow_symlinks=False).st_size
                    except FileNotFoundError:
                        continue
        except FileNotFoundError:
            if directory == root_str:
                raise
            continue

        if on_progress is not None:
            now = time.monotonic()
            if now - last_progress >= PROGRESS_INTERVAL_SECONDS:
                last_progress = now
                on_progress(total)
    return total


@dataclass(frozen=True)
class SizeReport:
    """Progress or terminal result for one size task."""

    key: Hashable
    task_id: int
    state: ReportState
    size_bytes: int | None = None
    reason: str | None = None


class SizeTask:
    """Handle for one requested computation.

    ``state`` moves ``queued -> running -> {done, cancelled, failed}``. A
    restart keeps the same handle and reruns inside the same worker.
    """

    def __init__(self, task_id: int, key: Hashable, path: Path) -> None:
        self.task_id = task_id
        self.key = key
        self.path = path
        self.state: TaskState = "queued"
        self.size_bytes: int | None = None
        self.reason: str | None = None
        self.runs = 0
        self.cancel_requested = False
        self.restart_requested = False
        self.cancel_event = threading.Event()
        self.future: Future | None = None
        self._finished = threading.Event()

    @property
    def active(self) -> bool:
        return self.state in ("queued", "running")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the task reaches a terminal state."""
        return self._finished.wait(timeout)

    def __repr__(self) -> str:
        return f"SizeTask(id={self.task_id}, path={self.path}, state={self.state})"


class SizeComputer:
    """Bounded, FIFO, per-key deduplicating size-computation pool."""

    def __init__(
        self,
        max_workers: int | None = None,
        report: Callable[[SizeReport], None] | None = None,
        compute: Callable[..., int] = compute_tree_size,
    ) -> None:
        self.max_workers = max(1, max_workers or default_worker_count())
        self._report = report if report is not None else (lambda _report: None)
        self._compute = compute
        self._lock = threading.Lock()
        self._tasks: dict[Hashable, SizeTask] = {}
        self._next_task_id = 1
        self._closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="lazyls-size",
        )

    def request(self, key: Hashable, path: Path, *, restart: bool = False) -> SizeTask:
        """Queue a computation for ``key`` or return the one already live.

        With ``restart`` a running task discards its current traversal and
        starts over once the worker notices, without a second worker.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("size computer is shut down")
            task = self._tasks.get(key)
            if task is not None and task.active:
                if restart and task.state == "running" and not task.cancel_requested:
                    task.restart_requested = True
                    task.cancel_event.set()
                return task

            task = SizeTask(self._next_task_id, key, Path(path))
            self._next_task_id += 1
            self._tasks[key] = task
            task.future = self._executor.submit(self._run, task)
        logger.debug("queued size task %d for %s", task.task_id, task.path)
        return task

    def active_task(self, key: Hashable) -> SizeTask | None:
        with self._lock:
            task = self._tasks.get(key)
            return task if task is not None and task.active else None

    def cancel(self, key: Hashable) -> bool:
        """Cooperatively cancel the live task for ``key``.

        Queued tasks are dropped from the executor immediately; running ones
        stop at their next directory read.
        """
        with self._lock:
            task = self._tasks.get(key)
            if task is None or not task.active:
                return False
            task.cancel_requested = True
            task.cancel_event.set()
            dequeued = task.future is not None and task.future.cancel()
        if dequeued:
            self._finish(task, "cancelled")
        return True

    def cancel_where(self, predicate: Callable[[Hashable], bool]) -> int:
        with self._lock:
            keys = [key for key, task in self._tasks.items() if task.active and predicate(key)]
        return sum(1 for key in keys if self.cancel(key))

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel_requested = True
            task.cancel_event.set()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _run(self, task: SizeTask) -> None:
        while True:
            with self._lock:
                if task.cancel_requested:
                    break
                task.state = "running"
                task.restart_requested = False
                task.runs += 1
                cancel_event = threading.Event()
                task.cancel_event = cancel_event

            def on_progress(total: int) -> None:
                if not cancel_event.is_set():
                    self._report(SizeReport(task.key, task.task_id, "progress", size_bytes=total))

            started = time.monotonic()
            try:
                total = self._compute(task.path, cancel_event, on_progress)
            except SizeComputationCancelled:
                if self._should_rerun(task):
                    continue
                break
            except OSError as exc:
                if self._should_rerun(task):
                    continue
                reason = "permission denied" if isinstance(exc, PermissionError) else (exc.strerror or str(exc))
                logger.debug("size task %d for %s failed: %s", task.task_id, task.path, reason)
                self._finish(task, "failed", reason=reason)
                return
            except Exception as exc:
                logger.exception("size task %d for %s crashed", task.task_id, task.path)
                self._finish(task, "failed", reason=str(exc) or type(exc).__name__)
                return

            with self._lock:
                rerun = task.restart_requested and not task.cancel_requested
                cancelled = task.cancel_requested
            if rerun:
                continue
            if cancelled:
                break
            logger.debug("Dir size for %s in %.3fs", task.path, time.monotonic() - started)
            self._finish(task, "done", size_bytes=total)
            return
        self._finish(task, "cancelled")

    def _should_rerun(self, task: SizeTask) -> bool:
        with self._lock:
            return task.restart_requested and not task.cancel_requested

    def _finish(
        self,
        task: SizeTask,
        state: Literal["done", "cancelled", "failed"],
        *,
        size_bytes: int | None = None,
        reason: str | None = None,
    ) -> None:
        with self._lock:
            if not task.active:
                return
            task.state = state
            task.size_bytes = size_bytes
            task.reason = reason
            if self._tasks.get(task.key) is task:
                del self._tasks[task.key]
        self._report(SizeReport(task.key, task.task_id, state, size_bytes=size_bytes, reason=reason))
        task._finished.set()


__all__ = [
    "PROGRESS_INTERVAL_SECONDS",
    "SizeComputer",
    "SizeReport",
    "SizeTask",
    "compute_tree_size",
    "default_worker_count",
]
