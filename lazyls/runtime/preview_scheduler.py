"""Background worker producing previews off the interactive loop."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue

from ..preview import PreviewProvider

logger = logging.getLogger(__name__)

PREVIEW_MAX_LINES = 2000


@dataclass(frozen=True)
class PreviewRequest:
    """One preview job."""

    request_id: int
    target: Path


@dataclass(frozen=True)
class PreviewResult:
    """Completed preview lines from the background worker."""

    request_id: int
    target: Path
    lines: tuple[str, ...]
    error: str | None = None


class PreviewScheduler:
    """Single-threaded latest-request-wins preview scheduler."""

    def __init__(self, provider: PreviewProvider, max_lines: int = PREVIEW_MAX_LINES) -> None:
        self._provider = provider
        self._max_lines = max(1, max_lines)
        self._lock = threading.Lock()
        self._pending: PreviewRequest | None = None
        self._latest_id: int | None = None
        self._running = False
        self._next_request_id = 1
        self._results: Queue[PreviewResult] = Queue()

    def _worker(self) -> None:
        while True:
            with self._lock:
                request = self._pending
                self._pending = None
                if request is None:
                    self._running = False
                    return

            try:
                lines = tuple(itertools.islice(self._provider.preview(request.target), self._max_lines))
                error = None
            except OSError as exc:
                reason = exc.strerror or str(exc)
                logger.debug("preview of %s failed: %s", request.target, reason)
                lines = (f"Cannot preview {request.target.name}: {reason}",)
                error = reason

            with self._lock:
                if request.request_id != self._latest_id:
                    continue
            self._results.put(PreviewResult(request.request_id, request.target, lines, error))

    def schedule(self, target: Path) -> int:
        """Queue or replace pending preview work and return its request id."""
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending = PreviewRequest(request_id=request_id, target=target)
            self._latest_id = request_id
            if self._running:
                return request_id
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name="lazyls-preview",
            daemon=True,
        )
        worker.start()
        return request_id

    def cancel(self) -> None:
        """Drop pending work; a preview already being built is discarded."""
        with self._lock:
            self._pending = None
            self._latest_id = None

    def drain_results(self) -> list[PreviewResult]:
        """Drain all completed preview results."""
        out: list[PreviewResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out


__all__ = ["PreviewRequest", "PreviewResult", "PreviewScheduler"]
