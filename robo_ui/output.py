"""Output hand-off between the robocopy readers and the display.

Reader threads push lines into a ``LineBuffer`` as fast as robocopy
produces them.  A single ``LineDrainer`` thread pulls bounded batches on
a fixed interval and hands them to the display sink, so the sink only
ever has one writer and very chatty runs cannot flood it.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINES_PER_DRAIN = 200


class LineBuffer:
    """Thread-safe FIFO of display lines."""

    def __init__(self, max_lines_per_drain: int = DEFAULT_MAX_LINES_PER_DRAIN):
        self._queue: queue.SimpleQueue[str] = queue.SimpleQueue()
        self.max_lines_per_drain = max(1, max_lines_per_drain)

    def accept(self, line: object) -> None:
        """Queue *line* (anything with a sensible ``str()``) for display."""
        self._queue.put(str(line))

    def drain(self, limit: int | None = None) -> list[str]:
        """Remove and return up to *limit* queued lines, oldest first."""
        limit = self.max_lines_per_drain if limit is None else limit
        lines: list[str] = []
        while len(lines) < limit:
            try:
                lines.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return lines

    @property
    def pending(self) -> int:
        """Approximate number of queued lines."""
        return self._queue.qsize()


class LineDrainer:
    """Periodically drains a :class:`LineBuffer` into *sink* on its own thread.

    Usage:
        drainer = LineDrainer(buffer, print_lines, interval=0.2)
        drainer.start()
        ...
        drainer.stop()
    """

    def __init__(
        self,
        buffer: LineBuffer,
        sink: Callable[[list[str]], None],
        interval: float = 0.2,
    ):
        self._buffer = buffer
        self._sink = sink
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="LineDrainer")
        self._thread.start()

    def stop(self, flush: bool = True) -> None:
        """Stop the drain thread; with *flush*, deliver everything still queued."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if flush:
            while batch := self._buffer.drain():
                self._deliver(batch)

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self._interval):
            batch = self._buffer.drain()
            if batch:
                self._deliver(batch)

    def _deliver(self, batch: list[str]) -> None:
        try:
            self._sink(batch)
        except Exception:
            logger.exception("Error in output sink")
