"""
Progress reporting.

Progress is advisory: events may be dropped under backpressure, but a
sink never sees the percent go backwards.

To consume progress:
1. Pass any ProgressSink (or a plain (stage, percent) callable wrapped in
   CallbackSink) to the pipeline or session.
2. Or use ProgressStream and iterate over it from another thread.

Example:
    stream = ProgressStream()
    worker = threading.Thread(target=lambda: (pipeline.process(data, stream), stream.close()))
    worker.start()
    for event in stream:
        print(event.stage, event.percent)
"""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

from loguru import logger

from .contracts import ProgressEvent


class ProgressSink(ABC):
    """Observer interface for progress events."""

    @abstractmethod
    def emit(self, event: ProgressEvent) -> None:
        """Receive one event. Must not block for long."""
        pass


class NullSink(ProgressSink):
    """Discards all events."""

    def emit(self, event: ProgressEvent) -> None:
        pass


class CallbackSink(ProgressSink):
    """Adapts a (stage, percent) callback to the sink interface."""

    def __init__(self, callback: Callable[[str, int], None]):
        self._callback = callback

    def emit(self, event: ProgressEvent) -> None:
        self._callback(event.stage, event.percent)


class CollectingSink(ProgressSink):
    """Keeps every event in memory. Handy for tests and debugging."""

    def __init__(self):
        self.events: List[ProgressEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            self.events.append(event)

    @property
    def percents(self) -> List[int]:
        with self._lock:
            return [e.percent for e in self.events]


class ProgressStream(ProgressSink):
    """
    Bounded event stream.

    Producers call emit(); when the buffer is full the event is dropped.
    Consumers iterate until close() is called and the buffer drains.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 64):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self.dropped = 0

    def emit(self, event: ProgressEvent) -> None:
        if self._closed.is_set():
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1

    def close(self) -> None:
        """Signal end of stream. Never blocks: a full buffer loses its oldest event."""
        if self._closed.is_set():
            return
        self._closed.set()
        while True:
            try:
                self._queue.put_nowait(self._CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class ProgressReporter:
    """
    Wraps a sink and enforces the progress contract.

    Guarantees:
    - percent is clamped to [0, 100]
    - percent never regresses (regressing events are dropped)
    - a failing sink never breaks the caller
    """

    def __init__(self, sink: Optional[ProgressSink] = None):
        self._sink = sink or NullSink()
        self._last = -1
        self._lock = threading.Lock()

    @property
    def last_percent(self) -> int:
        return self._last

    def report(self, stage: str, percent: float) -> None:
        percent = int(round(min(max(percent, 0), 100)))
        # Emit under the lock so concurrent reporters cannot reorder events
        with self._lock:
            if percent < self._last:
                return
            self._last = percent
            try:
                self._sink.emit(ProgressEvent(stage=stage, percent=percent))
            except Exception as e:
                logger.warning(f"Progress sink raised, ignoring: {e}")


class ScaledSink(ProgressSink):
    """Maps 0-100 events from a sub-task into [start, end] of a parent sink."""

    def __init__(self, parent: ProgressSink, start: int, end: int):
        self._parent = parent
        self._start = start
        self._span = end - start

    def emit(self, event: ProgressEvent) -> None:
        scaled = self._start + round(self._span * event.percent / 100)
        self._parent.emit(ProgressEvent(stage=event.stage, percent=scaled))


class ReporterSink(ProgressSink):
    """Routes events through a ProgressReporter (and its monotonic guard)."""

    def __init__(self, reporter: ProgressReporter):
        self._reporter = reporter

    def emit(self, event: ProgressEvent) -> None:
        self._reporter.report(event.stage, event.percent)


def as_sink(progress) -> ProgressSink:
    """Accept a sink, a (stage, percent) callable, or None."""
    if progress is None:
        return NullSink()
    if isinstance(progress, ProgressSink):
        return progress
    if callable(progress):
        return CallbackSink(progress)
    raise TypeError(f"Unsupported progress sink: {type(progress).__name__}")
