"""Periodic flushing of pending metrics through processors into a sink."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from .metrics import DataBatch

log = logging.getLogger(__name__)


class FlushManager:
    """Every ``flush_interval`` seconds runs pending batches through processors and exports them.

    ``pending_metrics`` is called on each flush and returns the batches to push.
    """

    def __init__(self, processors: Sequence[Any], sink: Any, flush_interval: float,
                 pending_metrics: Callable[[], Iterable[DataBatch]]) -> None:
        self.processors = list(processors)
        self.sink = sink
        self.flush_interval = flush_interval
        self.pending_metrics = pending_metrics
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop ticking and stop the sink."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _run(self, stop: threading.Event) -> None:
        next_tick = time.monotonic() + self.flush_interval
        while not stop.wait(max(0.0, next_tick - time.monotonic())):
            next_tick += self.flush_interval
            threading.Thread(target=self.push, daemon=True).start()
        self.sink.stop()

    def push(self) -> None:
        """Process and export all pending batches; a processor failure abandons the push."""
        for data in self.pending_metrics():
            for processor in self.processors:
                if data.metric_sets:
                    try:
                        data = processor.process(data)
                    except Exception as err:  # processors may fail in many ways
                        log.error("Error in processor: %s", err)
                        return
            self.sink.export_data(data)