"""Sink that fans batches out to other sinks, dropping data for sinks that are still busy."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterable
from typing import Any

from ..metrics import DataBatch

log = logging.getLogger(__name__)

DEFAULT_SINK_STOP_TIMEOUT = 60.0

_STOP = object()


class _SinkHolder:
    """Runs one sink in its own worker thread.

    A message is handed over only while the worker waits for one, so a sink
    that is still exporting cannot accept new data.
    """

    def __init__(self, sink: Any) -> None:
        self.sink = sink
        self._idle = threading.Semaphore(0)
        self._inbox: queue.SimpleQueue = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def offer(self, message: object, timeout: float) -> bool:
        """Hand ``message`` to the worker if it becomes ready within ``timeout`` seconds."""
        if not self._idle.acquire(timeout=timeout):
            return False
        self._inbox.put(message)
        return True

    def _run(self) -> None:
        while True:
            self._idle.release()
            message = self._inbox.get()
            if message is _STOP:
                log.info("Sink stop received: %s", self.sink.name)
                self.sink.stop()
                return
            self.sink.export_data(message)


class SinkManager:
    """Distributes batches to sinks that finished their previous export.

    Data that cannot be handed to a sink within the export timeout is dropped
    and not retried.
    """

    name = "Manager"

    def __init__(self, sinks: Iterable[Any], export_data_timeout: float,
                 stop_timeout: float = DEFAULT_SINK_STOP_TIMEOUT) -> None:
        self.export_data_timeout = export_data_timeout
        self.stop_timeout = stop_timeout
        self.timeouts = 0
        self._lock = threading.Lock()
        self._holders = [_SinkHolder(sink) for sink in sinks]

    def export_data(self, batch: DataBatch) -> None:
        """Push ``batch`` to every sink; returns within the export timeout."""
        threads = [
            threading.Thread(target=self._push, args=(holder, batch), daemon=True)
            for holder in self._holders
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def _push(self, holder: _SinkHolder, batch: DataBatch) -> None:
        log.debug("Pushing data to sink: %s", holder.sink.name)
        if holder.offer(batch, self.export_data_timeout):
            log.info("Data push complete: %s", holder.sink.name)
        else:
            with self._lock:
                self.timeouts += 1
            log.info("Data push failed: %s", holder.sink.name)

    def stop(self) -> None:
        """Ask every sink to stop without waiting for them."""
        for holder in self._holders:
            log.info("Running stop for: %s", holder.sink.name)
            threading.Thread(target=self._send_stop, args=(holder,), daemon=True).start()

    def _send_stop(self, holder: _SinkHolder) -> None:
        if holder.offer(_STOP, self.stop_timeout):
            log.info("Stop sent to sink: %s", holder.sink.name)
        else:
            log.warning("Failed to stop sink: %s", holder.sink.name)