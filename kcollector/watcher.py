"""Polling watcher that reports modifications of a file."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable

log = logging.getLogger(__name__)


class FileWatcher:
    """Polls a file and calls ``listener(path)`` when its modification time advances.

    The first observation of the file only records its modification time.
    """

    def __init__(self, path: str, listener: Callable[[str], None], initial_delay: float,
                 interval: float = 60.0) -> None:
        self.path = path
        self.listener = listener
        self.initial_delay = initial_delay
        self.interval = interval
        self._mod_time = float("-inf")
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def watch(self) -> None:
        """Start polling in a background thread."""
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self, stop: threading.Event) -> None:
        initial = True
        while not stop.is_set():
            if initial and stop.wait(self.initial_delay):
                return
            try:
                mod_time = os.stat(self.path).st_mtime
            except OSError as err:
                log.error("error retrieving file stats: %s", err)
            else:
                if mod_time > self._mod_time:
                    self._mod_time = mod_time
                    if initial:
                        initial = False
                    else:
                        self.listener(self.path)
            if stop.wait(self.interval):
                return