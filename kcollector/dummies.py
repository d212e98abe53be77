"""Lightweight stand-ins for sinks, sources and processors."""

from __future__ import annotations

import threading
import time
from datetime import datetime

from .metrics import DataBatch, MetricPoint, MetricSet


class DummySink:
    """Sink that counts exports and sleeps for a fixed latency."""

    def __init__(self, name: str, latency: float) -> None:
        self.name = name
        self.latency = latency
        self._lock = threading.Lock()
        self._export_count = 0
        self._stopped = False

    def export_data(self, batch: DataBatch) -> None:
        with self._lock:
            self._export_count += 1
        time.sleep(self.latency)

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
        time.sleep(self.latency)

    @property
    def is_stopped(self) -> bool:
        with self._lock:
            return self._stopped

    @property
    def export_count(self) -> int:
        with self._lock:
            return self._export_count


class DummyMetricsSource:
    """Source producing a single point named after itself."""

    def __init__(self, name: str, latency: float) -> None:
        self.name = name
        self.latency = latency
        self.metric_set = MetricSet(labels={"name": name})

    def scrape_metrics(self) -> DataBatch:
        time.sleep(self.latency)
        point = MetricPoint(
            metric=self.name.replace(" ", "."),
            value=1,
            timestamp=time.time_ns() // 1000,
            source=self.name,
            tags={"tag": "tag"},
        )
        return DataBatch(timestamp=datetime.now(), metric_points=[point])


class DummyMetricsSourceProvider:
    """Provider returning a fixed list of sources."""

    def __init__(self, name: str, collection_interval: float, timeout: float, *args: DummyMetricsSource) -> None:
        self.name = name
        self.collection_interval = collection_interval
        self.timeout = timeout
        self._sources = list(args)

    def get_metrics_sources(self) -> list:
        return self._sources


class DummyDataProcessor:
    """Processor that passes batches through after a delay."""

    name = "dummy"

    def __init__(self, latency: float) -> None:
        self.latency = latency

    def process(self, batch: DataBatch) -> DataBatch:
        time.sleep(self.latency)
        return batch


class DummyProviderHandler:
    """Provider handler that only counts registered providers."""

    def __init__(self) -> None:
        self.count = 0

    def add_provider(self, provider: object) -> None:
        self.count += 1

    def delete_provider(self, name: str) -> None:
        self.count -= 1