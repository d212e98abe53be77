"""Processor deriving per-second rates from cumulative metrics of consecutive batches."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta

from ..metrics import (
    LABEL_RESOURCE_ID,
    METRIC_CPU_USAGE,
    METRIC_DISK_IO_READ,
    METRIC_DISK_IO_WRITE,
    DataBatch,
    LabeledMetric,
    Metric,
    MetricSet,
    MetricType,
    MetricValue,
    ValueType,
)

log = logging.getLogger(__name__)

_LABELED_RATE_METRICS = frozenset({METRIC_DISK_IO_READ.name, METRIC_DISK_IO_WRITE.name})


def _is_after(new: datetime | None, old: datetime | None) -> bool:
    if new is None:
        return False
    if old is None:
        return True
    return new > old


def _elapsed_ns(new: datetime, old: datetime) -> int:
    return (new - old) // timedelta(microseconds=1) * 1000


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


def _per_second(new: MetricValue, old: MetricValue, elapsed_ns: int) -> float:
    return 1e9 * float(new.int_value - old.int_value) / float(elapsed_ns)


class RateCalculator:
    """Adds rate metrics computed against the previous metric set with the same key."""

    name = "rate calculator"

    def __init__(self, rate_metrics_mapping: Mapping[str, Metric]) -> None:
        self.rate_metrics_mapping = dict(rate_metrics_mapping)
        self.previous_metric_sets: dict[str, MetricSet] = {}

    def process(self, batch: DataBatch) -> DataBatch:
        for key, new_ms in batch.metric_sets.items():
            old_ms = self.previous_metric_sets.get(key)
            if old_ms is None:
                log.info("Skipping rates for '%s' - no previous batch found", key)
                self.previous_metric_sets[key] = new_ms
                continue
            if not _is_after(new_ms.scrape_time, old_ms.scrape_time):
                log.debug("Skipping rates for '%s' - new batch (%s) was not scraped strictly after old batch (%s)",
                          key, new_ms.scrape_time, old_ms.scrape_time)
                continue
            if new_ms.collection_start_time != old_ms.collection_start_time:
                log.debug("Skipping rates for '%s' - different collection start time (restart) new:%s  old:%s",
                          key, new_ms.collection_start_time, old_ms.collection_start_time)
                self.previous_metric_sets[key] = new_ms
                continue

            elapsed = _elapsed_ns(new_ms.scrape_time, old_ms.scrape_time)
            for metric_name, target in self.rate_metrics_mapping.items():
                if metric_name in _LABELED_RATE_METRICS:
                    self._labeled_rates(key, metric_name, target, new_ms, old_ms, elapsed)
                else:
                    self._plain_rate(key, metric_name, target, new_ms, old_ms, elapsed)
            self.previous_metric_sets[key] = new_ms
        return batch

    @staticmethod
    def _labeled_rates(key: str, metric_name: str, target: Metric, new_ms: MetricSet, old_ms: MetricSet,
                       elapsed: int) -> None:
        for item_new in list(new_ms.labeled_metrics):
            if item_new.name != metric_name:
                continue
            resource_id = item_new.labels.get(LABEL_RESOURCE_ID, "")
            # Match by device so multiple disks do not produce negative rates.
            item_old = next(
                (item for item in old_ms.labeled_metrics
                 if item.name == metric_name and item.labels.get(LABEL_RESOURCE_ID, "") == resource_id),
                None,
            )
            if item_old is None:
                log.debug("Skipping rates for '%s' in '%s': metric not found in one of old (%s) or new (%s)",
                          metric_name, key, False, True)
                continue
            if target.value_type is ValueType.FLOAT:
                new_ms.labeled_metrics.append(LabeledMetric(
                    name=target.name,
                    labels=item_new.labels,
                    metric_value=MetricValue(
                        float_value=_per_second(item_new.metric_value, item_old.metric_value, elapsed),
                        metric_type=MetricType.GAUGE,
                        value_type=ValueType.FLOAT,
                    ),
                ))

    @staticmethod
    def _plain_rate(key: str, metric_name: str, target: Metric, new_ms: MetricSet, old_ms: MetricSet,
                    elapsed: int) -> None:
        new_val = new_ms.metric_values.get(metric_name)
        old_val = old_ms.metric_values.get(metric_name)
        if new_val is not None and old_val is not None:
            if metric_name == METRIC_CPU_USAGE.name:
                # cpu/usage is in nanoseconds; the rate is in millicores.
                new_ms.metric_values[target.name] = MetricValue(
                    int_value=_trunc_div(1000 * (new_val.int_value - old_val.int_value), elapsed),
                    metric_type=MetricType.GAUGE,
                    value_type=ValueType.INT64,
                )
            elif target.value_type is ValueType.FLOAT:
                new_ms.metric_values[target.name] = MetricValue(
                    float_value=_per_second(new_val, old_val, elapsed),
                    metric_type=MetricType.GAUGE,
                    value_type=ValueType.FLOAT,
                )
        elif new_val is not None or old_val is not None:
            log.debug("Skipping rates for '%s' in '%s': metric not found in one of old (%s) or new (%s)",
                      metric_name, key, old_val is not None, new_val is not None)