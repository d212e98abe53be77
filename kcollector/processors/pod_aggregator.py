"""Processor that sums container metrics into their pod metric sets."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping

from ..metrics import (
    LABEL_HOST_ID,
    LABEL_HOSTNAME,
    LABEL_METRIC_SET_TYPE,
    LABEL_NAMESPACE_NAME,
    LABEL_POD_ID,
    LABEL_POD_NAME,
    LABEL_POD_NAMESPACE_UID,
    METRIC_SET_TYPE_POD,
    METRIC_SET_TYPE_POD_CONTAINER,
    STANDARD_METRICS,
    DataBatch,
    MetricSet,
    MetricType,
    ValueType,
    pod_key,
)
from .aggregators import AggregationError

log = logging.getLogger(__name__)

LABELS_TO_POPULATE = (
    LABEL_POD_ID,
    LABEL_POD_NAME,
    LABEL_NAMESPACE_NAME,
    LABEL_POD_NAMESPACE_UID,
    LABEL_HOSTNAME,
    LABEL_HOST_ID,
)


class PodAggregator:
    """Sums container metrics into pods that lack pod-level values for them."""

    name = "pod_aggregator"

    def __init__(self, skipped_metrics: Iterable[str] = ()) -> None:
        self.skipped_metrics = frozenset(skipped_metrics)

    def process(self, batch: DataBatch) -> DataBatch:
        new_pods: dict[str, MetricSet] = {}
        # Pods that already carry a pod-level value do not need container sums.
        require_aggregate: set[tuple[str, str]] = set()
        for key, metric_set in batch.metric_sets.items():
            if metric_set.labels.get(LABEL_METRIC_SET_TYPE) != METRIC_SET_TYPE_POD_CONTAINER:
                continue
            pod_name = metric_set.labels.get(LABEL_POD_NAME)
            namespace = metric_set.labels.get(LABEL_NAMESPACE_NAME)
            if pod_name is None or namespace is None:
                log.error("No namespace and/or pod info in container %s: %s", key, metric_set.labels)
                continue

            p_key = pod_key(namespace, pod_name)
            pod = batch.metric_sets.get(p_key) or new_pods.get(p_key)
            if pod is None:
                log.info("Pod not found adding %s", p_key)
                pod = _pod_metric_set(metric_set.labels)
                new_pods[p_key] = pod

            for metric_name, value in metric_set.metric_values.items():
                if metric_name in self.skipped_metrics:
                    continue
                current = pod.metric_values.get(metric_name)
                if current is None:
                    require_aggregate.add((p_key, metric_name))
                    pod.metric_values[metric_name] = dataclasses.replace(value)
                    continue
                if (p_key, metric_name) not in require_aggregate:
                    continue
                if current.value_type is not value.value_type:
                    log.error("PodAggregator: inconsistent type in %s", metric_name)
                    continue
                if current.value_type is ValueType.INT64:
                    summed = dataclasses.replace(current, int_value=current.int_value + value.int_value)
                elif current.value_type is ValueType.FLOAT:
                    summed = dataclasses.replace(current, float_value=current.float_value + value.float_value)
                else:
                    raise AggregationError(f"PodAggregator: type not supported in {metric_name}")
                pod.metric_values[metric_name] = summed

        batch.metric_sets.update(new_pods)
        return batch


def _pod_metric_set(labels: Mapping[str, str]) -> MetricSet:
    new_labels = {LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_POD}
    new_labels.update({key: labels[key] for key in LABELS_TO_POPULATE if key in labels})
    return MetricSet(labels=new_labels)


def new_pod_aggregator() -> PodAggregator:
    """Pod aggregator that skips cumulative and delta standard metrics."""
    skipped = (
        metric.name
        for metric in STANDARD_METRICS
        if metric.type in (MetricType.CUMULATIVE, MetricType.DELTA)
    )
    return PodAggregator(skipped)